"""Dereferrer matching: pull the real target out of a redirect-service URL.

A rule's ``path`` is compared with the URL path (host included, protocol
and ``www`` stripped). ``/.../`` paths are regular expressions, anything
else is a literal.

- With ``param`` the rule path only has to match a prefix of the URL path;
  the target lives in the query string.
- Without ``param`` the rule path must end exactly at the end of the URL
  path or at a ``/``; whatever follows that ``/`` is the target.
"""

import base64
import binascii
import logging
import re
from urllib.parse import parse_qsl

from safelink.schemas.lists import DereferrerRule

logger = logging.getLogger(__name__)

BASE64_RE = re.compile(r"^[A-Za-z0-9+/]+={0,2}$")


def _match_end(rule_path: str, path: str) -> int | None:
    """Index in *path* where the rule's match ends, or None."""
    if len(rule_path) > 1 and rule_path.startswith("/") and rule_path.endswith("/"):
        try:
            match = re.match(rule_path[1:-1], path)
        except re.error:
            logger.warning("Invalid dereferrer regex %r", rule_path)
            return None
        return match.end() if match else None
    return len(rule_path) if path.startswith(rule_path) else None


def extract_target(path: str, query: str | None, rule: DereferrerRule) -> str | None:
    """Return the URL embedded according to *rule*, or None if it does not apply."""
    end = _match_end(rule.path, path)
    if end is None:
        return None

    if rule.param is True:
        return query or None

    if rule.param:
        params = parse_qsl(query or "", keep_blank_values=True)
        for name in rule.param:
            for key, value in params:
                if key == name:
                    return value or None
        return None

    if end == len(path):
        return None
    if path[end] != "/":
        return None
    return path[end + 1 :] or None


def decode_base64(value: str) -> str | None:
    """Decode a base64 dereferrer target, or None if it is not valid base64 text."""
    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None


def looks_like_base64(value: str) -> bool:
    return BASE64_RE.match(value) is not None
