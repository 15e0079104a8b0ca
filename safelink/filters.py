"""Compiled adblock-style filter set for suspicious URLs."""

import logging
import re

from adblockparser import AdblockParsingError, AdblockRule, AdblockRules

from safelink.url import ParsedDomain

logger = logging.getLogger(__name__)


class SuspiciousFilter:
    """Adblock-syntax rules compiled once, matched per URL.

    Usage::

        flt = SuspiciousFilter.parse("||evil.example^\\n! comment")
        flt.match(parse_domain("https://evil.example/login"))
    """

    def __init__(self, rules: AdblockRules | None, rule_count: int) -> None:
        self._rules = rules
        self.rule_count = rule_count

    @classmethod
    def parse(cls, text: str) -> "SuspiciousFilter":
        """Compile filter text. Comments, blank lines and element-hiding rules are dropped."""
        lines = [
            line.strip()
            for line in text.splitlines()
            if line.strip() and not line.lstrip().startswith(("!", "#", "["))
        ]
        lines = [line for line in lines if _compiles(line)]
        if not lines:
            return cls(None, 0)
        rules = AdblockRules(lines, skip_unsupported_rules=True)
        logger.debug("Compiled %d suspicious filter rule(s)", len(lines))
        return cls(rules, len(lines))

    @classmethod
    def empty(cls) -> "SuspiciousFilter":
        return cls(None, 0)

    def match(self, request: ParsedDomain) -> bool:
        """True if any blocking rule matches the URL (and no exception rule does)."""
        if self._rules is None:
            return False
        return self._rules.should_block(request.url, {"domain": request.hostname})


def _compiles(line: str) -> bool:
    """True if *line* parses as a rule and its regex compiles on its own."""
    try:
        re.compile(AdblockRule(line).regex)
    except (AdblockParsingError, re.error) as exc:
        logger.warning("Dropping malformed filter rule %r: %s", line, exc)
        return False
    return True
