"""Priority-ordered URL classification against a ClassificationIndex.

First match wins:

  1. custom     — the user explicitly trusts the domain
  2. trusted    — domain belongs to a known organization
  3. redirect   — domain is a known redirect service
  4. redirect   — URL matches a dereferrer rule (target extracted)
  5. suspicious — URL matches a suspicious filter rule
  6. unknown    — closest trusted domain reported as ``similar``
"""

import logging

from rapidfuzz import fuzz, process

from safelink.dereferrer import decode_base64, extract_target, looks_like_base64
from safelink.register import ClassificationIndex
from safelink.schemas.domain import DomainInfo, DomainType, SimilarDomain
from safelink.url import ParsedDomain, parse_domain, split_url

logger = logging.getLogger(__name__)


def find_dereferrer_target(url: str, index: ClassificationIndex) -> str | None:
    """Return the target embedded in *url* by the first applicable dereferrer rule."""
    parts = split_url(url)
    for rule in index.redirect.dereferrers:
        target = extract_target(parts.path, parts.query, rule)
        if not target:
            continue
        if rule.supports_base64 and looks_like_base64(target):
            decoded = decode_base64(target)
            if decoded is None:
                logger.debug("Undecodable base64 target for rule %s", rule.path)
                continue
            target = decoded
        return target
    return None


def find_similar(domain: str, candidates: list[str]) -> SimilarDomain | None:
    """Closest candidate to *domain*, however dissimilar. None if there are no candidates."""
    best = process.extractOne(domain, candidates, scorer=fuzz.ratio)
    if best is None:
        return None
    match, score, _ = best
    return SimilarDomain(domain=match, rating=round(score / 100, 4))


def _base(parsed: ParsedDomain) -> dict:
    return {
        "domain": parsed.domain,
        "second_level_domain": parsed.second_level_domain,
        "top_level_domain": parsed.top_level_domain,
    }


def classify(
    url: str,
    index: ClassificationIndex,
    custom: dict | None = None,
) -> DomainInfo:
    """Classify *url*.

    Args:
        url: The raw URL the user is about to open.
        index: Snapshot to classify against. Pass the snapshot once; it is
            never re-read mid-classification.
        custom: The user's ``settings/custom`` mapping (domain -> truthy).

    Returns:
        DomainInfo with the winning category.
    """
    parsed = parse_domain(url)
    base = _base(parsed)

    if custom and custom.get(parsed.domain):
        return DomainInfo(type=DomainType.CUSTOM, **base)

    org_id = index.trusted.domains.get(parsed.domain)
    if org_id:
        details = index.trusted.orgs.get(org_id) or {}
        extra = {k: v for k, v in details.items() if k not in DomainInfo.model_fields}
        return DomainInfo(type=DomainType.TRUSTED, **base, **extra)

    if parsed.domain in index.redirect.redirects:
        return DomainInfo(type=DomainType.REDIRECT, **base)

    target = find_dereferrer_target(url, index)
    if target:
        return DomainInfo(type=DomainType.REDIRECT, dereferrer_target=target, **base)

    if index.suspicious.match(parsed):
        return DomainInfo(type=DomainType.SUSPICIOUS, **base)

    return DomainInfo(
        type=DomainType.UNKNOWN,
        similar=find_similar(parsed.domain, list(index.trusted.domains)),
        **base,
    )
