"""Schemas for classification results."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class DomainType(StrEnum):
    """Trust category assigned to a URL, in decreasing priority."""

    CUSTOM = "custom"
    TRUSTED = "trusted"
    REDIRECT = "redirect"
    SUSPICIOUS = "suspicious"
    UNKNOWN = "unknown"


class SimilarDomain(BaseModel):
    """Closest trusted domain to an unknown one."""

    domain: str
    rating: float  # 0.0 .. 1.0


class DomainInfo(BaseModel):
    """Result of classifying a URL.

    Trusted results carry the organization's details as extra fields
    (e.g. ``info.name``).
    """

    model_config = ConfigDict(extra="allow")

    type: DomainType
    domain: str
    second_level_domain: str
    top_level_domain: str
    dereferrer_target: str | None = None
    similar: SimilarDomain | None = None


class RedirectResolution(BaseModel):
    """Outcome of following a redirect service one hop."""

    url: str | None = None
    not_found: bool = False
    invalid: bool = False
    target: DomainInfo | None = None
