"""Schemas for list descriptors, cached list payloads and the master catalog.

A *list* is a remotely hosted, versioned source of trust data. Three kinds
exist and their payloads have nothing in common, so each gets its own model:

  trusted    → TrustedPayload   (JSON, versioned)
  redirect   → RedirectPayload  (JSON, versioned)
  suspicious → raw adblock-style filter text (no version)
"""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class ListType(StrEnum):
    """Kind of data a list provides."""

    TRUSTED = "trusted"
    REDIRECT = "redirect"
    SUSPICIOUS = "suspicious"


JSON_LIST_TYPES = frozenset({ListType.TRUSTED, ListType.REDIRECT})


class ListDescriptor(BaseModel):
    """A list as stored in ``settings/lists`` (keyed by list id)."""

    model_config = ConfigDict(extra="allow")

    url: str
    type: ListType
    group: str = "default"
    off: bool = False
    title: str | None = None
    web: str | None = None


# --- Payloads (what ``cached/{listId}`` holds under ``data``) ---


class ExternalRef(BaseModel):
    """An organization provider referenced by id from a trusted list."""

    url: str
    ids: list[str] = Field(default_factory=list)


class TrustedPayload(BaseModel):
    """Organizations and the domains that belong to them."""

    orgs: dict[str, dict] = Field(default_factory=dict)
    domains: dict[str, str] = Field(default_factory=dict)
    external: dict[str, ExternalRef] = Field(default_factory=dict)


class DereferrerRule(BaseModel):
    """How a redirect service embeds its real target in the URL.

    ``path`` is a literal or a ``/regex/``. ``param`` is ``True`` when the
    whole query string is the target, or a list of query parameter names
    to try in order. Without ``param`` the target is the path tail.
    """

    path: str
    param: bool | list[str] | None = None
    format: list[str] = Field(default_factory=list)

    @property
    def supports_base64(self) -> bool:
        return "base64" in self.format


class RedirectPayload(BaseModel):
    """Known redirect hosts and dereferrer rules."""

    redirects: list[str] = Field(default_factory=list)
    dereferrers: list[DereferrerRule] = Field(default_factory=list)


class ListDocument(BaseModel):
    """Top-level shape of a fetched JSON list (trusted or redirect)."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    type: ListType | None = None
    version: str | int | float | None = None
    title: str | None = None
    website: str | None = None
    data: dict = Field(default_factory=dict)


# --- Master catalog ---


class CatalogEntry(BaseModel):
    """A recommended list as published in the master catalog."""

    model_config = ConfigDict(extra="allow")

    url: str
    type: ListType
    off: bool = False
    group: str = "default"
    title: str | None = None
    website: str | None = None


class CatalogData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    delete: list[str] = Field(default_factory=list)
    lists: dict[str, CatalogEntry] = Field(default_factory=dict, alias="list")


class CatalogDocument(BaseModel):
    """The master list-of-lists document."""

    version: str | int | float
    data: CatalogData = Field(default_factory=CatalogData)
