"""URL helpers: protocol stripping, path/query split and domain parsing."""

import re
from urllib.parse import urlsplit

import tldextract
from pydantic import BaseModel

_PROTOCOL_RE = re.compile(r"^https?://(www[0-9]?\.)?")

# Bundled public suffix snapshot only, never fetched over the network.
_extract = tldextract.TLDExtract(cache_dir=None, suffix_list_urls=())


class UrlParts(BaseModel):
    """A URL with protocol and ``www`` removed, split at ``?`` and ``#``."""

    path: str
    query: str | None = None
    fragment: str | None = None


class ParsedDomain(BaseModel):
    """Host information used for classification."""

    url: str
    hostname: str
    domain: str
    second_level_domain: str
    top_level_domain: str


def remove_protocol(url: str) -> str:
    """Strip ``http(s)://`` and a leading ``www.`` / ``wwwN.``."""
    return _PROTOCOL_RE.sub("", url)


def split_url(url: str) -> UrlParts:
    """Split a URL into path (host included), query and fragment.

    A trailing ``/`` on the path is dropped.
    """
    rest, _, fragment = remove_protocol(url).partition("#")
    path, sep, query = rest.partition("?")
    if path.endswith("/"):
        path = path[:-1]
    return UrlParts(
        path=path,
        query=query if sep else None,
        fragment=fragment or None,
    )


def parse_domain(url: str) -> ParsedDomain:
    """Extract the registrable domain of *url* and its two halves.

    ``https://login.bank-example.co.uk/x`` gives domain ``bank-example.co.uk``,
    second level ``bank-example`` and top level ``co.uk``. Hosts without a
    public suffix (IPs, ``localhost``) are used as-is.
    """
    hostname = (urlsplit(url if "://" in url else "http://" + url).hostname or "").lower()
    ext = _extract(hostname)
    if ext.domain and ext.suffix:
        domain = f"{ext.domain}.{ext.suffix}"
    else:
        domain = hostname
    sld, _, tld = domain.partition(".")
    return ParsedDomain(
        url=url,
        hostname=hostname,
        domain=domain,
        second_level_domain=sld,
        top_level_domain=tld,
    )
