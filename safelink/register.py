"""Build the in-memory classification index from cached lists.

The index is rebuilt wholesale: a fresh ClassificationIndex is assembled
from the cache and only assigned once complete, so readers always see one
full snapshot.

Trusted lists may declare organizations by reference (``external``). Those
providers are fetched one level deep, scoped to the organization ids the
lists actually ask for.
"""

import asyncio
import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from safelink.filters import SuspiciousFilter
from safelink.integrations.fetcher import FetchError
from safelink.schemas.lists import (
    DereferrerRule,
    ListDocument,
    ListType,
    RedirectPayload,
    TrustedPayload,
)
from safelink.storage import cache_key
from safelink.updater import Updater
from safelink.versioning import is_newer

logger = logging.getLogger(__name__)


class TrustedIndex(BaseModel):
    orgs: dict[str, dict] = Field(default_factory=dict)
    domains: dict[str, str] = Field(default_factory=dict)


class RedirectIndex(BaseModel):
    redirects: list[str] = Field(default_factory=list)
    dereferrers: list[DereferrerRule] = Field(default_factory=list)


class ClassificationIndex(BaseModel):
    """One complete, immutable snapshot of all active lists."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    generation: int = 0
    trusted: TrustedIndex = Field(default_factory=TrustedIndex)
    redirect: RedirectIndex = Field(default_factory=RedirectIndex)
    suspicious: SuspiciousFilter = Field(default_factory=SuspiciousFilter.empty)


class ExternalDependency(BaseModel):
    """An organization provider and the org ids requested from it."""

    url: str
    ids: set[str] = Field(default_factory=set)


class Register:
    """Owns the classification index.

    Usage::

        register = Register(updater)
        await register.rebuild()
        index = register.get()
    """

    def __init__(self, updater: Updater) -> None:
        self._updater = updater
        self._index = ClassificationIndex()

    def get(self) -> ClassificationIndex:
        """The current complete index."""
        return self._index

    async def rebuild(self) -> ClassificationIndex:
        """Rebuild the index from the active lists and swap it in."""
        lists = self._updater.get_lists()

        by_type: dict[ListType, list[str]] = {t: [] for t in ListType}
        missing: list[str] = []
        for list_id, descriptor in lists.items():
            if descriptor.off:
                continue
            by_type[descriptor.type].append(list_id)
            if self._updater.storage.get(cache_key(list_id)) is None:
                missing.append(list_id)

        if missing:
            logger.info("Fetching %d uncached list(s) before indexing", len(missing))
            results = await asyncio.gather(
                *(self._updater.refresh_lists(list_id) for list_id in missing),
                return_exceptions=True,
            )
            for list_id, result in zip(missing, results):
                if isinstance(result, BaseException):
                    logger.warning("On-demand update of %s failed: %s", list_id, result)

        trusted, redirect, suspicious = await asyncio.gather(
            self._build_trusted(by_type[ListType.TRUSTED]),
            self._build_redirect(by_type[ListType.REDIRECT]),
            self._build_suspicious(by_type[ListType.SUSPICIOUS]),
            return_exceptions=True,
        )
        if isinstance(trusted, BaseException):
            logger.warning("Building trusted index failed: %s", trusted)
            trusted = TrustedIndex()
        if isinstance(redirect, BaseException):
            logger.warning("Building redirect index failed: %s", redirect)
            redirect = RedirectIndex()
        if isinstance(suspicious, BaseException):
            logger.warning("Building suspicious filter failed: %s", suspicious)
            suspicious = SuspiciousFilter.empty()

        self._index = ClassificationIndex(
            generation=self._index.generation + 1,
            trusted=trusted,
            redirect=redirect,
            suspicious=suspicious,
        )
        logger.info(
            "Index rebuilt (generation %d): %d trusted domain(s), %d org(s), "
            "%d redirect host(s), %d dereferrer(s), %d filter rule(s)",
            self._index.generation,
            len(trusted.domains),
            len(trusted.orgs),
            len(redirect.redirects),
            len(redirect.dereferrers),
            suspicious.rule_count,
        )
        return self._index

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _cached_data(self, list_id: str) -> dict | None:
        cached = self._updater.storage.get(cache_key(list_id))
        if not isinstance(cached, dict) or not isinstance(cached.get("data"), dict):
            return None
        return cached["data"]

    async def _build_trusted(self, list_ids: list[str]) -> TrustedIndex:
        orgs: dict[str, dict] = {}
        domains: dict[str, str] = {}
        externals: dict[str, ExternalDependency] = {}

        for list_id in list_ids:
            data = self._cached_data(list_id)
            if data is None:
                continue
            try:
                payload = TrustedPayload.model_validate(data)
            except ValidationError as exc:
                logger.warning("Skipping malformed trusted list %s: %s", list_id, exc)
                continue
            orgs.update(payload.orgs)
            domains.update(payload.domains)
            for external_id, ref in payload.external.items():
                dependency = externals.setdefault(external_id, ExternalDependency(url=ref.url))
                dependency.ids.update(ref.ids)

        orgs.update(await self.resolve_externals(externals, set(list_ids)))
        return TrustedIndex(orgs=orgs, domains=domains)

    async def _build_redirect(self, list_ids: list[str]) -> RedirectIndex:
        redirects: list[str] = []
        dereferrers: list[DereferrerRule] = []
        for list_id in list_ids:
            data = self._cached_data(list_id)
            if data is None:
                continue
            try:
                payload = RedirectPayload.model_validate(data)
            except ValidationError as exc:
                logger.warning("Skipping malformed redirect list %s: %s", list_id, exc)
                continue
            redirects.extend(payload.redirects)
            dereferrers.extend(payload.dereferrers)
        return RedirectIndex(redirects=redirects, dereferrers=dereferrers)

    async def _build_suspicious(self, list_ids: list[str]) -> SuspiciousFilter:
        texts = []
        for list_id in list_ids:
            cached = self._updater.storage.get(cache_key(list_id))
            if isinstance(cached, str):
                texts.append(cached)
        return await asyncio.to_thread(SuspiciousFilter.parse, "\n".join(texts))

    # ------------------------------------------------------------------
    # External organization providers
    # ------------------------------------------------------------------

    async def resolve_externals(
        self,
        externals: dict[str, ExternalDependency],
        processed_ids: set[str],
    ) -> dict[str, dict]:
        """Fetch the requested orgs from every external provider.

        Providers whose id is one of *processed_ids* are already fully
        indexed and are skipped. Returns the merged org mapping.
        """
        pending = {
            external_id: dependency
            for external_id, dependency in externals.items()
            if external_id not in processed_ids
        }
        for external_id in externals.keys() - pending.keys():
            logger.debug("External %s is an indexed list, skipping", external_id)

        results = await asyncio.gather(
            *(self._resolve_external(eid, dep) for eid, dep in pending.items()),
            return_exceptions=True,
        )

        orgs: dict[str, dict] = {}
        for external_id, result in zip(pending, results):
            if isinstance(result, BaseException):
                logger.warning("Resolving external %s failed: %s", external_id, result)
                continue
            orgs.update(result)
        return orgs

    async def _resolve_external(
        self, external_id: str, dependency: ExternalDependency
    ) -> dict[str, dict]:
        storage = self._updater.storage
        cached = storage.get(cache_key(external_id))
        if not isinstance(cached, dict):
            cached = None

        orgs: dict[str, dict] | None = None
        try:
            body = await self._updater.fetcher.fetch_json(dependency.url)
            document = ListDocument.model_validate(body)
            if is_newer(document.version, cached.get("version") if cached else None):
                orgs = TrustedPayload.model_validate(document.data).orgs
                storage.set(
                    cache_key(external_id),
                    {"version": document.version, "data": {"orgs": orgs}},
                )
                logger.info("Cached external %s (version %s)", external_id, document.version)
        except (FetchError, ValueError) as exc:
            logger.warning("Fetching external %s failed: %s", external_id, exc)

        if orgs is None:
            if cached is None:
                logger.warning("No organizations available for external %s", external_id)
                return {}
            orgs = (cached.get("data") or {}).get("orgs") or {}

        return {org_id: orgs[org_id] for org_id in sorted(dependency.ids) if org_id in orgs}
