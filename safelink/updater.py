"""Fetch the master catalog and the lists it recommends into the local cache.

Two levels of caching:

  settings/lists   — the local catalog (ListDescriptor per list id)
  cached/{listId}  — each list's last fetched content

Both are only ever replaced by strictly newer versions. Network and parse
failures are logged and leave the cache as it was.
"""

import asyncio
import json
import logging
import re
from datetime import UTC, datetime, timedelta

from pydantic import ValidationError

from safelink.integrations.fetcher import FetchError, ListFetcher
from safelink.schemas.lists import (
    JSON_LIST_TYPES,
    CatalogDocument,
    ListDescriptor,
    ListDocument,
    ListType,
)
from safelink.storage import (
    CATALOG_VERSION_KEY,
    LAST_UPDATE_KEY,
    LISTS_KEY,
    cache_key,
)
from safelink.versioning import is_newer, parse_version

logger = logging.getLogger(__name__)

CUSTOM_GROUP = "custom"

_TXT_TITLE_RE = re.compile(r"^[!#]\sTitle:\s(.*)$", re.MULTILINE)
_TXT_WEB_RE = re.compile(r"^[!#]\s(?:Homepage|Website):\s(.*)$", re.MULTILINE)


def metadata_from_json(body: dict) -> dict[str, str]:
    """Title and website of a JSON list, as descriptor fields."""
    metadata: dict[str, str] = {}
    if body.get("title"):
        metadata["title"] = str(body["title"])
    if body.get("website"):
        metadata["web"] = str(body["website"])
    return metadata


def metadata_from_text(text: str) -> dict[str, str]:
    """Title and homepage from ``! Title:`` / ``! Homepage:`` header lines."""
    metadata: dict[str, str] = {}
    if match := _TXT_TITLE_RE.search(text):
        metadata["title"] = match.group(1).strip()
    if match := _TXT_WEB_RE.search(text):
        metadata["web"] = match.group(1).strip()
    return metadata


class Updater:
    """Keeps the local catalog and list caches in sync with their sources.

    Usage::

        updater = Updater(store, fetcher, catalog_url=CATALOG_URL)
        await updater.refresh_catalog()
        await updater.refresh_lists()
    """

    def __init__(self, storage, fetcher: ListFetcher | None, *, catalog_url: str) -> None:
        self.storage = storage
        self.fetcher = fetcher
        self._catalog_url = catalog_url

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def get_lists(self) -> dict[str, ListDescriptor]:
        """The local catalog, keyed by list id."""
        raw = self.storage.get(LISTS_KEY) or {}
        lists: dict[str, ListDescriptor] = {}
        for list_id, details in raw.items():
            try:
                lists[list_id] = ListDescriptor.model_validate(details)
            except ValidationError:
                logger.warning("Ignoring malformed list descriptor %s", list_id)
        return lists

    def save_lists(self, lists: dict[str, ListDescriptor]) -> None:
        self.storage.set(
            LISTS_KEY,
            {list_id: d.model_dump(mode="json", exclude_none=True) for list_id, d in lists.items()},
        )

    def needs_catalog_refresh(self, now: datetime | None = None, *, interval_hours: int = 24) -> bool:
        """True if the last update is missing, unparsable or older than the interval."""
        now = now or datetime.now(UTC)
        last_update = parse_version(self.storage.get(LAST_UPDATE_KEY))
        if last_update is None:
            return True
        return last_update + timedelta(hours=interval_hours) <= now

    def mark_updated(self, now: datetime | None = None) -> None:
        self.storage.set(LAST_UPDATE_KEY, (now or datetime.now(UTC)).isoformat())

    async def refresh_catalog(self) -> bool:
        """Adopt a newer master catalog. Returns True if the local catalog changed."""
        try:
            body = await self.fetcher.fetch_json(self._catalog_url)
            catalog = CatalogDocument.model_validate(body)
        except (FetchError, ValueError) as exc:
            logger.warning("Catalog update failed: %s", exc)
            return False

        stored_version = self.storage.get(CATALOG_VERSION_KEY)
        if not is_newer(catalog.version, stored_version):
            logger.debug("Catalog version %s is current", stored_version)
            return False

        lists = self.get_lists()

        for list_id in catalog.data.delete:
            if lists.pop(list_id, None) is not None:
                logger.info("Removed list %s (deleted from catalog)", list_id)
            self.storage.remove(cache_key(list_id))

        for list_id, entry in catalog.data.lists.items():
            details = entry.model_dump(mode="json", exclude_none=True)
            website = details.pop("website", None)
            if website:
                details["web"] = website
            existing = lists.get(list_id)
            if existing is not None:
                # Keep the user's activation choice
                details["off"] = existing.off
                merged = {**existing.model_dump(mode="json", exclude_none=True), **details}
            else:
                merged = details
            lists[list_id] = ListDescriptor.model_validate(merged)

        self.save_lists(lists)
        self.storage.set(CATALOG_VERSION_KEY, catalog.version)
        logger.info(
            "Adopted catalog version %s: %d list(s), %d deletion(s)",
            catalog.version,
            len(catalog.data.lists),
            len(catalog.data.delete),
        )
        return True

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    async def refresh_lists(self, list_id: str | None = None) -> list[str]:
        """Refresh one list, or every active list concurrently.

        Returns the ids whose cache entry was rewritten.
        """
        lists = self.get_lists()

        if list_id is not None:
            if list_id not in lists:
                logger.warning("Cannot refresh unknown list %s", list_id)
                return []
            targets = [list_id]
        else:
            targets = [lid for lid, d in lists.items() if not d.off]

        results = await asyncio.gather(
            *(self._refresh_one(lid, lists[lid]) for lid in targets),
            return_exceptions=True,
        )

        updated: list[str] = []
        for lid, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.warning("Updating list %s failed: %s", lid, result)
                continue
            if result is None:
                continue
            lists[lid] = result
            updated.append(lid)

        if updated:
            # Re-read so a concurrent catalog change is not clobbered
            current = self.get_lists()
            for lid in updated:
                if lid in current:
                    current[lid] = current[lid].model_copy(
                        update={"title": lists[lid].title, "web": lists[lid].web}
                    )
            self.save_lists(current)
        return updated

    async def _refresh_one(self, list_id: str, descriptor: ListDescriptor) -> ListDescriptor | None:
        """Fetch and cache one list. Returns the updated descriptor, or None if unchanged."""
        try:
            if descriptor.type in JSON_LIST_TYPES:
                body = await self.fetcher.fetch_json(descriptor.url)
                document = ListDocument.model_validate(body)
                cached = self.storage.get(cache_key(list_id))
                if isinstance(cached, dict) and not is_newer(document.version, cached.get("version")):
                    logger.debug("List %s is up to date (version %s)", list_id, cached.get("version"))
                    return None
                metadata = metadata_from_json(body)
                self.storage.set(cache_key(list_id), body)
                logger.info("Cached list %s (version %s)", list_id, document.version)
            else:
                text = await self.fetcher.fetch_text(descriptor.url)
                metadata = metadata_from_text(text)
                self.storage.set(cache_key(list_id), text)
                logger.info("Cached list %s (%d lines)", list_id, text.count("\n") + 1)
        except (FetchError, ValueError) as exc:
            logger.warning("Updating list %s failed: %s", list_id, exc)
            return None

        return descriptor.model_copy(update=metadata)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    async def add_user_list(self, url: str) -> str | None:
        """Fetch and register a user-supplied list. Returns its id, or None on failure.

        JSON content becomes a trusted/redirect list (type from the payload,
        id from the payload or the URL); anything else is treated as
        suspicious filter text keyed by the URL.
        """
        try:
            text = await self.fetcher.fetch_text(url)
        except FetchError as exc:
            logger.warning("Adding list %s failed: %s", url, exc)
            return None

        try:
            body = json.loads(text)
        except ValueError:
            body = None

        if isinstance(body, dict):
            list_type = body.get("type")
            if not isinstance(list_type, str) or list_type not in JSON_LIST_TYPES:
                logger.warning("List %s has unsupported type %r", url, list_type)
                return None
            list_id = str(body.get("id") or url)
            descriptor = ListDescriptor(
                url=url,
                type=ListType(list_type),
                group=CUSTOM_GROUP,
                off=False,
                **metadata_from_json(body),
            )
            self.storage.set(cache_key(list_id), body)
        else:
            list_id = url
            descriptor = ListDescriptor(
                url=url,
                type=ListType.SUSPICIOUS,
                group=CUSTOM_GROUP,
                off=False,
                **metadata_from_text(text),
            )
            self.storage.set(cache_key(list_id), text)

        lists = self.get_lists()
        lists[list_id] = descriptor
        self.save_lists(lists)
        logger.info("Added %s list %s", descriptor.type.value, list_id)
        return list_id

    def remove_list(self, list_id: str) -> bool:
        """Drop a list and its cache. Returns True if it was registered."""
        lists = self.get_lists()
        existed = lists.pop(list_id, None) is not None
        self.storage.remove(cache_key(list_id))
        if existed:
            self.save_lists(lists)
            logger.info("Removed list %s", list_id)
        return existed

    def set_list_active(self, list_id: str, active: bool) -> bool:
        """Switch a list on or off. Returns False for unknown ids."""
        lists = self.get_lists()
        if list_id not in lists:
            return False
        lists[list_id] = lists[list_id].model_copy(update={"off": not active})
        self.save_lists(lists)
        return True
