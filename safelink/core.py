"""Session entry point tying the updater, register and classifier together."""

import logging
from datetime import UTC, datetime

from safelink.classifier import classify
from safelink.integrations.fetcher import FetchError, ListFetcher, was_redirected
from safelink.preferences import Preferences
from safelink.register import Register
from safelink.schemas.domain import DomainInfo, RedirectResolution
from safelink.storage import GENERAL_SETTINGS_KEY
from safelink.updater import Updater
from safelink.url import remove_protocol

logger = logging.getLogger(__name__)


def _comparable(url: str) -> str:
    return remove_protocol(url).rstrip("/")


class SafelinkCore:
    """Classify URLs against locally cached trust lists.

    Usage::

        async with ListFetcher() as fetcher:
            core = SafelinkCore(store, fetcher, catalog_url=CATALOG_URL)
            await core.create()
            info = await core.find_domain("https://example.com/login")
    """

    def __init__(
        self,
        storage,
        fetcher: ListFetcher,
        *,
        catalog_url: str,
        update_interval_hours: int = 24,
    ) -> None:
        self._storage = storage
        self._fetcher = fetcher
        self._update_interval_hours = update_interval_hours
        self.prefer = Preferences(storage)
        self.updater = Updater(storage, fetcher, catalog_url=catalog_url)
        self.register = Register(self.updater)

    async def create(self, *, force: bool = False, now: datetime | None = None) -> None:
        """Refresh the catalog and lists (at most once per interval) and build the index."""
        now = now or datetime.now(UTC)
        if force or self.updater.needs_catalog_refresh(
            now, interval_hours=self._update_interval_hours
        ):
            await self.updater.refresh_catalog()
            settings = self._storage.get(GENERAL_SETTINGS_KEY) or {}
            if settings.get("automaticUpdates", True):
                await self.updater.refresh_lists()
            self.updater.mark_updated(now)
        else:
            logger.debug("Lists updated within the last %dh, skipping", self._update_interval_hours)
        await self.register.rebuild()

    async def find_domain(self, url: str) -> DomainInfo:
        """Classify *url* against the current index."""
        return classify(url, self.register.get(), self.prefer.get_custom())

    async def find_redirect_domain(self, url: str) -> RedirectResolution | None:
        """Follow a redirect service one hop and classify where it leads.

        Returns None when the request itself failed (no answer either way).
        """
        try:
            response = await self._fetcher.fetch(url, follow_redirects=True)
        except FetchError as exc:
            logger.info("Could not resolve redirect %s: %s", url, exc)
            return None

        final_url = str(response.url)
        if _comparable(final_url) == _comparable(url):
            if response.status_code == 404:
                return RedirectResolution(not_found=True)
            return RedirectResolution(invalid=True)
        if not was_redirected(response):
            return RedirectResolution(invalid=True)

        return RedirectResolution(url=final_url, target=await self.find_domain(final_url))
