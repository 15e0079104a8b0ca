"""User preferences kept next to the list cache."""

import logging

from safelink.storage import CUSTOM_KEY, PREVENTION_KEY

logger = logging.getLogger(__name__)


class Preferences:
    """Custom trust overrides and prevention settings."""

    def __init__(self, storage) -> None:
        self._storage = storage

    def get_custom(self) -> dict[str, bool]:
        return dict(self._storage.get(CUSTOM_KEY) or {})

    def trust_unknown(self, domain: str) -> None:
        """Always classify *domain* as ``custom`` from now on."""
        custom = self.get_custom()
        custom[domain.lower()] = True
        self._storage.set(CUSTOM_KEY, custom)
        logger.info("Trusting %s", domain)

    def distrust(self, domain: str) -> bool:
        """Remove a custom trust override. Returns True if one existed."""
        custom = self.get_custom()
        if custom.pop(domain.lower(), None) is None:
            return False
        self._storage.set(CUSTOM_KEY, custom)
        return True

    def get_prevention(self) -> dict:
        return dict(self._storage.get(PREVENTION_KEY) or {})

    def set_prevention(self, prevention: dict) -> None:
        self._storage.set(PREVENTION_KEY, prevention)
