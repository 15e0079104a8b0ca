"""Single source of truth for all configuration.

Other modules read settings from these constants, not from os.environ.

Values are read from ``safelink.env`` in the project root (plain dotenv
file, optional) and may be overridden by process environment variables.
"""

import os
from pathlib import Path

from dotenv import dotenv_values

PROJECT_ROOT = Path(__file__).resolve().parent.parent

DEFAULT_CATALOG_URL = (
    "https://raw.githubusercontent.com/jballmann/safelink-lists/main/lists/default_lists.json"
)


def _load(path: Path) -> dict[str, str | None]:
    """Load the dotenv file (if any) and overlay ``SAFELINK_*`` env vars."""
    values: dict[str, str | None] = {}
    if path.exists():
        values.update(dotenv_values(path))
    values.update({k: v for k, v in os.environ.items() if k.startswith("SAFELINK_")})
    return values


_settings = _load(PROJECT_ROOT / "safelink.env")

CATALOG_URL: str = _settings.get("SAFELINK_CATALOG_URL") or DEFAULT_CATALOG_URL
STORE_PATH: str = _settings.get("SAFELINK_STORE_PATH") or str(
    PROJECT_ROOT / "data" / "safelink.db"
)
FETCH_TIMEOUT: float = float(_settings.get("SAFELINK_FETCH_TIMEOUT") or "30")
UPDATE_INTERVAL_HOURS: int = int(_settings.get("SAFELINK_UPDATE_INTERVAL_HOURS") or "24")
