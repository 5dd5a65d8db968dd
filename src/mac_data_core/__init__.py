"""mac-data-core - deduplication and local caching for macOS personal data.

This package merges mail fetched from Mail.app, IMAP and Gmail into one
deduplicated view and fronts slow source-store queries with SQLite caches.
"""

__version__ = "0.1.0"

from mac_data_core.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__"]
