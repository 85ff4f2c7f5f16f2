"""
Zen Bridge - RSS to Yandex Zen Republisher
==========================================

Ingests a source RSS/Atom feed, restricts each entry to the markup the
target platform accepts, checks it against the platform's content rules
and republishes the compliant entries as a normalized RSS feed.

Main Components:
- Database: SQLite with connection pooling and schema management
- Configuration: environment variables with Pydantic validation
- Ingestion: feed fetching, HTML sanitization, images, categories
- Processing: compliance rules, per-article state machine, pipeline
- Delivery: RSS 2.0 feed generation
"""

__version__ = "1.0.0"
__author__ = "Zen Bridge Development Team"
__description__ = "RSS to Yandex Zen republishing service"

from .config.settings import get_settings
from .database.schema import DatabaseSchema
from .storage.store import Store
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import ZenBridgeError

__all__ = [
    "get_settings",
    "DatabaseSchema",
    "Store",
    "configure_application_logging",
    "get_logger_for_component",
    "ZenBridgeError",
]
