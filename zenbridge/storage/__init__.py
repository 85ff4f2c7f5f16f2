"""
Zen Bridge Storage Layer
========================

Repository pattern implementations for data access abstraction.

This module provides:
- Article repository for article CRUD and partial updates
- RSS config repository for the feed configuration
- Store facade passed to the pipeline and feed generator
"""

from .article_repository import ArticleRepository
from .config_repository import RssConfigRepository
from .store import Store

__all__ = [
    "ArticleRepository",
    "RssConfigRepository",
    "Store",
]
