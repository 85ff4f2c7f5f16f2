"""
Zen Bridge Delivery Module
==========================

Output feed generation for the target platform.
"""

from .feed_generator import FeedGenerator, FeedResponse, FEED_PATH

__all__ = [
    "FeedGenerator",
    "FeedResponse",
    "FEED_PATH",
]
