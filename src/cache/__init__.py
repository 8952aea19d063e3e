"""
Template Cache Layer
In-memory LRU cache + a caching decorator for template repos
"""

from .cache import LRUCache
from .cached_repo import CachedTemplateRepo, DEFAULT_CACHE_SIZE

__all__ = ['LRUCache', 'CachedTemplateRepo', 'DEFAULT_CACHE_SIZE']
