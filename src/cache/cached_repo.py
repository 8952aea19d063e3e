"""LRU caching decorator for any TemplateRepo."""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

from repo.reference import FileRef
from repo.store import SyncResult, TemplateRepo
from repo.template import CompiledTemplate

from .cache import LRUCache

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 4096


class CachedTemplateRepo:
    """
    Wraps a TemplateRepo with an LRU cache keyed by ``str(ref)``.

    A hit is returned without consulting the inner repo, whatever the
    ``sync`` flag says: a commit id pins the file content, so a cached
    template never goes stale. Failures are never cached.
    """

    def __init__(self, repo: TemplateRepo, size: int = DEFAULT_CACHE_SIZE) -> None:
        self.repo = repo
        self.cache = LRUCache(size)

    def get_template(
        self, ref: FileRef, sync: bool = True, cancel: Optional[threading.Event] = None
    ) -> CompiledTemplate:
        key = ref.key
        template = self.cache.get(key)
        if template is not None:
            logger.debug("cache hit for %s", key)
            return template

        logger.debug("cache miss for %s", key)
        template = self.repo.get_template(ref, sync=sync, cancel=cancel)
        self.cache.add(key, template)
        return template

    def sync(self, cancel: Optional[threading.Event] = None) -> SyncResult:
        return self.repo.sync(cancel=cancel)

    def stats(self) -> Dict[str, Any]:
        return self.cache.get_stats()
