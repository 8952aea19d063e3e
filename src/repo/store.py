#!/usr/bin/env python3
"""
Template Store: Resolve (commit, path) to a Compiled Template

Implements the TemplateRepo protocol on top of a local git repository:
- get_template(ref, sync) → CompiledTemplate (or a classified TemplateRepoError)
- sync()                  → SyncResult (or SyncError)

Sync-on-miss:
- Commit missing + sync allowed → fetch once, look up once more, return that outcome
  (even when the fetch failed; its SyncError becomes the __cause__ of a
  CommitNotFoundError that survives the second lookup)
- Commit missing + sync denied  → CommitNotFoundError, no fetch
- File missing in a known commit → FileNotInCommitError, never fetches
  (the commit is fixed, fetching cannot change its tree)
"""

import logging
import threading
from enum import Enum
from typing import Optional, Protocol

from .errors import CommitNotFoundError, FileNotInCommitError, ReadError, SyncError
from .git import GitAuth, GitError, GitRepository
from .reference import FileRef
from .sync import SingleFlight
from .template import CompiledTemplate, compile_template

logger = logging.getLogger(__name__)


class SyncResult(str, Enum):
    UPDATED = "updated"
    ALREADY_UP_TO_DATE = "already_up_to_date"


class TemplateRepo(Protocol):
    """Anything that can resolve file refs to compiled templates."""

    def get_template(
        self, ref: FileRef, sync: bool = True, cancel: Optional[threading.Event] = None
    ) -> CompiledTemplate:
        ...

    def sync(self, cancel: Optional[threading.Event] = None) -> SyncResult:
        ...


class GitTemplateRepo:
    """
    Direct store backed by a git repository.

    Design:
    - No caching here; wrap in CachedTemplateRepo for that
    - Concurrent syncs are independent fetches unless coalesce_sync=True,
      in which case overlapping callers share one in-flight fetch
    """

    def __init__(
        self,
        git: GitRepository,
        auth: Optional[GitAuth] = None,
        remote: str = "origin",
        sync_timeout: Optional[float] = None,
        coalesce_sync: bool = False,
    ):
        self.git = git
        self.auth = auth
        self.remote = remote
        self.sync_timeout = sync_timeout
        self._flight: Optional[SingleFlight[SyncResult]] = SingleFlight() if coalesce_sync else None

    def __repr__(self) -> str:
        return f"GitTemplateRepo(git={self.git!r}, remote={self.remote!r})"

    def find_file(self, ref: FileRef) -> str:
        """Return the blob id for `ref`, or raise CommitNotFoundError / FileNotInCommitError."""
        try:
            if not self.git.has_commit(ref.commit):
                raise CommitNotFoundError(ref=ref)
            oid = self.git.find_blob(ref.commit, ref.path)
        except GitError as e:
            raise ReadError(f"failed to look up file: {e}", ref=ref) from e
        if oid is None:
            raise FileNotInCommitError(ref=ref)
        return oid

    def get_template(
        self, ref: FileRef, sync: bool = True, cancel: Optional[threading.Event] = None
    ) -> CompiledTemplate:
        try:
            oid = self.find_file(ref)
        except CommitNotFoundError:
            if not sync:
                raise
            logger.info(f"Commit {ref.commit} not found locally, syncing before retry")
            oid = self._find_after_sync(ref, cancel)

        try:
            raw = self.git.read_blob(oid)
        except GitError as e:
            raise ReadError(str(e), ref=ref) from e

        return compile_template(str(ref), raw)

    def _find_after_sync(self, ref: FileRef, cancel: Optional[threading.Event]) -> str:
        # A fetch can fail after the commit already landed (ref lock held by a
        # concurrent fetch), so the second lookup runs regardless.
        sync_error: Optional[SyncError] = None
        try:
            self.sync(cancel=cancel)
        except SyncError as e:
            logger.warning(f"Sync before retry of {ref} failed, looking up again anyway: {e}")
            sync_error = e

        try:
            return self.find_file(ref)
        except CommitNotFoundError as e:
            if sync_error is None:
                raise
            raise e from sync_error

    def sync(self, cancel: Optional[threading.Event] = None) -> SyncResult:
        if self._flight is None:
            return self._fetch(cancel)
        return self._flight.do(lambda: self._fetch(cancel))

    def _fetch(self, cancel: Optional[threading.Event]) -> SyncResult:
        try:
            changed = self.git.fetch(
                self.remote,
                auth=self.auth,
                timeout=self.sync_timeout,
                cancel=cancel,
            )
        except GitError as e:
            logger.warning(f"Sync with {self.remote} failed: {e}")
            raise SyncError(str(e)) from e

        result = SyncResult.UPDATED if changed else SyncResult.ALREADY_UP_TO_DATE
        logger.info(f"Sync with {self.remote}: {result.value}")
        return result
