#!/usr/bin/env python3
"""
Git Access: Local Repository Reads + Remote Fetch

Thin wrapper around the `git` command line. Every call is a separate
subprocess, so one GitRepository can be shared between request threads.

Implements:
- has_commit(sha)         → bool
- find_blob(sha, path)    → blob id | None
- read_blob(oid)          → bytes
- fetch(remote, auth)     → True if any ref moved, False if already up-to-date

Failures of the git process itself (missing binary, timeout, non-zero exit
where one is not expected) raise GitError.
"""

import logging
import os
import shlex
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from .reference import is_commit_hash

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
POLL_INTERVAL = 0.1


class GitError(Exception):
    """A git command could not be run or exited with an error."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


@dataclass(frozen=True)
class GitAuth:
    """SSH credentials handed to git through GIT_SSH_COMMAND."""

    user: str = "git"
    key_path: Optional[str] = None

    def ssh_command(self) -> str:
        parts = ["ssh", "-o", "BatchMode=yes", "-l", self.user]
        if self.key_path:
            parts += ["-i", self.key_path, "-o", "IdentitiesOnly=yes"]
        return " ".join(shlex.quote(part) for part in parts)

    def env(self) -> Dict[str, str]:
        return {"GIT_SSH_COMMAND": self.ssh_command()}


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").strip()


class GitRepository:
    """
    A local git working copy (or bare repository).

    Args:
        path: Directory of the repository.
        git_binary: git executable to run.
        timeout: Timeout in seconds for local (non-network) commands.
    """

    def __init__(self, path: str = ".", git_binary: str = "git", timeout: float = DEFAULT_TIMEOUT):
        self.path = path
        self.git_binary = git_binary
        self.timeout = timeout

    @classmethod
    def open(cls, path: str = ".", **kwargs) -> "GitRepository":
        """Open an existing repository, raising GitError if `path` is not one."""
        repo = cls(path, **kwargs)
        result = repo._run(["rev-parse", "--git-dir"], check=False)
        if result.returncode != 0:
            raise GitError(
                f"not a git repository: {path}",
                returncode=result.returncode,
                stderr=_decode(result.stderr),
            )
        logger.debug(f"Opened git repository at {path}")
        return repo

    def __repr__(self) -> str:
        return f"GitRepository(path={self.path!r})"

    def _base_env(self) -> Dict[str, str]:
        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        env["GIT_LITERAL_PATHSPECS"] = "1"
        return env

    def _run(self, args: List[str], check: bool = True) -> subprocess.CompletedProcess:
        cmd = [self.git_binary, *args]
        try:
            result = subprocess.run(
                cmd,
                cwd=self.path,
                capture_output=True,
                timeout=self.timeout,
                env=self._base_env(),
            )
        except subprocess.TimeoutExpired as e:
            raise GitError(f"git {args[0]} timed out after {self.timeout}s") from e
        except OSError as e:
            raise GitError(f"failed to run git {args[0]}: {e}") from e

        if check and result.returncode != 0:
            stderr = _decode(result.stderr)
            raise GitError(
                f"git {args[0]} failed: {stderr}",
                returncode=result.returncode,
                stderr=stderr,
            )
        return result

    # ── Lookups ──

    def has_commit(self, sha: str) -> bool:
        # Only full hashes: refs like HEAD or short ids are not content-addressed.
        if not is_commit_hash(sha):
            return False
        result = self._run(["cat-file", "-e", f"{sha}^{{commit}}"], check=False)
        return result.returncode == 0

    def find_blob(self, sha: str, path: str) -> Optional[str]:
        """Return the blob id of `path` in commit `sha`, or None if it is not a file there."""
        if not path:
            return None
        result = self._run(["ls-tree", "-z", sha, "--", path], check=False)
        if result.returncode != 0:
            return None

        for entry in result.stdout.split(b"\0"):
            if not entry:
                continue
            meta, _, name = entry.partition(b"\t")
            fields = meta.split()
            if len(fields) != 3:
                continue
            _mode, obj_type, oid = fields
            if obj_type == b"blob" and name.decode("utf-8", errors="surrogateescape") == path:
                return oid.decode("ascii")
        return None

    def read_blob(self, oid: str) -> bytes:
        return self._run(["cat-file", "blob", oid]).stdout

    def ref_snapshot(self) -> Dict[str, str]:
        result = self._run(["for-each-ref", "--format=%(objectname) %(refname)"])
        snapshot = {}
        for line in _decode(result.stdout).splitlines():
            oid, _, name = line.partition(" ")
            if name:
                snapshot[name] = oid
        return snapshot

    # ── Remote ──

    def fetch(
        self,
        remote: str = "origin",
        auth: Optional[GitAuth] = None,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> bool:
        """
        Fetch `remote` into the local repository. Blocks until git exits.

        Returns:
            True if any local ref changed, False if already up-to-date.

        Raises:
            GitError: git failed, `timeout` elapsed, or `cancel` was set.
        """
        if cancel is not None and cancel.is_set():
            raise GitError("git fetch cancelled before start")

        before = self.ref_snapshot()

        env = self._base_env()
        if auth is not None:
            env.update(auth.env())

        cmd = [self.git_binary, "fetch", "--quiet", remote]
        logger.info(f"Fetching {remote} into {self.path}")
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=self.path,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=env,
            )
        except OSError as e:
            raise GitError(f"failed to run git fetch: {e}") from e

        deadline = time.monotonic() + timeout if timeout else None
        while True:
            try:
                _, stderr = proc.communicate(timeout=POLL_INTERVAL)
                break
            except subprocess.TimeoutExpired:
                if cancel is not None and cancel.is_set():
                    self._kill(proc)
                    raise GitError("git fetch cancelled")
                if deadline is not None and time.monotonic() >= deadline:
                    self._kill(proc)
                    raise GitError(f"git fetch timed out after {timeout}s")

        if proc.returncode != 0:
            message = _decode(stderr)
            raise GitError(
                f"git fetch {remote} failed: {message}",
                returncode=proc.returncode,
                stderr=message,
            )

        changed = self.ref_snapshot() != before
        logger.debug(f"Fetch of {remote} done (changed={changed})")
        return changed

    @staticmethod
    def _kill(proc: subprocess.Popen) -> None:
        proc.kill()
        proc.communicate()
