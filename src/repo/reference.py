"""File references into a git repository."""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass

COMMIT_HASH_RE = re.compile(r"^[0-9a-f]{40}$")


def is_commit_hash(value: str) -> bool:
    return bool(value) and COMMIT_HASH_RE.match(value) is not None


@dataclass(frozen=True)
class FileRef:
    commit: str
    path: str

    def __str__(self) -> str:
        return f"{self.commit}::{self.path}"

    @property
    def key(self) -> str:
        return str(self)

    @property
    def basename(self) -> str:
        return posixpath.basename(self.path)
