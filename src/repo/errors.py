"""Classified failures raised while resolving and rendering templates."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from .reference import FileRef


class ErrorKind(str, Enum):
    COMMIT_NOT_FOUND = "commit_not_found"
    FILE_NOT_FOUND = "file_not_found"
    SYNC_FAILED = "sync_failed"
    IO_FAILED = "io_failed"
    PARSE_FAILED = "parse_failed"
    MISSING_KEY = "missing_key"
    RENDER_FAILED = "render_failed"


NOT_FOUND_KINDS = frozenset({ErrorKind.COMMIT_NOT_FOUND, ErrorKind.FILE_NOT_FOUND})


class TemplateRepoError(Exception):
    kind: ErrorKind = ErrorKind.RENDER_FAILED
    default_message = "template error"

    def __init__(self, message: Optional[str] = None, ref: Optional[FileRef] = None) -> None:
        self.message = message or self.default_message
        self.ref = ref
        super().__init__(self.message)

    @property
    def not_found(self) -> bool:
        return self.kind in NOT_FOUND_KINDS

    def __str__(self) -> str:
        if self.ref is None:
            return self.message
        return f"{self.message}: {self.ref}"


class CommitNotFoundError(TemplateRepoError):
    kind = ErrorKind.COMMIT_NOT_FOUND
    default_message = "failed to find the commit in repo"


class FileNotInCommitError(TemplateRepoError):
    kind = ErrorKind.FILE_NOT_FOUND
    default_message = "failed to find the file in commit"


class SyncError(TemplateRepoError):
    kind = ErrorKind.SYNC_FAILED
    default_message = "failed to fetch remote"


class ReadError(TemplateRepoError):
    kind = ErrorKind.IO_FAILED
    default_message = "failed to read file content"


class TemplateParseError(TemplateRepoError):
    kind = ErrorKind.PARSE_FAILED
    default_message = "failed to parse template"


class MissingKeyError(TemplateRepoError):
    kind = ErrorKind.MISSING_KEY
    default_message = "map has no entry for key"


class RenderError(TemplateRepoError):
    kind = ErrorKind.RENDER_FAILED
    default_message = "failed to render template"
