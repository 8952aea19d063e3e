"""
Git-backed template resolution.

FileRef → GitTemplateRepo → CompiledTemplate → rendered bytes
"""

from .errors import (
    CommitNotFoundError,
    ErrorKind,
    FileNotInCommitError,
    MissingKeyError,
    ReadError,
    RenderError,
    SyncError,
    TemplateParseError,
    TemplateRepoError,
)
from .git import GitAuth, GitError, GitRepository
from .reference import FileRef, is_commit_hash
from .store import GitTemplateRepo, SyncResult, TemplateRepo
from .template import CompiledTemplate, compile_template, render

__all__ = [
    'FileRef', 'is_commit_hash',
    'TemplateRepo', 'GitTemplateRepo', 'SyncResult',
    'GitRepository', 'GitAuth', 'GitError',
    'CompiledTemplate', 'compile_template', 'render',
    'ErrorKind', 'TemplateRepoError',
    'CommitNotFoundError', 'FileNotInCommitError', 'SyncError',
    'ReadError', 'TemplateParseError', 'MissingKeyError', 'RenderError',
]
