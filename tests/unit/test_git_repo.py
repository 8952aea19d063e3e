#!/usr/bin/env python3
"""
Integration tests against real git repositories
Builds origin/author/clone repos under tmp_path (see conftest.py).
"""

import subprocess
import sys
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from cache.cached_repo import CachedTemplateRepo
from repo.errors import (
    CommitNotFoundError,
    FileNotInCommitError,
    MissingKeyError,
    ReadError,
    SyncError,
    TemplateParseError,
)
from repo.git import GitAuth, GitError, GitRepository
from repo.reference import FileRef
from repo.store import GitTemplateRepo, SyncResult
from server.digest import md5_line

MISSING = "0000000000000000000000000000000000000000"


@pytest.fixture
def git(git_workspace):
    return GitRepository.open(str(git_workspace.clone))


class TestGitRepository:

    def test_open_rejects_non_repo(self, tmp_path):
        with pytest.raises(GitError):
            GitRepository.open(str(tmp_path))

    def test_has_commit(self, git, git_workspace):
        assert git.has_commit(git_workspace.init_commit)
        assert not git.has_commit(MISSING)
        assert not git.has_commit("HEAD")
        assert not git.has_commit(git_workspace.init_commit[:7])

    def test_find_blob(self, git, git_workspace):
        sha = git_workspace.init_commit
        oid = git.find_blob(sha, "templates/hi.txt")

        assert oid is not None
        assert git.read_blob(oid) == b"Hi, {{.who}}!\n"

    def test_find_blob_rejects_dirs_and_missing(self, git, git_workspace):
        sha = git_workspace.init_commit
        assert git.find_blob(sha, "templates") is None
        assert git.find_blob(sha, "templates/") is None
        assert git.find_blob(sha, "templates/nope.txt") is None
        assert git.find_blob(sha, "") is None
        assert git.find_blob(sha, "templates/*.txt") is None

    def test_read_blob_failure(self, git):
        with pytest.raises(GitError):
            git.read_blob(MISSING)

    def test_fetch_reports_changes(self, git, git_workspace):
        assert git.fetch("origin") is False

        new_commit = git_workspace.commit_file("templates/bye.txt", "Bye, {{ who }}!\n")
        assert not git.has_commit(new_commit)

        assert git.fetch("origin") is True
        assert git.has_commit(new_commit)

    def test_fetch_unknown_remote(self, git):
        with pytest.raises(GitError) as exc_info:
            git.fetch("nowhere")
        assert exc_info.value.returncode != 0

    def test_fetch_cancelled_before_start(self, git):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(GitError, match="cancelled"):
            git.fetch("origin", cancel=cancel)

    def test_fetch_with_auth_sets_ssh_command(self, git):
        auth = GitAuth(user="deploy", key_path="/keys/id_ed25519")
        with patch("repo.git.subprocess.Popen", wraps=subprocess.Popen) as popen:
            git.fetch("origin", auth=auth)
        fetch_calls = [c for c in popen.call_args_list if "fetch" in c.args[0]]
        assert len(fetch_calls) == 1
        env = fetch_calls[0].kwargs["env"]
        assert "-l deploy" in env["GIT_SSH_COMMAND"]
        assert "-i /keys/id_ed25519" in env["GIT_SSH_COMMAND"]
        assert env["GIT_TERMINAL_PROMPT"] == "0"


class TestGitAuth:

    def test_ssh_command_without_key(self):
        assert GitAuth().ssh_command() == "ssh -o BatchMode=yes -l git"

    def test_ssh_command_quotes_key_path(self):
        cmd = GitAuth(user="git", key_path="/home/me/my keys/id_rsa").ssh_command()
        assert "'/home/me/my keys/id_rsa'" in cmd


class TestGitTemplateRepo:

    def test_end_to_end_render(self, git, git_workspace):
        repo = GitTemplateRepo(git)
        ref = FileRef(git_workspace.init_commit, "templates/hi.txt")

        out = repo.get_template(ref, sync=True).render({"who": "world"})

        assert out == b"Hi, world!\n"
        assert md5_line(out, ref.path) == "07197f7673c0074a7e0a64839ba45dd5  hi.txt\n"

    def test_missing_key(self, git, git_workspace):
        repo = GitTemplateRepo(git)
        tpl = repo.get_template(FileRef(git_workspace.init_commit, "templates/hi.txt"))

        with pytest.raises(MissingKeyError):
            tpl.render({"oops": "world"})

    def test_find_file_failures(self, git, git_workspace):
        repo = GitTemplateRepo(git)

        with pytest.raises(CommitNotFoundError):
            repo.get_template(FileRef("", ""), sync=False)
        with pytest.raises(FileNotInCommitError):
            repo.get_template(FileRef(git_workspace.init_commit, ""), sync=False)

    def test_missing_commit_without_sync_never_fetches(self, git, git_workspace):
        repo = GitTemplateRepo(git)
        new_commit = git_workspace.commit_file("templates/bye.txt", "Bye\n")

        with patch.object(git, "fetch", wraps=git.fetch) as fetch:
            with pytest.raises(CommitNotFoundError):
                repo.get_template(FileRef(new_commit, "templates/bye.txt"), sync=False)
        fetch.assert_not_called()

    def test_missing_file_never_fetches(self, git, git_workspace):
        repo = GitTemplateRepo(git)

        with patch.object(git, "fetch", wraps=git.fetch) as fetch:
            for sync in (True, False):
                with pytest.raises(FileNotInCommitError):
                    repo.get_template(FileRef(git_workspace.init_commit, "nope.txt"), sync=sync)
        fetch.assert_not_called()

    def test_sync_on_miss_fetches_new_commit(self, git, git_workspace):
        repo = GitTemplateRepo(git)
        new_commit = git_workspace.commit_file("templates/bye.txt", "Bye, {{.who}}!\n")

        with patch.object(git, "fetch", wraps=git.fetch) as fetch:
            tpl = repo.get_template(FileRef(new_commit, "templates/bye.txt"), sync=True)
        assert fetch.call_count == 1
        assert tpl.render({"who": "world"}) == b"Bye, world!\n"

    def test_unknown_commit_after_sync(self, git):
        repo = GitTemplateRepo(git)

        with pytest.raises(CommitNotFoundError):
            repo.get_template(FileRef(MISSING, "templates/hi.txt"), sync=True)

    def test_sync_results(self, git, git_workspace):
        repo = GitTemplateRepo(git)
        assert repo.sync() is SyncResult.ALREADY_UP_TO_DATE

        git_workspace.commit_file("a.txt", "a\n")
        assert repo.sync() is SyncResult.UPDATED

    def test_sync_failure(self, git):
        repo = GitTemplateRepo(git, remote="nowhere")

        with pytest.raises(SyncError):
            repo.sync()
        with pytest.raises(CommitNotFoundError) as exc_info:
            repo.get_template(FileRef(MISSING, "templates/hi.txt"), sync=True)
        assert isinstance(exc_info.value.__cause__, SyncError)

    def test_parse_failure(self, git, git_workspace):
        repo = GitTemplateRepo(git)
        bad_commit = git_workspace.commit_file("templates/bad.txt", "{% for x in %}\n")

        with pytest.raises(TemplateParseError):
            repo.get_template(FileRef(bad_commit, "templates/bad.txt"), sync=True)

    def test_read_failure(self, git, git_workspace, monkeypatch):
        repo = GitTemplateRepo(git)

        def broken(oid):
            raise GitError("bad object")

        monkeypatch.setattr(git, "read_blob", broken)
        with pytest.raises(ReadError):
            repo.get_template(FileRef(git_workspace.init_commit, "templates/hi.txt"))

    def test_cached_end_to_end(self, git, git_workspace):
        inner = GitTemplateRepo(git)
        repo = CachedTemplateRepo(inner, 32)
        ref = FileRef(git_workspace.init_commit, "templates/hi.txt")

        with patch.object(inner, "get_template", wraps=inner.get_template) as resolve:
            first = repo.get_template(ref, sync=True).render({"who": "world"})
            second = repo.get_template(ref, sync=False).render({"who": "world"})

        assert resolve.call_count == 1
        assert first == second == b"Hi, world!\n"
