"""Shared fixtures: throw-away git repositories."""

import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

import pytest

HI_TEMPLATE = "Hi, {{.who}}!\n"


def run_git(cwd: Path, *args: str, env: dict) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        check=True,
        env=env,
    )
    return result.stdout.strip()


@dataclass
class GitWorkspace:
    """
    origin: bare repo standing in for the remote
    author: working copy that commits and pushes to origin
    clone:  the local clone the server reads from (never pushed to directly)
    """

    origin: Path
    author: Path
    clone: Path
    init_commit: str
    env: dict

    def git(self, cwd: Path, *args: str) -> str:
        return run_git(cwd, *args, env=self.env)

    def commit_file(self, path: str, content: str, message: str = "update") -> str:
        """Commit `path` in the author copy and push it to origin. Returns the new commit id."""
        target = self.author / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        self.git(self.author, "add", path)
        self.git(self.author, "commit", "-q", "-m", message)
        self.git(self.author, "push", "-q", "origin", "HEAD")
        return self.git(self.author, "rev-parse", "HEAD")


@pytest.fixture
def git_workspace(tmp_path):
    if shutil.which("git") is None:
        pytest.skip("git not installed")

    home = tmp_path / "home"
    home.mkdir()
    env = dict(
        os.environ,
        HOME=str(home),
        GIT_CONFIG_NOSYSTEM="1",
        GIT_AUTHOR_NAME="Test",
        GIT_AUTHOR_EMAIL="test@example.com",
        GIT_COMMITTER_NAME="Test",
        GIT_COMMITTER_EMAIL="test@example.com",
    )

    author = tmp_path / "author"
    author.mkdir()
    run_git(author, "init", "-q", env=env)
    (author / "templates").mkdir()
    (author / "templates" / "hi.txt").write_text(HI_TEMPLATE, encoding="utf-8")
    run_git(author, "add", "templates/hi.txt", env=env)
    run_git(author, "commit", "-q", "-m", "init", env=env)
    init_commit = run_git(author, "rev-parse", "HEAD", env=env)

    origin = tmp_path / "origin.git"
    run_git(tmp_path, "clone", "-q", "--bare", str(author), str(origin), env=env)
    run_git(author, "remote", "add", "origin", str(origin), env=env)

    clone = tmp_path / "clone"
    run_git(tmp_path, "clone", "-q", str(origin), str(clone), env=env)

    return GitWorkspace(origin=origin, author=author, clone=clone, init_commit=init_commit, env=env)
