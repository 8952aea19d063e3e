#!/usr/bin/env python3
"""
gitplate: serve templates rendered straight out of a git repository

Startup:
  1. Load config (YAML + GITPLATE_* env vars), apply command line overrides
  2. Validate the SSH key, open the local repo, wrap it in the LRU cache
  3. Optionally fetch the remote once
  4. Serve /raw and /md5 on host:port (threaded)

Usage:
  gitplate -p 80 --no-sync /srv/templates
  python -m server -c config/server.defaults.yml
"""

import logging
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

import click
import paramiko

from cache.cached_repo import CachedTemplateRepo
from repo.errors import SyncError
from repo.git import GitAuth, GitError, GitRepository
from repo.store import GitTemplateRepo, SyncResult, TemplateRepo

from .app import create_app
from .config import ServerConfig, load_config

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def load_private_key(path: str) -> paramiko.PKey:
    """Parse a private key file, trying Ed25519, RSA, then ECDSA."""
    for key_class in [paramiko.Ed25519Key, paramiko.RSAKey, paramiko.ECDSAKey]:
        try:
            return key_class.from_private_key_file(path)
        except (paramiko.SSHException, ValueError):
            continue
    raise ValueError(f"could not parse SSH key: {path}")


def resolve_auth(config: ServerConfig) -> GitAuth:
    key_path = config.git.key_path
    if os.path.isfile(key_path):
        load_private_key(key_path)
        logger.info(f"Using SSH key {key_path} for user {config.git.user}")
        return GitAuth(user=config.git.user, key_path=key_path)

    if config.key_path_is_default:
        logger.warning(f"No SSH private key at {key_path}, fetching without one")
        return GitAuth(user=config.git.user)

    raise FileNotFoundError(f"SSH key not found: {key_path}")


def open_repo(config: ServerConfig) -> TemplateRepo:
    """Build the template repo described by `config`, syncing once if asked to."""
    auth = resolve_auth(config)
    git = GitRepository.open(str(config.repo_path))

    repo: TemplateRepo = GitTemplateRepo(
        git,
        auth=auth,
        remote=config.git.remote,
        sync_timeout=config.sync_timeout_sec,
        coalesce_sync=config.coalesce_sync,
    )
    if config.cache_size > 0:
        repo = CachedTemplateRepo(repo, config.cache_size)

    if config.sync_on_start:
        if repo.sync() is SyncResult.UPDATED:
            logger.info("repo has been updated")
        else:
            logger.info("repo is already up-to-date")

    return repo


def apply_overrides(
    config: ServerConfig,
    path: Optional[Path],
    git_user: Optional[str],
    key_path: Optional[str],
    sync: Optional[bool],
    port: Optional[int],
) -> ServerConfig:
    git = config.git
    if git_user is not None:
        git = replace(git, user=git_user)
    if key_path is not None:
        git = replace(git, key_path=os.path.expanduser(key_path))

    changes = {"git": git}
    if path is not None:
        changes["repo_path"] = path
    if sync is not None:
        changes["sync_on_start"] = sync
    if port is not None:
        changes["port"] = port
    return replace(config, **changes)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("path", required=False, type=click.Path(file_okay=False, path_type=Path))
@click.option("-u", "--git-user", help="git user used to fetch the remote repo")
@click.option("-k", "--key-path", help="path to private key for authorization")
@click.option("--sync/--no-sync", default=None, help="sync remote when starting up")
@click.option("-p", "--port", type=click.IntRange(1, 65535), help="http port to listen on")
@click.option(
    "-c", "--config", "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML config file",
)
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(
    path: Optional[Path],
    git_user: Optional[str],
    key_path: Optional[str],
    sync: Optional[bool],
    port: Optional[int],
    config_path: Optional[Path],
    debug: bool,
) -> None:
    """Serve templates from the git repository at PATH (default ".")."""
    try:
        config = load_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    config = apply_overrides(config, path, git_user, key_path, sync, port)
    logging.basicConfig(format=LOG_FORMAT, level="DEBUG" if debug else config.log_level)

    try:
        repo = open_repo(config)
    except SyncError as e:
        logger.error(f"failed to fetch remote: {e}")
        sys.exit(1)
    except (GitError, FileNotFoundError, ValueError) as e:
        logger.error(f"failed to open template repo: {e}")
        sys.exit(1)

    app = create_app(repo)
    logger.info(f"try to bind to {config.host}:{config.port}")
    try:
        app.run(host=config.host, port=config.port, threaded=True)
    finally:
        if isinstance(repo, CachedTemplateRepo):
            logger.info(f"Template cache: {repo.cache.format_report()}")


if __name__ == "__main__":
    main()
