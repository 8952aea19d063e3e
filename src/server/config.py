"""Configuration loader for the template server."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from jsonschema import Draft7Validator

DEFAULT_KEY_PATH = "~/.ssh/id_rsa"

CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "repo_path": {"type": "string", "minLength": 1},
        "git": {
            "type": "object",
            "properties": {
                "user": {"type": "string", "minLength": 1},
                "key_path": {"type": "string"},
                "remote": {"type": "string", "minLength": 1},
            },
            "additionalProperties": False,
        },
        "sync_on_start": {"type": "boolean"},
        "sync_timeout_sec": {"type": ["number", "null"], "exclusiveMinimum": 0},
        "coalesce_sync": {"type": "boolean"},
        "cache_size": {"type": "integer", "minimum": 0},
        "host": {"type": "string", "minLength": 1},
        "port": {"type": "integer", "minimum": 1, "maximum": 65535},
        "log_level": {
            "type": "string",
            "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        },
    },
    "additionalProperties": False,
}

_validator = Draft7Validator(CONFIG_SCHEMA)


@dataclass(frozen=True)
class GitConfig:
    user: str
    key_path: str
    remote: str


@dataclass(frozen=True)
class ServerConfig:
    repo_path: Path
    git: GitConfig
    sync_on_start: bool
    sync_timeout_sec: Optional[float]
    coalesce_sync: bool
    cache_size: int
    host: str
    port: int
    log_level: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServerConfig":
        git_data = data.get("git", {})
        timeout = data.get("sync_timeout_sec")
        return cls(
            repo_path=Path(data.get("repo_path", ".")),
            git=GitConfig(
                user=git_data.get("user", "git"),
                key_path=os.path.expanduser(git_data.get("key_path", DEFAULT_KEY_PATH)),
                remote=git_data.get("remote", "origin"),
            ),
            sync_on_start=bool(data.get("sync_on_start", True)),
            sync_timeout_sec=float(timeout) if timeout is not None else None,
            coalesce_sync=bool(data.get("coalesce_sync", False)),
            cache_size=int(data.get("cache_size", 4096)),
            host=data.get("host", "0.0.0.0"),
            port=int(data.get("port", 8080)),
            log_level=data.get("log_level", "INFO"),
        )

    @property
    def key_path_is_default(self) -> bool:
        return self.git.key_path == os.path.expanduser(DEFAULT_KEY_PATH)


ENV_MAP = {
    "repo_path": "GITPLATE_REPO_PATH",
    "git.user": "GITPLATE_GIT_USER",
    "git.key_path": "GITPLATE_KEY_PATH",
    "git.remote": "GITPLATE_REMOTE",
    "sync_on_start": "GITPLATE_SYNC_ON_START",
    "sync_timeout_sec": "GITPLATE_SYNC_TIMEOUT_SEC",
    "coalesce_sync": "GITPLATE_COALESCE_SYNC",
    "cache_size": "GITPLATE_CACHE_SIZE",
    "host": "GITPLATE_HOST",
    "port": "GITPLATE_PORT",
    "log_level": "GITPLATE_LOG_LEVEL",
}

_INT_KEYS = {"cache_size", "port"}
_FLOAT_KEYS = {"sync_timeout_sec"}
_BOOL_KEYS = {"sync_on_start", "coalesce_sync"}


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def merge_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    merged = json.loads(json.dumps(config_data))  # deep copy via json

    for dotted_key, env_name in ENV_MAP.items():
        if env_name not in os.environ:
            continue
        value: Any = os.environ[env_name]
        target = merged
        parts = dotted_key.split(".")
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        last = parts[-1]
        if last in _INT_KEYS:
            value = int(value)
        elif last in _FLOAT_KEYS:
            value = float(value)
        elif last in _BOOL_KEYS:
            value = _parse_bool(value)
        elif last == "log_level":
            value = value.upper()
        target[last] = value

    return merged


def validate_config(data: Dict[str, Any]) -> None:
    errors = sorted(_validator.iter_errors(data), key=lambda e: list(e.path))
    if errors:
        messages = ", ".join(error.message for error in errors)
        raise ValueError(f"config validation failed: {messages}")


def load_config(config_path: str | Path | None = None) -> ServerConfig:
    data: Dict[str, Any] = {}
    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        data = load_yaml(path)

    data = merge_env_overrides(data)
    validate_config(data)
    return ServerConfig.from_dict(data)
