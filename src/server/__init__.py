"""
gitplate HTTP server

Provides:
- create_app (Flask app with /raw and /md5 routes)
- ServerConfig / load_config (YAML + env configuration)
- open_repo (wires git repo, sync policy and cache from a config)
"""

from .app import create_app
from .cli import open_repo
from .config import ServerConfig, load_config
from .digest import md5_line

__all__ = ['create_app', 'open_repo', 'ServerConfig', 'load_config', 'md5_line']
