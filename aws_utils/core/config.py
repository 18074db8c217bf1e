"""
Runtime settings read from the environment.

Command-line options take precedence; these are the defaults the CLI
falls back to.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_REGION = "us-east-1"
DEFAULT_IP_SERVICE = "http://ip-api.com/json/"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or default


def _env_int(name: str, default: int) -> int:
    value = _env(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass
class Settings:
    """
    Defaults for the CLI, read from the environment when instantiated.

    Unset or empty variables fall back to the built-in default; a
    non-numeric timeout or retry count is ignored the same way.
    """

    # AWS
    profile: Optional[str] = field(default_factory=lambda: _env("AWS_PROFILE"))
    region: str = field(
        default_factory=lambda: _env("AWS_REGION", _env("AWS_DEFAULT_REGION", DEFAULT_REGION))
    )
    max_retries: int = field(default_factory=lambda: _env_int("AWS_UTILS_MAX_RETRIES", 3))
    timeout: int = field(default_factory=lambda: _env_int("AWS_UTILS_TIMEOUT", 30))

    # Default role-list file for multi-account commands
    roles_path: Optional[str] = field(default_factory=lambda: _env("AWS_UTILS_ROLES"))

    # whitelist-self
    ip_service: str = field(
        default_factory=lambda: _env("AWS_UTILS_IP_SERVICE", DEFAULT_IP_SERVICE)
    )

    # rotate-keys
    credentials_path: Optional[str] = field(
        default_factory=lambda: _env("AWS_SHARED_CREDENTIALS_FILE")
    )

    # Any non-empty DEBUG value turns on debug logging, botocore included
    debug: bool = field(default_factory=lambda: bool(_env("DEBUG")))
