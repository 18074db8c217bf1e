"""
Loader for whitelist-self configuration files.

A configuration file is a JSON array of rules::

    [
        {
            "SG": "sg-12345",
            "Name": "[aws-utils] home - ${USER}",
            "Port": 443
        },
        {
            "SG": "sg-abcdef",
            "Name": "[aws-utils] home - SSH",
            "Role": "arn:aws:iam::112233445566:role/devops-access",
            "Port": 22
        }
    ]

Keys are matched case-insensitively. ``Port`` defaults to 443 and
``Role`` is optional. Environment variables in ``Name`` are expanded
once, when the file is loaded.
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from ..core.exceptions import ConfigError
from ..core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PORT = 443
MAX_PORT = 65535

_ENV_VAR = re.compile(r"\$(?:\{(?P<braced>[A-Za-z_][A-Za-z0-9_]*)\}|(?P<bare>[A-Za-z_][A-Za-z0-9_]*))")


@dataclass
class WhitelistEntry:
    """
    One rule from a whitelist-self configuration file.

    Attributes:
        group_id: Security group to update
        name: Rule description, unique within the group
        port: TCP port to open
        role: Role ARN to assume before touching the group
    """

    group_id: str
    name: str
    port: int = DEFAULT_PORT
    role: Optional[str] = None


def expand_env(value: str, environ: Optional[Mapping[str, str]] = None) -> str:
    """
    Expand ``$VAR`` and ``${VAR}`` references; unset variables become empty.

    >>> expand_env("home - ${USER}", {"USER": "steve"})
    'home - steve'
    """
    env = os.environ if environ is None else environ

    def replace(match: re.Match) -> str:
        name = match.group("braced") or match.group("bare")
        return env.get(name, "")

    return _ENV_VAR.sub(replace, value)


def parse_entry(
    raw: Dict[str, Any],
    index: int,
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> WhitelistEntry:
    """
    Build a WhitelistEntry from one decoded JSON object.

    Raises:
        ConfigError: the record is not an object, has no SG, or a bad port
    """
    if not isinstance(raw, dict):
        raise ConfigError(f"Rule {index} is not a JSON object", path=path)

    fields = {str(key).lower(): value for key, value in raw.items()}

    group_id = fields.get("sg") or ""
    if not isinstance(group_id, str) or not group_id:
        raise ConfigError(f"Rule {index} has no SG set", path=path)

    name = fields.get("name") or ""
    if not isinstance(name, str):
        raise ConfigError(f"Rule {index} has a non-string Name", path=path)
    name = expand_env(name, environ)
    if not name:
        logger.warning(f"Rule {index} for {group_id} has no Name field set")

    port = fields.get("port") or DEFAULT_PORT
    if not isinstance(port, int) or isinstance(port, bool) or not 0 < port <= MAX_PORT:
        raise ConfigError(f"Rule {index} has an invalid Port: {port!r}", path=path)

    role = fields.get("role") or None
    if role is not None and not isinstance(role, str):
        raise ConfigError(f"Rule {index} has a non-string Role", path=path)

    return WhitelistEntry(group_id=group_id, name=name, port=port, role=role)


def load_whitelist_config(
    path: str,
    environ: Optional[Mapping[str, str]] = None,
) -> List[WhitelistEntry]:
    """
    Read and parse a whitelist-self configuration file.

    Args:
        path: JSON file to load
        environ: Mapping used for variable expansion (defaults to os.environ)

    Returns:
        Entries in file order

    Raises:
        ConfigError: the file cannot be read or is not a valid rule list
    """
    try:
        with open(path, encoding="utf-8") as handle:
            data = json.load(handle)
    except OSError as e:
        raise ConfigError(f"Failed to read {path}: {e}", path=path)
    except ValueError as e:
        raise ConfigError(f"Error loading JSON: {e}", path=path)

    if not isinstance(data, list):
        raise ConfigError("Expected a JSON array of rules", path=path)

    entries = [parse_entry(raw, index, path, environ) for index, raw in enumerate(data)]
    logger.debug(f"Loaded {len(entries)} rules from {path}")
    return entries
