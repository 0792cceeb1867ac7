"""
Configuration loader (``stock_config.loader``).

Reads a YAML settings file and parses it into ``StockSettings``.  Runtime
callers go through ``stock_config.get_active_config()``.

Failure modes:
    - Missing file -> FileNotFoundError propagates.
    - Malformed YAML -> yaml.YAMLError propagates.
    - Unknown keys or invalid values -> ValueError.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from stock_config.schema import StockSettings

_KNOWN_KEYS = frozenset(f.name for f in fields(StockSettings)) - {"checksum"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load one YAML file.  An empty file gives an empty dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_settings(data: dict[str, Any]) -> StockSettings:
    """
    Build StockSettings from a parsed mapping.

    Raises:
        ValueError: On unknown keys or invalid values.
    """
    unknown = set(data) - _KNOWN_KEYS
    if unknown:
        raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

    kwargs = dict(data)
    permissions = kwargs.get("role_permissions")
    if permissions is not None:
        if not isinstance(permissions, dict):
            raise ValueError("role_permissions must be a mapping of role -> list")
        kwargs["role_permissions"] = {
            str(role): frozenset(perms or ()) for role, perms in permissions.items()
        }
    return StockSettings(**kwargs, checksum=compute_checksum(data))


def load_settings(path: Path) -> StockSettings:
    return parse_settings(load_yaml_file(path))
