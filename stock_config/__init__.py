"""
Stock configuration (``stock_config``).

Single public entry point: ``get_active_config()``.  No other component
reads configuration files or environment variables.

Resolution order for the settings file:
    1. the ``path`` argument,
    2. the ``STOCK_CONFIG`` environment variable,
    3. the bundled ``sets/default.yaml``.

``DATABASE_URL`` in the environment overrides ``database_url`` from the
file.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path

from stock_config.loader import compute_checksum, load_settings, load_yaml_file, parse_settings
from stock_config.schema import (
    ADD_STOCK,
    INVENTORY_PERMISSIONS,
    STOCK_OPNAME,
    TRANSFER_STOCK,
    VIEW_INVENTORY,
    StockSettings,
)

_logger = logging.getLogger("stock_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

CONFIG_PATH_ENV = "STOCK_CONFIG"
DATABASE_URL_ENV = "DATABASE_URL"


def get_active_config(path: Path | str | None = None) -> StockSettings:
    """
    Load and validate the active settings.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
        ValueError: If the file holds unknown keys or invalid values.
    """
    if path is None:
        path = os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH
    path = Path(path)

    settings = load_settings(path)

    database_url = os.environ.get(DATABASE_URL_ENV)
    if database_url:
        settings = dataclasses.replace(settings, database_url=database_url)

    _logger.info(
        "stock_config_loaded",
        extra={
            "config_path": str(path),
            "checksum": settings.checksum,
            "role_count": len(settings.role_permissions),
            "database_url_from_env": bool(database_url),
        },
    )
    return settings


__all__ = [
    "get_active_config",
    "StockSettings",
    "load_settings",
    "load_yaml_file",
    "parse_settings",
    "compute_checksum",
    "DEFAULT_CONFIG_PATH",
    "VIEW_INVENTORY",
    "ADD_STOCK",
    "TRANSFER_STOCK",
    "STOCK_OPNAME",
    "INVENTORY_PERMISSIONS",
]
