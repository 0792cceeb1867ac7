"""
Configuration schema (``stock_config.schema``).

Frozen dataclasses for the settings the stock engine reads at runtime.
Validation happens in ``__post_init__`` so an invalid file can never produce
a settings object.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Permission names used at the operations boundary.
VIEW_INVENTORY = "view_inventory"
ADD_STOCK = "add_stock"
TRANSFER_STOCK = "transfer_stock"
STOCK_OPNAME = "stock_opname"

INVENTORY_PERMISSIONS = frozenset({VIEW_INVENTORY, ADD_STOCK, TRANSFER_STOCK, STOCK_OPNAME})


@dataclass(frozen=True)
class StockSettings:
    """
    Runtime settings for the stock engine.

    Attributes:
        database_url: SQLAlchemy URL of the ledger database.
        max_retry_attempts: Attempts per operation when contention is
            detected (>= 1).
        retry_backoff_seconds: Linear backoff unit between attempts.
        quantity_decimal_places: Fixed-point precision of base-unit
            quantities (0..9).
        default_base_unit: Base unit name used when a product is registered
            without one.
        record_rejected_transfers: Persist transfers that failed on stock.
        log_level: Root level for the ``stock_kernel`` loggers.
        role_permissions: role name -> permission names.
    """

    database_url: str = "sqlite:///stock.db"
    max_retry_attempts: int = 5
    retry_backoff_seconds: float = 0.01
    quantity_decimal_places: int = 3
    default_base_unit: str = "Pcs"
    record_rejected_transfers: bool = True
    log_level: str = "INFO"
    role_permissions: Mapping[str, frozenset[str]] = field(default_factory=dict)
    checksum: str | None = None

    def __post_init__(self):
        if not self.database_url:
            raise ValueError("database_url is required")
        if self.max_retry_attempts < 1:
            raise ValueError(
                f"max_retry_attempts must be >= 1, got {self.max_retry_attempts}"
            )
        if self.retry_backoff_seconds < 0:
            raise ValueError(
                f"retry_backoff_seconds cannot be negative, got {self.retry_backoff_seconds}"
            )
        if not 0 <= self.quantity_decimal_places <= 9:
            raise ValueError(
                "quantity_decimal_places must be between 0 and 9, "
                f"got {self.quantity_decimal_places}"
            )
        if not self.default_base_unit or not self.default_base_unit.strip():
            raise ValueError("default_base_unit is required")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log_level: {self.log_level!r}")
        object.__setattr__(self, "log_level", self.log_level.upper())

        normalized = {}
        for role, permissions in dict(self.role_permissions).items():
            unknown = set(permissions) - INVENTORY_PERMISSIONS
            if unknown:
                raise ValueError(
                    f"Role {role!r} has unknown permissions: {sorted(unknown)}"
                )
            normalized[role] = frozenset(permissions)
        object.__setattr__(self, "role_permissions", MappingProxyType(normalized))
