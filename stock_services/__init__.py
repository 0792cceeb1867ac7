"""
Operator-facing services over the stock kernel.

``StockOperations`` owns transactions, retries and permission checks; the
kernel below it only flushes.
"""

from stock_services.authority import (
    AllowAllAuthority,
    PermissionAuthority,
    RolePermissionAuthority,
    require_permission,
)
from stock_services.operations import Actor, StockOperations
from stock_services.retry import RetryPolicy, is_transient, run_with_retry

__all__ = [
    "Actor",
    "StockOperations",
    "PermissionAuthority",
    "RolePermissionAuthority",
    "AllowAllAuthority",
    "require_permission",
    "RetryPolicy",
    "run_with_retry",
    "is_transient",
]
