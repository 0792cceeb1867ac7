"""
stock_services.authority -- role-permission checks at the operations boundary.

Responsibility:
    Decide whether an actor's role grants the permission an operation needs.
    The role -> permission table is external policy data (from config); the
    ledger itself never looks at roles.

Architecture position:
    Services layer.  Injected into StockOperations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping

from stock_config import StockSettings
from stock_kernel.exceptions import PermissionDeniedError
from stock_kernel.logging_config import get_logger

logger = get_logger("services.authority")


class PermissionAuthority(ABC):
    """Capability check injected at the API boundary."""

    @abstractmethod
    def check(self, role: str | None, permission: str) -> tuple[bool, str]:
        """
        Returns:
            (allowed, reason).  reason is empty when allowed, or a short
            message when denied.
        """


class RolePermissionAuthority(PermissionAuthority):
    """Authority backed by a static role -> permissions table."""

    def __init__(self, role_permissions: Mapping[str, Iterable[str]]):
        self._table = {role: frozenset(perms) for role, perms in role_permissions.items()}

    @classmethod
    def from_settings(cls, settings: StockSettings) -> RolePermissionAuthority:
        return cls(settings.role_permissions)

    def permissions_for(self, role: str | None) -> frozenset[str]:
        if role is None:
            return frozenset()
        return self._table.get(role, frozenset())

    def check(self, role: str | None, permission: str) -> tuple[bool, str]:
        if not role:
            return (False, "no role supplied")
        if role not in self._table:
            return (False, f"unknown role '{role}'")
        if permission not in self._table[role]:
            return (False, f"permission '{permission}' not granted to role '{role}'")
        return (True, "")


class AllowAllAuthority(PermissionAuthority):
    """Grants everything.  For tools and tests that run without roles."""

    def check(self, role: str | None, permission: str) -> tuple[bool, str]:
        return (True, "")


def require_permission(authority: PermissionAuthority, role: str | None, permission: str) -> None:
    """
    Raises:
        PermissionDeniedError: If ``authority`` denies ``permission``.
    """
    allowed, reason = authority.check(role, permission)
    if not allowed:
        logger.warning(
            "permission_denied",
            extra={"role": role, "permission": permission, "reason": reason},
        )
        raise PermissionDeniedError(role, permission)
