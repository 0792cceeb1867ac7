"""
stock_services.operations -- operator-facing stock API.

Responsibility:
    The small API the surrounding console calls: create a transfer, save an
    opname, auto-fill and submit a purchase order, allocate a SKU, register
    catalog entries, and read stock views.  Each call:

      1. checks the actor's permission (injected PermissionAuthority),
      2. binds a log context (correlation id, actor, operation, branch),
      3. runs the kernel service inside its own transaction
         (``session_scope``),
      4. retries the whole transaction on contention, up to the configured
         bound, then raises RetryExhaustedError.

    Kernel services never commit; this module owns every transaction
    boundary.

Rejected transfers:
    A transfer that fails on stock is rolled back completely.  When
    ``record_rejected_transfers`` is on, the request is then written as a
    ``rejected`` TransferRecord in a second, separate transaction, and the
    original InsufficientStockError is re-raised.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from stock_config import (
    ADD_STOCK,
    STOCK_OPNAME,
    TRANSFER_STOCK,
    VIEW_INVENTORY,
    StockSettings,
)
from stock_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from stock_kernel.db.immutability import register_immutability_listeners
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import (
    BranchInfo,
    CountedLine,
    LowStockAlert,
    OpnameRecord,
    PurchaseOrderRecord,
    StockLevel,
    TransferLineRequest,
    TransferRecord,
)
from stock_kernel.domain.replenishment import DraftLine, PurchaseOrderDraft
from stock_kernel.domain.units import ProductDefinition, ProductUnit
from stock_kernel.exceptions import InsufficientStockError, StockKernelError
from stock_kernel.logging_config import LogContext, configure_logging, get_logger
from stock_kernel.selectors.stock_selector import StockSelector
from stock_kernel.services.catalog_service import CatalogService
from stock_kernel.services.opname_service import OpnameService
from stock_kernel.services.replenishment_service import ReplenishmentService, apply_plan
from stock_kernel.services.sku_service import SkuAllocator
from stock_kernel.services.stock_ledger import StockLedger
from stock_kernel.services.transfer_service import TransferService
from stock_services.authority import (
    PermissionAuthority,
    RolePermissionAuthority,
    require_permission,
)
from stock_services.retry import RetryPolicy, run_with_retry

logger = get_logger("services.operations")

T = TypeVar("T")


@dataclass(frozen=True)
class Actor:
    """Who is calling: an identity and the role they act under."""

    id: UUID
    role: str | None = None


class StockOperations:
    """
    Transaction-owning facade over the stock kernel.

    Contract:
        Every public method either returns the created record / view or
        raises a typed StockKernelError.  No partial effects survive a
        raised error.
    """

    def __init__(
        self,
        settings: StockSettings,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        authority: PermissionAuthority | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._settings = settings
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._authority = authority or RolePermissionAuthority.from_settings(settings)
        self._retry_policy = RetryPolicy(
            max_attempts=settings.max_retry_attempts,
            backoff_seconds=settings.retry_backoff_seconds,
        )
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: StockSettings,
        clock: Clock | None = None,
        authority: PermissionAuthority | None = None,
        create_schema: bool = False,
    ) -> StockOperations:
        """Initialize logging, the engine and the immutability listeners
        from ``settings`` and build an instance on the global session
        factory."""
        configure_logging(level=settings.log_level)
        init_engine_from_url(settings.database_url)
        register_immutability_listeners()
        if create_schema:
            create_tables()
        return cls(settings, get_session_factory(), clock=clock, authority=authority)

    @property
    def settings(self) -> StockSettings:
        return self._settings

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        actor: Actor,
        permission: str,
        work: Callable[[Session], T],
        branch_id: UUID | None = None,
    ) -> T:
        require_permission(self._authority, actor.role, permission)

        def attempt() -> T:
            with session_scope(self._session_factory) as session:
                return work(session)

        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(actor.id),
            operation=operation,
            branch_id=str(branch_id) if branch_id is not None else None,
        ):
            return run_with_retry(operation, attempt, self._retry_policy, self._sleep)

    @property
    def _places(self) -> int:
        return self._settings.quantity_decimal_places

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    def create_transfer(
        self,
        actor: Actor,
        source_branch_id: UUID,
        destination_branch_id: UUID,
        lines: Sequence[TransferLineRequest],
        notes: str | None = None,
    ) -> TransferRecord:
        """
        Move stock between branches, all lines or none.

        Raises:
            InvalidTransferError, InsufficientStockError, UnknownUnitError,
            InvalidQuantityError, ProductNotFoundError, BranchNotFoundError,
            BranchInactiveError, PermissionDeniedError, RetryExhaustedError.
        """
        lines = list(lines)

        def work(session: Session) -> TransferRecord:
            service = TransferService(session, self._clock, self._places)
            return service.transfer(
                source_branch_id, destination_branch_id, lines, actor.id, notes,
            )

        try:
            return self._run(
                "create_transfer", actor, TRANSFER_STOCK, work, branch_id=source_branch_id,
            )
        except InsufficientStockError as exc:
            if self._settings.record_rejected_transfers:
                try:
                    self._record_rejected_transfer(
                        actor, source_branch_id, destination_branch_id, lines, notes, str(exc),
                    )
                except StockKernelError as record_exc:
                    logger.warning(
                        "transfer_rejection_not_recorded",
                        extra={
                            "source_branch_id": str(source_branch_id),
                            "destination_branch_id": str(destination_branch_id),
                            "error_type": type(record_exc).__name__,
                            "error": str(record_exc),
                        },
                    )
            raise

    def _record_rejected_transfer(self, actor, source_branch_id, destination_branch_id,
                                  lines, notes, reason) -> TransferRecord:
        def work(session: Session) -> TransferRecord:
            service = TransferService(session, self._clock, self._places)
            return service.record_rejection(
                source_branch_id, destination_branch_id, lines, actor.id, reason, notes,
            )

        return self._run(
            "reject_transfer", actor, TRANSFER_STOCK, work, branch_id=source_branch_id,
        )

    # ------------------------------------------------------------------
    # Opname
    # ------------------------------------------------------------------

    def save_opname(
        self,
        actor: Actor,
        branch_id: UUID,
        counted_lines: Sequence[CountedLine],
        scope_product_ids: Iterable[UUID] | None = None,
        notes: str | None = None,
    ) -> OpnameRecord:
        """
        Reconcile a branch's count against stock on hand at save time.

        Raises:
            DuplicateCountLineError, InvalidQuantityError, UnknownUnitError,
            ProductNotFoundError, BranchNotFoundError, BranchInactiveError,
            PermissionDeniedError, RetryExhaustedError.
        """
        counted_lines = list(counted_lines)
        scope = list(scope_product_ids) if scope_product_ids is not None else None

        def work(session: Session) -> OpnameRecord:
            service = OpnameService(session, self._clock, self._places)
            return service.reconcile(branch_id, counted_lines, actor.id, scope, notes)

        return self._run("save_opname", actor, STOCK_OPNAME, work, branch_id=branch_id)

    # ------------------------------------------------------------------
    # Replenishment
    # ------------------------------------------------------------------

    def auto_fill_replenishment(
        self,
        actor: Actor,
        draft: PurchaseOrderDraft,
    ) -> list[DraftLine]:
        """
        Append a line to ``draft`` for every under-threshold product that is
        not already in it.  Returns the added lines.

        The draft is only changed after the read transaction succeeded, so a
        retried read never appends twice.
        """
        def work(session: Session) -> list[DraftLine]:
            return ReplenishmentService(session, self._clock).plan(draft)

        new_lines = self._run(
            "auto_fill_replenishment",
            actor,
            ADD_STOCK,
            work,
            branch_id=draft.destination_branch_id,
        )
        return apply_plan(draft, new_lines)

    def submit_purchase_order(
        self,
        actor: Actor,
        draft: PurchaseOrderDraft,
        notes: str | None = None,
        expected_date: date | None = None,
    ) -> PurchaseOrderRecord:
        def work(session: Session) -> PurchaseOrderRecord:
            service = ReplenishmentService(session, self._clock)
            return service.submit(draft, actor.id, notes, expected_date)

        return self._run(
            "submit_purchase_order",
            actor,
            ADD_STOCK,
            work,
            branch_id=draft.destination_branch_id,
        )

    # ------------------------------------------------------------------
    # SKU and catalog
    # ------------------------------------------------------------------

    def allocate_sku(
        self,
        actor: Actor,
        category_name: str,
        on: date | datetime | None = None,
    ) -> str:
        """
        Raises:
            InvalidCategoryError, PermissionDeniedError, RetryExhaustedError.
        """
        def work(session: Session) -> str:
            return SkuAllocator(session, self._clock).allocate(category_name, actor.id, on)

        return self._run("allocate_sku", actor, ADD_STOCK, work)

    def register_branch(self, actor: Actor, code: str, name: str) -> BranchInfo:
        def work(session: Session) -> BranchInfo:
            return CatalogService(session, self._clock).register_branch(code, name, actor.id)

        return self._run("register_branch", actor, ADD_STOCK, work)

    def set_branch_active(self, actor: Actor, branch_id: UUID, is_active: bool) -> BranchInfo:
        def work(session: Session) -> BranchInfo:
            return CatalogService(session, self._clock).set_branch_active(
                branch_id, is_active, actor.id,
            )

        return self._run("set_branch_active", actor, ADD_STOCK, work, branch_id=branch_id)

    def register_product(
        self,
        actor: Actor,
        name: str,
        base_unit: str | None = None,
        *,
        sku: str | None = None,
        category: str | None = None,
        units: Sequence[ProductUnit] = (),
        min_stock_alert: Decimal = Decimal("0"),
        unit_cost: Decimal = Decimal("0"),
        supplier: str | None = None,
    ) -> ProductDefinition:
        """Register a product; ``base_unit`` defaults to the configured one."""
        base_unit = base_unit or self._settings.default_base_unit

        def work(session: Session) -> ProductDefinition:
            return CatalogService(session, self._clock).register_product(
                name,
                base_unit,
                actor.id,
                sku=sku,
                category=category,
                units=units,
                min_stock_alert=min_stock_alert,
                unit_cost=unit_cost,
                supplier=supplier,
            )

        return self._run("register_product", actor, ADD_STOCK, work)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def stock_level(self, actor: Actor, product_id: UUID, branch_id: UUID) -> Decimal:
        def work(session: Session) -> Decimal:
            return StockLedger(session, self._clock, self._places).get(product_id, branch_id)

        return self._run("stock_level", actor, VIEW_INVENTORY, work, branch_id=branch_id)

    def stock_for_branch(self, actor: Actor, branch_id: UUID) -> list[StockLevel]:
        def work(session: Session) -> list[StockLevel]:
            return StockSelector(session).stock_for_branch(branch_id)

        return self._run("stock_for_branch", actor, VIEW_INVENTORY, work, branch_id=branch_id)

    def low_stock_alerts(
        self,
        actor: Actor,
        branch_id: UUID | None = None,
    ) -> list[LowStockAlert]:
        def work(session: Session) -> list[LowStockAlert]:
            return StockSelector(session).low_stock_alerts(branch_id)

        return self._run("low_stock_alerts", actor, VIEW_INVENTORY, work, branch_id=branch_id)
