"""
OpnameService -- reconcile counted stock against the ledger.

Responsibility:
    Takes a branch's physical count, computes each product's variance
    against the stock on hand *at save time*, applies the variance as a
    ledger delta and writes an immutable opname record.

Architecture position:
    Kernel > Services.  Flush-only.

Semantics:
    - System stock is read under lock when the opname is saved, not when the
      operator opened the count form.  Applying ``actual - system_now`` as a
      delta (rather than overwriting with ``actual``) keeps the
      no-negative-stock check in StockLedger.apply_delta.
    - Products in scope but not counted get actual = system (difference 0).
      Uncounted items are never assumed to be zero.
    - Zero-difference lines are recorded but cause no ledger write.
    - A count may be entered in any unit of the product; it is converted to
      base units first.

Failure modes:
    - DuplicateCountLineError: a product counted twice in one opname.
    - InvalidQuantityError: a negative count.
    - BranchNotFoundError / BranchInactiveError / ProductNotFoundError /
      UnknownUnitError.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from stock_kernel.db.types import QUANTITY_DECIMAL_PLACES, round_quantity, to_decimal
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import CountedLine, MovementType, OpnameLine, OpnameRecord
from stock_kernel.exceptions import DuplicateCountLineError, InvalidQuantityError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.audit_event import AuditAction
from stock_kernel.models.opname import OpnameLineModel, StockOpnameModel
from stock_kernel.selectors.catalog_selector import CatalogSelector
from stock_kernel.services.audit_service import AuditService
from stock_kernel.services.base import BaseService
from stock_kernel.services.sequence_service import SequenceService
from stock_kernel.services.stock_ledger import StockLedger

logger = get_logger("services.opname")


class OpnameService(BaseService[StockOpnameModel]):

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        decimal_places: int = QUANTITY_DECIMAL_PLACES,
        ledger: StockLedger | None = None,
        audit: AuditService | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._decimal_places = decimal_places
        self._ledger = ledger or StockLedger(session, self._clock, decimal_places)
        self._audit = audit or AuditService(session, self._clock)
        self._catalog = CatalogSelector(session)
        self._sequences = SequenceService(session)

    def _counted_base_quantities(
        self,
        branch_id: UUID,
        counted_lines: Sequence[CountedLine],
    ) -> dict[UUID, Decimal]:
        seen: set[UUID] = set()
        for line in counted_lines:
            if line.product_id in seen:
                raise DuplicateCountLineError(str(line.product_id), str(branch_id))
            seen.add(line.product_id)

        products = self._catalog.get_products(seen)
        counted: dict[UUID, Decimal] = {}
        for line in counted_lines:
            actual = to_decimal(line.actual_stock)
            if actual < 0:
                raise InvalidQuantityError(
                    str(line.product_id), actual, "counted stock cannot be negative",
                )
            unit = products[line.product_id].resolve_unit(line.unit_name)
            counted[line.product_id] = round_quantity(
                actual * unit.conversion_factor, self._decimal_places,
            )
        return counted

    def reconcile(
        self,
        branch_id: UUID,
        counted_lines: Sequence[CountedLine],
        actor_id: UUID,
        scope_product_ids: Iterable[UUID] | None = None,
        notes: str | None = None,
    ) -> OpnameRecord:
        """
        Save an opname for ``branch_id``.

        Args:
            branch_id: Branch whose stock was counted.
            counted_lines: One line per counted product.
            actor_id: Who saved the count.
            scope_product_ids: Products the count covers.  None means every
                active product.  Counted products are always in scope.
            notes: Free text kept on the record.

        Returns:
            The OpnameRecord: counted lines in input order, then uncounted
            in-scope products.
        """
        self._catalog.require_active_branch(branch_id)
        counted = self._counted_base_quantities(branch_id, counted_lines)

        if scope_product_ids is None:
            scope = [p.id for p in self._catalog.list_products(active_only=True)]
        else:
            scope = list(dict.fromkeys(scope_product_ids))
            self._catalog.get_products(scope)
        ordered = list(counted) + [p for p in scope if p not in counted]

        system = self._ledger.lock((p, branch_id) for p in ordered)

        opname_id = uuid4()
        lines: list[OpnameLine] = []
        for product_id in ordered:
            system_now = system[(product_id, branch_id)]
            is_counted = product_id in counted
            actual = counted[product_id] if is_counted else system_now
            difference = actual - system_now
            if difference != 0:
                self._ledger.apply_delta(
                    product_id,
                    branch_id,
                    difference,
                    actor_id=actor_id,
                    movement_type=MovementType.OPNAME,
                    operation_id=opname_id,
                )
            lines.append(
                OpnameLine(
                    product_id=product_id,
                    system_stock=system_now,
                    actual_stock=actual,
                    difference=difference,
                    counted=is_counted,
                )
            )

        now = self._clock.now()
        model = StockOpnameModel(
            id=opname_id,
            reference_number=self._sequences.next_reference(SequenceService.OPNAME, now),
            branch_id=branch_id,
            notes=notes,
            created_by_id=actor_id,
            created_at=now,
            updated_at=now,
            lines=[
                OpnameLineModel(
                    line_no=i,
                    product_id=line.product_id,
                    system_stock=line.system_stock,
                    actual_stock=line.actual_stock,
                    difference=line.difference,
                    counted=line.counted,
                )
                for i, line in enumerate(lines, start=1)
            ],
        )
        self.session.add(model)
        self.session.flush()
        record = model.to_dto()

        changed = [line for line in lines if line.difference != 0]
        self._audit.record(
            AuditAction.STOCK_ADJUSTMENT,
            entity="stock_opname",
            entity_id=record.id,
            details={
                "reference_number": record.reference_number,
                "branch_id": branch_id,
                "line_count": len(lines),
                "adjusted_count": len(changed),
                "total_variance": record.total_variance,
            },
            actor_id=actor_id,
        )
        logger.info(
            "opname_saved",
            extra={
                "opname_id": str(record.id),
                "reference_number": record.reference_number,
                "branch_id": str(branch_id),
                "line_count": len(lines),
                "adjusted_count": len(changed),
                "total_variance": str(record.total_variance),
            },
        )
        return record
