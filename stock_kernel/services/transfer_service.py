"""
TransferService -- atomic movement of stock between branches.

Responsibility:
    Validates a multi-line transfer request, then moves every line's
    base-unit quantity from the source branch to the destination branch and
    writes an immutable transfer record.

Architecture position:
    Kernel > Services.  Flush-only: the whole transfer lives in the caller's
    transaction, which is what makes it all-or-nothing.

Algorithm:
    1. Reject source == destination (before looking at any line).
    2. Resolve every line: product exists, quantity > 0, unit resolves.
       No ledger read happens before this step succeeds.
    3. Aggregate lines per product, so a split request is checked against
       one stock figure.
    4. Lock all (product, source) and (product, destination) entries in
       sorted order and check every aggregated amount against the locked
       source quantity.
    5. Only then apply deltas: -amount at source, +amount at destination.
       Total stock per product across branches is unchanged.
    6. Draw a TRF reference number and write the record.

Failure modes:
    - InvalidTransferError: same branch, or no lines.
    - BranchNotFoundError / BranchInactiveError.
    - ProductNotFoundError / UnknownUnitError / InvalidQuantityError.
    - InsufficientStockError: names the first product short at the source.
    - ConcurrentModificationRetry: from the ledger backstops.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from stock_kernel.db.types import QUANTITY_DECIMAL_PLACES, round_quantity, to_decimal
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import (
    MovementType,
    TransferLine,
    TransferLineRequest,
    TransferRecord,
    TransferStatus,
)
from stock_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    InvalidTransferError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.audit_event import AuditAction
from stock_kernel.models.transfer import StockTransferModel, TransferLineModel
from stock_kernel.selectors.catalog_selector import CatalogSelector
from stock_kernel.services.audit_service import AuditService
from stock_kernel.services.base import BaseService
from stock_kernel.services.sequence_service import SequenceService
from stock_kernel.services.stock_ledger import StockLedger

logger = get_logger("services.transfer")


class TransferService(BaseService[StockTransferModel]):

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

    def resolve_lines(self, lines: Sequence[TransferLineRequest]) -> list[TransferLine]:
        """
        Convert requested lines to base units.

        Raises:
            ProductNotFoundError, UnknownUnitError, InvalidQuantityError.
        """
        products = self._catalog.get_products(line.product_id for line in lines)
        resolved = []
        for request in lines:
            product = products[request.product_id]
            quantity = to_decimal(request.quantity)
            if quantity <= 0:
                raise InvalidQuantityError(
                    str(request.product_id), quantity, "transfer quantity must be positive",
                )
            unit = product.resolve_unit(request.unit_name)
            base_quantity = round_quantity(
                quantity * unit.conversion_factor, self._decimal_places,
            )
            if base_quantity <= 0:
                raise InvalidQuantityError(
                    str(request.product_id),
                    quantity,
                    f"rounds to zero {product.base_unit} at "
                    f"{self._decimal_places} decimal places",
                )
            resolved.append(
                TransferLine(
                    product_id=request.product_id,
                    quantity=quantity,
                    unit_name=unit.name,
                    conversion_factor=unit.conversion_factor,
                    base_quantity=base_quantity,
                )
            )
        return resolved

    def _validate_request(self, source_branch_id, destination_branch_id, lines):
        if source_branch_id == destination_branch_id:
            raise InvalidTransferError(
                str(source_branch_id),
                str(destination_branch_id),
                "source and destination branch must differ",
            )
        if not lines:
            raise InvalidTransferError(
                str(source_branch_id),
                str(destination_branch_id),
                "transfer has no lines",
            )
        self._catalog.require_active_branch(source_branch_id)
        self._catalog.require_active_branch(destination_branch_id)

    def transfer(
        self,
        source_branch_id: UUID,
        destination_branch_id: UUID,
        lines: Sequence[TransferLineRequest],
        actor_id: UUID,
        notes: str | None = None,
    ) -> TransferRecord:
        """
        Move every line from source to destination, or nothing at all.

        Returns:
            The applied TransferRecord.
        """
        self._validate_request(source_branch_id, destination_branch_id, lines)
        resolved = self.resolve_lines(lines)

        totals: dict[UUID, Decimal] = {}
        for line in resolved:
            totals[line.product_id] = totals.get(line.product_id, Decimal("0")) + line.base_quantity

        keys = [(p, source_branch_id) for p in totals]
        keys += [(p, destination_branch_id) for p in totals]
        locked = self._ledger.lock(keys)

        for product_id, requested in totals.items():
            available = locked[(product_id, source_branch_id)]
            if requested > available:
                logger.info(
                    "transfer_insufficient_stock",
                    extra={
                        "product_id": str(product_id),
                        "branch_id": str(source_branch_id),
                        "requested": str(requested),
                        "available": str(available),
                    },
                )
                raise InsufficientStockError(
                    product_id=str(product_id),
                    branch_id=str(source_branch_id),
                    requested=requested,
                    available=available,
                )

        transfer_id = uuid4()
        for product_id, amount in totals.items():
            self._ledger.apply_delta(
                product_id,
                source_branch_id,
                -amount,
                actor_id=actor_id,
                movement_type=MovementType.TRANSFER_OUT,
                operation_id=transfer_id,
            )
            self._ledger.apply_delta(
                product_id,
                destination_branch_id,
                amount,
                actor_id=actor_id,
                movement_type=MovementType.TRANSFER_IN,
                operation_id=transfer_id,
            )

        record = self._write_record(
            transfer_id,
            source_branch_id,
            destination_branch_id,
            resolved,
            TransferStatus.APPLIED,
            actor_id,
            notes,
        )
        self._audit.record(
            AuditAction.CREATE_TRANSFER,
            entity="stock_transfer",
            entity_id=record.id,
            details={
                "reference_number": record.reference_number,
                "source_branch_id": source_branch_id,
                "destination_branch_id": destination_branch_id,
                "line_count": len(resolved),
            },
            actor_id=actor_id,
        )
        logger.info(
            "transfer_applied",
            extra={
                "transfer_id": str(record.id),
                "reference_number": record.reference_number,
                "source_branch_id": str(source_branch_id),
                "destination_branch_id": str(destination_branch_id),
                "line_count": len(resolved),
            },
        )
        return record

    def record_rejection(
        self,
        source_branch_id: UUID,
        destination_branch_id: UUID,
        lines: Sequence[TransferLineRequest],
        actor_id: UUID,
        reason: str,
        notes: str | None = None,
    ) -> TransferRecord:
        """
        Persist a rejected transfer request.  No ledger effect.

        Meant to run in its own transaction after the failed attempt rolled
        back.  Lines must still resolve; a request that cannot be resolved
        is not a transfer and is not recorded.
        """
        self._validate_request(source_branch_id, destination_branch_id, lines)
        resolved = self.resolve_lines(lines)
        record = self._write_record(
            uuid4(),
            source_branch_id,
            destination_branch_id,
            resolved,
            TransferStatus.REJECTED,
            actor_id,
            notes,
            rejection_reason=reason,
        )
        self._audit.record(
            AuditAction.REJECT_TRANSFER,
            entity="stock_transfer",
            entity_id=record.id,
            details={"reference_number": record.reference_number, "reason": reason},
            actor_id=actor_id,
        )
        logger.info(
            "transfer_rejected",
            extra={
                "transfer_id": str(record.id),
                "reference_number": record.reference_number,
                "reason": reason,
            },
        )
        return record

    def _write_record(
        self,
        transfer_id: UUID,
        source_branch_id: UUID,
        destination_branch_id: UUID,
        lines: list[TransferLine],
        status: TransferStatus,
        actor_id: UUID,
        notes: str | None,
        rejection_reason: str | None = None,
    ) -> TransferRecord:
        now = self._clock.now()
        model = StockTransferModel(
            id=transfer_id,
            reference_number=self._sequences.next_reference(SequenceService.TRANSFER, now),
            source_branch_id=source_branch_id,
            destination_branch_id=destination_branch_id,
            status=status.value,
            notes=notes,
            rejection_reason=rejection_reason,
            created_by_id=actor_id,
            created_at=now,
            updated_at=now,
            lines=[
                TransferLineModel(
                    line_no=i,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_name=line.unit_name,
                    conversion_factor=line.conversion_factor,
                    base_quantity=line.base_quantity,
                )
                for i, line in enumerate(lines, start=1)
            ],
        )
        self.session.add(model)
        self.session.flush()
        return model.to_dto()
