"""
SkuAllocator -- concurrency-safe SKU issuance.

Responsibility:
    Issues ``PREFIX-YYYYMMDD-SEQ`` codes (rules in domain/sku.py) so that no
    SKU is ever issued twice, even when products are created concurrently in
    the same category and day.

Architecture position:
    Kernel > Services.  Flush-only.

Concurrency:
    State is sharded: one SkuSequenceModel row per (prefix, date bucket).
    The row is locked for the read-then-increment, so allocations in the same
    bucket are serialized and allocations in different buckets proceed in
    parallel.  SKUs already held by products in the bucket (registered with
    an explicit code) are skipped.  The issued SKU is also inserted into sku_allocations, whose
    unique constraint turns any residual duplicate into
    ConcurrentModificationRetry instead of a silently repeated code.

Failure modes:
    - InvalidCategoryError: empty category, rejected before any database
      access.
    - ConcurrentModificationRetry: lost a counter creation race or hit the
      unique SKU constraint.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.sku import date_bucket, next_sku, parse_sequence, sku_prefix
from stock_kernel.exceptions import ConcurrentModificationRetry
from stock_kernel.logging_config import get_logger
from stock_kernel.models.audit_event import AuditAction
from stock_kernel.models.catalog import ProductModel
from stock_kernel.models.sku import SkuAllocationModel, SkuSequenceModel
from stock_kernel.services.audit_service import AuditService
from stock_kernel.services.base import BaseService

logger = get_logger("services.sku")


class SkuAllocator(BaseService[SkuSequenceModel]):
    """Allocates unique SKUs from locked per-bucket counters."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditService | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._audit = audit or AuditService(session, self._clock)

    def _lock_bucket(self, prefix: str, bucket: str) -> SkuSequenceModel | None:
        return self.session.execute(
            select(SkuSequenceModel)
            .where(
                SkuSequenceModel.prefix == prefix,
                SkuSequenceModel.date_bucket == bucket,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _bucket_row(self, prefix: str, bucket: str) -> SkuSequenceModel:
        row = self._lock_bucket(prefix, bucket)
        if row is not None:
            return row

        savepoint = self.session.begin_nested()
        try:
            row = SkuSequenceModel(prefix=prefix, date_bucket=bucket, last_sequence=0)
            self.session.add(row)
            self.session.flush()
            savepoint.commit()
            return row
        except IntegrityError:
            savepoint.rollback()
            logger.debug(
                "sku_bucket_race_retry",
                extra={"prefix": prefix, "date_bucket": bucket},
            )
            row = self._lock_bucket(prefix, bucket)
            if row is None:
                raise ConcurrentModificationRetry("SkuSequence", f"{prefix}-{bucket}")
            return row

    def _last_issued(self, prefix: str, bucket: str, row: SkuSequenceModel) -> str | None:
        """
        Last SKU taken in the bucket: the counter's, or a product's when a
        product was registered with a higher code by hand.
        """
        taken = self.session.execute(
            select(ProductModel.sku).where(ProductModel.sku.like(f"{prefix}-{bucket}-%"))
        ).scalars()
        highest = max(
            (seq for seq in map(parse_sequence, taken) if seq is not None),
            default=0,
        )
        if highest > row.last_sequence:
            return f"{prefix}-{bucket}-{highest:03d}"
        return row.last_sku

    def allocate(
        self,
        category_name: str,
        actor_id: UUID,
        on: date | datetime | None = None,
    ) -> str:
        """
        Issue the next SKU for ``category_name`` on ``on`` (default: today,
        UTC, from the injected clock).

        Raises:
            InvalidCategoryError: If ``category_name`` is empty.
            ConcurrentModificationRetry: On contention the lock did not cover.
        """
        prefix = sku_prefix(category_name)
        on = on if on is not None else self._clock.now()
        bucket = date_bucket(on)

        row = self._bucket_row(prefix, bucket)
        sku = next_sku(category_name, on, self._last_issued(prefix, bucket, row))
        row.last_sequence = parse_sequence(sku)
        row.last_sku = sku

        savepoint = self.session.begin_nested()
        try:
            self.session.add(
                SkuAllocationModel(
                    sku=sku,
                    category_name=category_name,
                    allocated_by_id=actor_id,
                    allocated_at=self._clock.now(),
                )
            )
            self.session.flush()
            savepoint.commit()
        except IntegrityError as exc:
            savepoint.rollback()
            logger.warning("sku_collision_detected", extra={"sku": sku})
            raise ConcurrentModificationRetry("Sku", sku) from exc

        self._audit.record(
            AuditAction.ALLOCATE_SKU,
            entity="sku",
            entity_id=sku,
            details={"category": category_name, "prefix": prefix, "date_bucket": bucket},
            actor_id=actor_id,
        )
        logger.info(
            "sku_allocated",
            extra={"sku": sku, "prefix": prefix, "date_bucket": bucket},
        )
        return sku
