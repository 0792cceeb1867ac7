"""
Document reference numbers.

Transfers, opnames and purchase orders carry a human-readable reference of
the form ``PREFIX-YYYYMMDD-NNNNNN``.  The sequence part comes from a locked
counter row (services/sequence_service.py); this module only formats it.
"""

from __future__ import annotations

from datetime import date, datetime

from stock_kernel.domain.sku import date_bucket

TRANSFER_PREFIX = "TRF"
OPNAME_PREFIX = "OPN"
PURCHASE_ORDER_PREFIX = "PO"

REFERENCE_SEQUENCE_WIDTH = 6


def format_reference(prefix: str, on: date | datetime, sequence: int) -> str:
    """
    >>> format_reference("TRF", date(2024, 1, 1), 42)
    'TRF-20240101-000042'
    """
    if sequence <= 0:
        raise ValueError(f"Reference sequence must be positive, got {sequence}")
    return f"{prefix}-{date_bucket(on)}-{sequence:0{REFERENCE_SEQUENCE_WIDTH}d}"
