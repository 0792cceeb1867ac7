"""
SKU codes -- pure generation and parsing rules.

Responsibility:
    Builds ``PREFIX-YYYYMMDD-SEQ`` product codes from a category name, a date
    and the last SKU issued in that (prefix, date) bucket.  Also holds the
    barcode format check used at product registration.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The concurrency-safe
    allocation (locked counter row) lives in services/sku_service.py; this
    module only computes the next code.

Rules:
    PREFIX  first 3 characters of the category, upper-cased, every character
            outside [A-Z0-9] replaced by the literal "CAT" (so "F&B" gives
            "FCATB"), right-padded with "X" to length 3 when shorter.
    DATE    the UTC calendar date as YYYYMMDD.
    SEQ     3-digit zero-padded counter: 1 when there is no last SKU or its
            trailing segment has no leading digits, otherwise one more.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone

from stock_kernel.exceptions import InvalidCategoryError

PREFIX_LENGTH = 3
PREFIX_PAD_CHAR = "X"
PREFIX_REPLACEMENT = "CAT"
SEQUENCE_WIDTH = 3

_NON_ALNUM = re.compile(r"[^A-Z0-9]")
_LEADING_DIGITS = re.compile(r"\s*(\d+)")
_BARCODE = re.compile(r"^[0-9A-Za-z-]+$")


def sku_prefix(category_name: str) -> str:
    """
    Derive the SKU prefix for a category.

    Raises:
        InvalidCategoryError: If ``category_name`` is empty.
    """
    if not category_name:
        raise InvalidCategoryError(category_name)
    prefix = _NON_ALNUM.sub(PREFIX_REPLACEMENT, category_name[:PREFIX_LENGTH].upper())
    return prefix.ljust(PREFIX_LENGTH, PREFIX_PAD_CHAR)


def date_bucket(on: date | datetime) -> str:
    """YYYYMMDD for the UTC calendar day of ``on``."""
    if isinstance(on, datetime):
        if on.tzinfo is not None:
            on = on.astimezone(timezone.utc)
        on = on.date()
    return on.strftime("%Y%m%d")


def parse_sequence(sku: str | None) -> int | None:
    """Trailing numeric segment of a SKU, or None when absent/unparsable."""
    if not sku:
        return None
    match = _LEADING_DIGITS.match(sku.split("-")[-1])
    if match is None:
        return None
    return int(match.group(1))


def next_sku(
    category_name: str,
    on: date | datetime,
    last_issued_sku: str | None = None,
) -> str:
    """
    Compute the SKU following ``last_issued_sku`` in the category/date bucket.

    >>> next_sku("Electronics", date(2023, 10, 25))
    'ELE-20231025-001'
    >>> next_sku("Electronics", date(2023, 10, 25), "ELE-20231025-005")
    'ELE-20231025-006'

    Raises:
        InvalidCategoryError: If ``category_name`` is empty.
    """
    prefix = sku_prefix(category_name)
    last_sequence = parse_sequence(last_issued_sku)
    sequence = 1 if last_sequence is None else last_sequence + 1
    return f"{prefix}-{date_bucket(on)}-{str(sequence).zfill(SEQUENCE_WIDTH)}"


def validate_barcode(barcode: str | None) -> bool:
    """Non-empty and made of letters, digits and dashes only."""
    if not barcode:
        return False
    return _BARCODE.match(barcode) is not None
