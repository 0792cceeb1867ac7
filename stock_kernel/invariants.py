"""
Stock Kernel Invariants Contract.

These invariants are structural law. They are hardcoded in the stock ledger,
the transfer and opname services, and the immutability listeners. No
configuration value may switch them off.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across StockLedger, TransferService,
OpnameService, SkuAllocator, SequenceService and db/immutability.py.
"""

from enum import Enum, unique


@unique
class StockInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel.

    Each value names one structural guarantee that the kernel provides
    unconditionally.
    """

    NO_NEGATIVE_STOCK = "no_negative_stock"
    """quantity_on_hand >= 0 at every committed state. Enforced in one
    place: StockLedger.apply_delta."""

    CONSERVATION = "conservation"
    """A transfer decrements the source and increments the destination by
    the same base-unit amount. Enforced by TransferService."""

    ALL_OR_NOTHING = "all_or_nothing"
    """Every transfer line is validated before any ledger entry is
    mutated. Enforced by TransferService and the caller's transaction."""

    SERIALIZED_KEY_MUTATION = "serialized_key_mutation"
    """Mutations of one (product, branch) entry never interleave. Enforced
    by SELECT ... FOR UPDATE plus an optimistic version column."""

    SINGLE_BASE_UNIT = "single_base_unit"
    """Exactly one unit per product has conversion factor 1. Enforced by
    ProductDefinition."""

    UNIQUE_SKU = "unique_sku"
    """No SKU is issued twice. Enforced by SkuAllocator's locked counter
    row and a unique index on issued SKUs."""

    IMMUTABLE_HISTORY = "immutable_history"
    """Transfer, opname, purchase order, movement and audit rows are never
    edited after commit; stock entries are never deleted. Enforced by
    db/immutability.py."""


# All invariants as a frozenset for programmatic checks.
ALL_STOCK_INVARIANTS: frozenset[StockInvariant] = frozenset(StockInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "stock_services",
    "stock_config",
)
