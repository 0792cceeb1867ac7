"""
Typed Exception Hierarchy for the Stock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every rejection the stock kernel produces is surfaced to an operator who has
to correct their input (pick another unit, lower a quantity, choose another
branch).  Parsing message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (product, branch, unit, quantities)

Example:
    try:
        operations.create_transfer(actor, source, destination, lines)
    except InsufficientStockError as e:
        api_response(
            code=e.code,
            product=e.product_id,
            branch=e.branch_id,
            requested=e.requested,
            available=e.available,
        )

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StockKernelError (base)
    |
    +-- StockError
    |   +-- InsufficientStockError
    |   +-- InvalidQuantityError
    |
    +-- UnitError
    |   +-- UnknownUnitError
    |   +-- InvalidConversionFactorError
    |   +-- InvalidUnitSetError
    |
    +-- TransferError
    |   +-- InvalidTransferError
    |
    +-- OpnameError
    |   +-- DuplicateCountLineError
    |
    +-- CatalogError
    |   +-- ProductNotFoundError
    |   +-- BranchNotFoundError
    |   +-- BranchInactiveError
    |   +-- DuplicateProductError
    |   +-- DuplicateBranchError
    |   +-- InvalidBarcodeError
    |
    +-- SkuError
    |   +-- InvalidCategoryError
    |
    +-- PurchaseOrderError
    |   +-- DraftLineNotFoundError
    |   +-- EmptyPurchaseOrderError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentModificationRetry
    |   +-- RetryExhaustedError
    |
    +-- AuthorizationError
    |   +-- PermissionDeniedError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Stock           | INSUFFICIENT_STOCK          | Delta would take on-hand below zero
                | INVALID_QUANTITY            | Non-positive move, negative count
----------------|-----------------------------|-----------------------------------------
Unit            | UNKNOWN_UNIT                | Unit is not base or a listed alternate
                | INVALID_CONVERSION_FACTOR   | Factor <= 0
                | INVALID_UNIT_SET            | Not exactly one factor-1 unit
----------------|-----------------------------|-----------------------------------------
Transfer        | INVALID_TRANSFER            | Same source/destination, no lines
----------------|-----------------------------|-----------------------------------------
Opname          | DUPLICATE_COUNT_LINE        | Product counted twice in one opname
----------------|-----------------------------|-----------------------------------------
Catalog         | PRODUCT_NOT_FOUND           | Product ID doesn't exist
                | BRANCH_NOT_FOUND            | Branch ID doesn't exist
                | BRANCH_INACTIVE             | Branch is deactivated
                | DUPLICATE_PRODUCT           | SKU already registered
                | INVALID_BARCODE             | Barcode fails format check
----------------|-----------------------------|-----------------------------------------
SKU             | INVALID_CATEGORY            | Empty category name
----------------|-----------------------------|-----------------------------------------
Purchase order  | DRAFT_LINE_NOT_FOUND        | Removing a line that isn't in the draft
                | EMPTY_PURCHASE_ORDER        | Submitting a draft with no lines
----------------|-----------------------------|-----------------------------------------
Concurrency     | CONCURRENT_MODIFICATION     | Row changed/created under us (retry)
                | RETRY_EXHAUSTED             | Bounded retries used up
----------------|-----------------------------|-----------------------------------------
Authorization   | PERMISSION_DENIED           | Role lacks the operation's permission
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Editing/deleting committed history

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Every exception inherits from Exception, not ValueError etc., so domain
   errors are catchable as a group and never mixed with programming errors.

2. ``code`` is a class attribute: static per type, usable without an
   instance (API docs, static analysis).

3. ConcurrentModificationRetry is an internal signal.  The operations layer
   retries it a bounded number of times and then raises RetryExhaustedError;
   it never reaches an operator directly.
"""

from decimal import Decimal


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STOCK_KERNEL_ERROR"


# Stock-related exceptions


class StockError(StockKernelError):
    """Base exception for quantity-on-hand errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """A movement would take a branch's on-hand quantity below zero."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_id: str,
        branch_id: str,
        requested: Decimal,
        available: Decimal,
    ):
        self.product_id = product_id
        self.branch_id = branch_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for product {product_id} at branch {branch_id}: "
            f"requested {requested}, available {available}"
        )


class InvalidQuantityError(StockError):
    """Quantity is not acceptable for the requested operation."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, product_id: str, quantity: Decimal, reason: str):
        self.product_id = product_id
        self.quantity = quantity
        self.reason = reason
        super().__init__(
            f"Invalid quantity {quantity} for product {product_id}: {reason}"
        )


# Unit-related exceptions


class UnitError(StockKernelError):
    """Base exception for sale-unit errors."""

    code: str = "UNIT_ERROR"


class UnknownUnitError(UnitError):
    """Unit is neither the product's base unit nor a listed alternate."""

    code: str = "UNKNOWN_UNIT"

    def __init__(self, product_id: str, unit_name: str):
        self.product_id = product_id
        self.unit_name = unit_name
        super().__init__(f"Unknown unit '{unit_name}' for product {product_id}")


class InvalidConversionFactorError(UnitError):
    """Conversion factor is zero, negative or not a number."""

    code: str = "INVALID_CONVERSION_FACTOR"

    def __init__(self, product_id: str, unit_name: str, factor: Decimal):
        self.product_id = product_id
        self.unit_name = unit_name
        self.factor = factor
        super().__init__(
            f"Invalid conversion factor {factor} for unit '{unit_name}' "
            f"of product {product_id}: must be greater than zero"
        )


class InvalidUnitSetError(UnitError):
    """A product's unit list breaks the single-base-unit rule."""

    code: str = "INVALID_UNIT_SET"

    def __init__(self, product_id: str, reason: str):
        self.product_id = product_id
        self.reason = reason
        super().__init__(f"Invalid unit set for product {product_id}: {reason}")


# Transfer-related exceptions


class TransferError(StockKernelError):
    """Base exception for branch transfer errors."""

    code: str = "TRANSFER_ERROR"


class InvalidTransferError(TransferError):
    """Transfer request is structurally invalid."""

    code: str = "INVALID_TRANSFER"

    def __init__(self, source_branch_id: str, destination_branch_id: str, reason: str):
        self.source_branch_id = source_branch_id
        self.destination_branch_id = destination_branch_id
        self.reason = reason
        super().__init__(
            f"Invalid transfer from branch {source_branch_id} to branch "
            f"{destination_branch_id}: {reason}"
        )


# Opname-related exceptions


class OpnameError(StockKernelError):
    """Base exception for count reconciliation errors."""

    code: str = "OPNAME_ERROR"


class DuplicateCountLineError(OpnameError):
    """The same product was counted more than once in one opname."""

    code: str = "DUPLICATE_COUNT_LINE"

    def __init__(self, product_id: str, branch_id: str):
        self.product_id = product_id
        self.branch_id = branch_id
        super().__init__(
            f"Product {product_id} counted more than once for branch {branch_id}"
        )


# Catalog-related exceptions


class CatalogError(StockKernelError):
    """Base exception for product/branch lookup errors."""

    code: str = "CATALOG_ERROR"


class ProductNotFoundError(CatalogError):
    """Product with given ID was not found."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class BranchNotFoundError(CatalogError):
    """Branch with given ID was not found."""

    code: str = "BRANCH_NOT_FOUND"

    def __init__(self, branch_id: str):
        self.branch_id = branch_id
        super().__init__(f"Branch not found: {branch_id}")


class BranchInactiveError(CatalogError):
    """Branch exists but is deactivated."""

    code: str = "BRANCH_INACTIVE"

    def __init__(self, branch_id: str):
        self.branch_id = branch_id
        super().__init__(f"Branch {branch_id} is inactive")


class DuplicateProductError(CatalogError):
    """A product with this SKU is already registered."""

    code: str = "DUPLICATE_PRODUCT"

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"Product with SKU {sku} already exists")


class DuplicateBranchError(CatalogError):
    """A branch with this code is already registered."""

    code: str = "DUPLICATE_BRANCH"

    def __init__(self, branch_code: str):
        self.branch_code = branch_code
        super().__init__(f"Branch with code {branch_code} already exists")


class InvalidBarcodeError(CatalogError):
    """Barcode fails the format check."""

    code: str = "INVALID_BARCODE"

    def __init__(self, product_id: str, unit_name: str, barcode: str):
        self.product_id = product_id
        self.unit_name = unit_name
        self.barcode = barcode
        super().__init__(
            f"Invalid barcode '{barcode}' for unit '{unit_name}' of product {product_id}"
        )


# SKU-related exceptions


class SkuError(StockKernelError):
    """Base exception for SKU allocation errors."""

    code: str = "SKU_ERROR"


class InvalidCategoryError(SkuError):
    """Category name is empty."""

    code: str = "INVALID_CATEGORY"

    def __init__(self, category_name: str | None):
        self.category_name = category_name
        super().__init__("Category name is required for SKU allocation")


# Purchase-order-related exceptions


class PurchaseOrderError(StockKernelError):
    """Base exception for purchase order draft errors."""

    code: str = "PURCHASE_ORDER_ERROR"


class DraftLineNotFoundError(PurchaseOrderError):
    """Line is not present in the draft."""

    code: str = "DRAFT_LINE_NOT_FOUND"

    def __init__(self, product_id: str, unit_name: str | None = None):
        self.product_id = product_id
        self.unit_name = unit_name
        unit = f" (unit '{unit_name}')" if unit_name else ""
        super().__init__(f"Product {product_id}{unit} is not in the draft")


class EmptyPurchaseOrderError(PurchaseOrderError):
    """Draft has no lines to submit."""

    code: str = "EMPTY_PURCHASE_ORDER"

    def __init__(self, destination_branch_id: str):
        self.destination_branch_id = destination_branch_id
        super().__init__(
            f"Purchase order for branch {destination_branch_id} has no lines"
        )


# Concurrency-related exceptions


class ConcurrencyError(StockKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentModificationRetry(ConcurrencyError):
    """
    A row was changed or created by another transaction under us.

    Internal signal: the operations layer rolls back and retries.
    """

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, entity_type: str, entity_key: str):
        self.entity_type = entity_type
        self.entity_key = entity_key
        super().__init__(
            f"Concurrent modification of {entity_type} {entity_key}: retry required"
        )


class RetryExhaustedError(ConcurrencyError):
    """Bounded retries used up; the operation is a transient failure."""

    code: str = "RETRY_EXHAUSTED"

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            f"Operation {operation} did not complete after {attempts} attempts "
            "due to concurrent modification; try again"
        )


# Authorization-related exceptions


class AuthorizationError(StockKernelError):
    """Base exception for permission errors."""

    code: str = "AUTHORIZATION_ERROR"


class PermissionDeniedError(AuthorizationError):
    """Actor's role does not grant the operation's permission."""

    code: str = "PERMISSION_DENIED"

    def __init__(self, role: str | None, permission: str):
        self.role = role
        self.permission = permission
        super().__init__(f"Role '{role}' is not granted permission '{permission}'")


# Immutability-related exceptions


class ImmutabilityError(StockKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Transfer, opname and purchase order records, ledger movements and audit
    events are history once committed.  Stock entries are never deleted.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
