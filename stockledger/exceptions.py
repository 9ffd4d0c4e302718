"""Typed errors raised by the stock ledger and its collaborators.

Every error carries a machine-readable ``code`` and the structured data a
caller needs to build its own message, so nothing upstream has to parse
exception text.

    LedgerError
    +-- ProductNotFoundError
    +-- InvalidOperationTypeError
    +-- InvalidQuantityError
    +-- InsufficientStockError
    +-- StockConflictError
    +-- PersistenceError
    +-- ImmutableEntryError
    +-- DirectStockWriteError
    +-- OrderNotFoundError
    +-- OrderStateError
"""


class LedgerError(Exception):
    code = "ledger_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "detail": self.message}


class ProductNotFoundError(LedgerError):
    code = "product_not_found"

    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class InvalidOperationTypeError(LedgerError):
    code = "invalid_operation_type"

    def __init__(self, value):
        super().__init__(
            f"Invalid inventory operation type {value!r}; expected one of sale, return, restock, adjustment"
        )
        self.value = value


class InvalidQuantityError(LedgerError):
    code = "invalid_quantity"

    def __init__(self, value, reason: str):
        super().__init__(f"Invalid quantity {value!r}: {reason}")
        self.value = value
        self.reason = reason


class InsufficientStockError(LedgerError):
    code = "insufficient_stock"

    def __init__(self, product_id: str, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id}. Requested: {requested}, available: {available}"
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update(requested=self.requested, available=self.available)
        return data


class StockConflictError(LedgerError):
    """Another writer changed the stock between read and conditional write."""

    code = "conflict"

    def __init__(self, product_id: str, attempts: int = 1):
        super().__init__(
            f"Stock for product {product_id} changed concurrently after {attempts} attempt(s); please retry"
        )
        self.product_id = product_id
        self.attempts = attempts


class PersistenceError(LedgerError):
    code = "persistence_failure"

    def __init__(self, message: str = "Inventory storage is unavailable"):
        super().__init__(message)


class ImmutableEntryError(LedgerError):
    code = "immutable_entry"

    def __init__(self, entry_id, operation: str):
        super().__init__(f"Ledger entry {entry_id} is immutable; {operation} is not allowed")
        self.entry_id = entry_id
        self.operation = operation


class OrderNotFoundError(LedgerError):
    code = "order_not_found"

    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class OrderStateError(LedgerError):
    code = "invalid_order_state"


class DirectStockWriteError(LedgerError):
    """Stock was written outside the ledger's conditional update."""

    code = "direct_stock_write"

    def __init__(self, product_id, operation: str):
        super().__init__(
            f"Stock of product {product_id} can only change through the inventory ledger; {operation} rejected"
        )
        self.product_id = product_id
        self.operation = operation
