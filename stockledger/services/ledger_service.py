"""Inventory ledger: the only path that changes a product's stock.

Every change goes through the same pipeline regardless of operation type:

    validate_request -> load_stock -> compute_transition -> compare_and_swap + LedgerEntry -> commit

The stock update and the ledger row share one transaction. The stock update is
conditioned on the quantity that was read, so a concurrent writer makes it
match zero rows; the transaction is then rolled back and the read-compute-write
cycle runs again on fresh stock, up to ``LEDGER_MAX_ATTEMPTS`` times.
"""

import logging
import math

from sqlalchemy.orm import Session

from stockledger.config import settings
from stockledger.exceptions import (
    InsufficientStockError,
    InvalidOperationTypeError,
    InvalidQuantityError,
    LedgerError,
    PersistenceError,
    StockConflictError,
)
from stockledger.models.ledger_entry import LedgerEntry, OperationType
from stockledger.models.product import MAX_STOCK
from stockledger.schemas.ledger import StockChange, StockChangeRequest
from stockledger.schemas.product import ProductStock
from stockledger.services import product_service

logger = logging.getLogger(__name__)

_OPERATIONS = {op.value: op for op in OperationType}


def parse_operation_type(value) -> OperationType:
    """Canonicalize once (trim + lowercase), then require an exact match."""
    if isinstance(value, OperationType):
        return value
    if not isinstance(value, str):
        raise InvalidOperationTypeError(value)
    operation = _OPERATIONS.get(value.strip().lower())
    if operation is None:
        raise InvalidOperationTypeError(value)
    return operation


def validate_quantity(value) -> int:
    if value is None:
        raise InvalidQuantityError(value, "quantity is required")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidQuantityError(value, "quantity must be a number")
    if isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidQuantityError(value, "quantity must be finite")
        if not value.is_integer():
            raise InvalidQuantityError(value, "quantity must be a whole number of units")
    if abs(value) > MAX_STOCK:
        raise InvalidQuantityError(value, f"quantity exceeds the storable maximum of {MAX_STOCK}")
    return int(value)


def validate_request(request: StockChangeRequest) -> tuple[OperationType, int]:
    operation = parse_operation_type(request.operation_type)
    quantity = validate_quantity(request.quantity)
    if operation is OperationType.ADJUSTMENT:
        if quantity < 0:
            raise InvalidQuantityError(quantity, "adjusted stock cannot be negative")
    elif quantity <= 0:
        raise InvalidQuantityError(quantity, f"{operation.value} quantity must be positive")
    return operation, quantity


def compute_transition(stock: ProductStock, operation: OperationType, quantity: int) -> tuple[int, int]:
    """Return (stock_after, quantity_delta) for a validated operation."""
    current = stock.quantity
    if operation is OperationType.SALE:
        if current < quantity:
            raise InsufficientStockError(stock.product_id, quantity, current)
        stock_after = current - quantity
    elif operation in (OperationType.RETURN, OperationType.RESTOCK):
        stock_after = current + quantity
    else:
        # adjustment overrides the count
        stock_after = quantity
    if stock_after > MAX_STOCK:
        raise InvalidQuantityError(quantity, f"resulting stock would exceed the storable maximum of {MAX_STOCK}")
    return stock_after, stock_after - current


def _apply_once(
    db: Session, request: StockChangeRequest, operation: OperationType, quantity: int
) -> StockChange:
    try:
        stock = product_service.load_stock(db, request.product_id)
        stock_after, delta = compute_transition(stock, operation, quantity)
        product_service.compare_and_swap(db, stock.product_id, stock.quantity, stock_after)
        entry = LedgerEntry(
            product_id=stock.product_id,
            operation_type=operation,
            quantity=quantity,
            quantity_delta=delta,
            stock_before=stock.quantity,
            stock_after=stock_after,
            order_id=request.order_id,
            performed_by=request.performed_by,
            reason=request.reason,
        )
        db.add(entry)
        db.flush()
        entry_id = entry.id
        db.commit()
    except LedgerError:
        db.rollback()
        raise
    except Exception as exc:
        # driver-level faults (e.g. OverflowError) are not SQLAlchemyError subclasses
        db.rollback()
        logger.exception(
            "Failed to persist %s for product %s (%s)",
            operation.value,
            request.product_id,
            type(exc).__name__,
            extra={"product_id": request.product_id, "operation": operation.value},
        )
        raise PersistenceError() from exc

    return StockChange(
        product_id=stock.product_id,
        stock_before=stock.quantity,
        stock_after=stock_after,
        quantity=quantity,
        operation_type=operation,
        quantity_delta=delta,
        entry_id=entry_id,
        low_stock_threshold=stock.low_stock_threshold,
    )


def apply_change(db: Session, request: StockChangeRequest, max_attempts: int | None = None) -> StockChange:
    """Validate and apply one stock change, recording it in the ledger.

    The session's transaction is committed or rolled back here, so callers
    must commit their own pending work first. Raises a ``LedgerError``
    subclass on any failure; nothing is written in that case.
    """
    operation, quantity = validate_request(request)
    attempts = max(1, max_attempts or settings.LEDGER_MAX_ATTEMPTS)

    for attempt in range(1, attempts + 1):
        try:
            change = _apply_once(db, request, operation, quantity)
        except StockConflictError:
            logger.warning(
                "Stock conflict on product %s (attempt %d/%d)",
                request.product_id,
                attempt,
                attempts,
                extra={"product_id": request.product_id, "operation": operation.value, "attempt": attempt},
            )
            continue

        logger.info(
            "Applied %s of %d to product %s: %d -> %d (entry %d)",
            operation.value,
            quantity,
            change.product_id,
            change.stock_before,
            change.stock_after,
            change.entry_id,
            extra={
                "product_id": change.product_id,
                "operation": operation.value,
                "entry_id": change.entry_id,
                "order_id": request.order_id,
                "stock_before": change.stock_before,
                "stock_after": change.stock_after,
            },
        )
        if change.is_low_stock:
            logger.warning(
                "Low stock for product %s: %d left (threshold %d)",
                change.product_id,
                change.stock_after,
                change.low_stock_threshold,
            )
        return change

    raise StockConflictError(request.product_id, attempts)
