import json
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from stockledger.exceptions import LedgerError, OrderNotFoundError, OrderStateError, ProductNotFoundError
from stockledger.models.ledger_entry import OperationType
from stockledger.models.order import Order, OrderItem, OrderItemStatus, OrderStatus
from stockledger.models.product import Product
from stockledger.schemas.ledger import StockChangeRequest
from stockledger.schemas.order import OrderCreate, OrderStatusUpdate
from stockledger.services import ledger_service

logger = logging.getLogger(__name__)

CANCELLABLE_STATUSES = (OrderStatus.CONFIRMED, OrderStatus.PROCESSING)
RETURNABLE_STATUSES = (OrderStatus.SHIPPED, OrderStatus.DELIVERED)

# Terminal states that move stock must go through cancel/return
_STOCK_MOVING_STATUSES = (OrderStatus.CANCELLED, OrderStatus.RETURNED)


def _generate_order_number() -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    short = uuid.uuid4().hex[:6].upper()
    return f"ORD-{ts}-{short}"


def _add_status_history(order: Order, status: str, note: str = "") -> None:
    history = json.loads(order.status_history) if order.status_history else []
    history.append({
        "status": status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "note": note,
    })
    order.status_history = json.dumps(history)


def _return_item(db: Session, order: Order, item: OrderItem, actor_id: str | None, reason: str) -> None:
    ledger_service.apply_change(
        db,
        StockChangeRequest(
            product_id=item.product_id,
            quantity=item.quantity,
            operation_type=OperationType.RETURN,
            order_id=order.id,
            performed_by=actor_id,
            reason=reason,
        ),
    )


def place_order(db: Session, data: OrderCreate, customer_id: str | None = None) -> Order:
    """Create an order and take stock for each line through the ledger.

    If any line cannot be sold, lines already sold are given back with
    compensating returns, the order is cancelled and the ledger error is
    re-raised.
    """
    order = Order(
        order_number=_generate_order_number(),
        customer_id=customer_id,
        notes=data.notes,
        status=OrderStatus.PENDING,
    )
    db.add(order)
    db.flush()

    total = 0.0
    for item_data in data.items:
        product = db.query(Product).filter(Product.id == item_data.product_id).first()
        if not product or not product.is_active:
            db.rollback()
            raise ProductNotFoundError(item_data.product_id)
        db.add(OrderItem(
            order_id=order.id,
            product_id=product.id,
            sku=product.sku,
            product_name=product.name,
            quantity=item_data.quantity,
            unit_price=product.price,
        ))
        total += product.price * item_data.quantity

    order.total_price = total
    _add_status_history(order, OrderStatus.PENDING, "Order created")
    db.commit()
    db.refresh(order)

    sold: list[OrderItem] = []
    try:
        for item in order.items:
            ledger_service.apply_change(
                db,
                StockChangeRequest(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    operation_type=OperationType.SALE,
                    order_id=order.id,
                    performed_by=customer_id,
                    reason=f"Sold in order {order.order_number}",
                ),
            )
            sold.append(item)
    except LedgerError as exc:
        logger.warning("Checkout failed for order %s: %s", order.order_number, exc.message)
        for item in sold:
            try:
                _return_item(db, order, item, customer_id, f"Compensation for failed order {order.order_number}")
            except LedgerError:
                logger.exception(
                    "Could not compensate item %s of order %s", item.id, order.order_number
                )
        for item in order.items:
            item.status = OrderItemStatus.CANCELLED
        order.status = OrderStatus.CANCELLED
        _add_status_history(order, OrderStatus.CANCELLED, f"Checkout failed: {exc.message}")
        db.commit()
        raise

    order.status = OrderStatus.CONFIRMED
    _add_status_history(order, OrderStatus.CONFIRMED, "Stock reserved")
    db.commit()
    db.refresh(order)
    logger.info("Placed order %s with %d item(s)", order.order_number, len(order.items))
    return order


def get_order(db: Session, order_id: str) -> Order | None:
    return db.query(Order).filter(Order.id == order_id).first()


def list_orders(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    status: OrderStatus | None = None,
    customer_id: str | None = None,
) -> list[Order]:
    q = db.query(Order)
    if status:
        q = q.filter(Order.status == status)
    if customer_id:
        q = q.filter(Order.customer_id == customer_id)
    return q.order_by(Order.created_at.desc()).offset(skip).limit(limit).all()


def _require_order(db: Session, order_id: str) -> Order:
    order = get_order(db, order_id)
    if not order:
        raise OrderNotFoundError(order_id)
    return order


def update_order_status(db: Session, order_id: str, data: OrderStatusUpdate) -> Order:
    order = _require_order(db, order_id)
    if data.status in _STOCK_MOVING_STATUSES:
        raise OrderStateError(f"Use the cancel or return action to set an order to '{data.status.value}'")
    if order.status in _STOCK_MOVING_STATUSES:
        raise OrderStateError(f"Cannot change order in '{order.status.value}' status")
    order.status = data.status
    _add_status_history(order, data.status.value, data.note)
    db.commit()
    db.refresh(order)
    return order


def cancel_order(db: Session, order_id: str, actor_id: str | None = None) -> Order:
    order = _require_order(db, order_id)
    if order.status not in CANCELLABLE_STATUSES:
        raise OrderStateError(f"Cannot cancel order in '{order.status.value}' status")

    for item in list(order.items):
        if item.status != OrderItemStatus.ACTIVE:
            continue
        _return_item(db, order, item, actor_id, f"Restored from cancelled order {order.order_number}")
        item.status = OrderItemStatus.CANCELLED
        db.commit()

    order.status = OrderStatus.CANCELLED
    order.total_price = 0.0
    _add_status_history(order, OrderStatus.CANCELLED, "Order cancelled")
    db.commit()
    db.refresh(order)
    return order


def cancel_order_item(db: Session, order_id: str, item_id: str, actor_id: str | None = None) -> Order:
    order = _require_order(db, order_id)
    if order.status not in CANCELLABLE_STATUSES:
        raise OrderStateError(f"Items can be cancelled only for confirmed/processing orders, not '{order.status.value}'")

    item = next((i for i in order.items if i.id == item_id), None)
    if item is None:
        raise OrderStateError(f"Order item {item_id} not found")
    if item.status != OrderItemStatus.ACTIVE:
        raise OrderStateError(f"Item already {item.status.value}")

    _return_item(db, order, item, actor_id, f"Item cancelled from order {order.order_number}")
    item.status = OrderItemStatus.CANCELLED
    order.total_price = max(0.0, order.total_price - item.unit_price * item.quantity)
    if all(i.status != OrderItemStatus.ACTIVE for i in order.items):
        order.status = OrderStatus.CANCELLED
        _add_status_history(order, OrderStatus.CANCELLED, "All items cancelled")
    db.commit()
    db.refresh(order)
    return order


def return_order(db: Session, order_id: str, actor_id: str | None = None) -> Order:
    order = _require_order(db, order_id)
    if order.status not in RETURNABLE_STATUSES:
        raise OrderStateError(f"Cannot return order in '{order.status.value}' status")

    for item in list(order.items):
        if item.status != OrderItemStatus.ACTIVE:
            continue
        _return_item(db, order, item, actor_id, f"Returned from order {order.order_number}")
        # a retry after a later line fails must skip this one
        item.status = OrderItemStatus.RETURNED
        db.commit()

    order.status = OrderStatus.RETURNED
    _add_status_history(order, OrderStatus.RETURNED, "Order returned")
    db.commit()
    db.refresh(order)
    return order
