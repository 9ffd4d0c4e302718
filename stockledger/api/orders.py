from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from stockledger.api.auth import get_current_user, require_roles
from stockledger.database import get_db
from stockledger.models.order import OrderStatus
from stockledger.models.user import User
from stockledger.schemas.order import OrderCreate, OrderOut, OrderStatusUpdate
from stockledger.services import order_service

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("", response_model=OrderOut, status_code=201)
def place_order(data: OrderCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return order_service.place_order(db, data, customer_id=user.id)


@router.get("", response_model=list[OrderOut])
def list_orders(
    skip: int = 0,
    limit: int = 100,
    status: OrderStatus | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    customer_id = None if user.is_admin else user.id
    return order_service.list_orders(db, skip=skip, limit=limit, status=status, customer_id=customer_id)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    order = order_service.get_order(db, order_id)
    if not order or (not user.is_admin and order.customer_id != user.id):
        raise HTTPException(404, "Order not found")
    return order


@router.patch("/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: str,
    data: OrderStatusUpdate,
    user: User = Depends(require_roles("admin", "staff")),
    db: Session = Depends(get_db),
):
    return order_service.update_order_status(db, order_id, data)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(order_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    get_order(order_id, user, db)
    return order_service.cancel_order(db, order_id, actor_id=user.id)


@router.post("/{order_id}/items/{item_id}/cancel", response_model=OrderOut)
def cancel_order_item(
    order_id: str, item_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    get_order(order_id, user, db)
    return order_service.cancel_order_item(db, order_id, item_id, actor_id=user.id)


@router.post("/{order_id}/return", response_model=OrderOut)
def return_order(order_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    get_order(order_id, user, db)
    return order_service.return_order(db, order_id, actor_id=user.id)
