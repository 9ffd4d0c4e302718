from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from stockledger.api.auth import require_roles
from stockledger.database import get_db
from stockledger.models.product import Product
from stockledger.models.user import User
from stockledger.schemas.ledger import InventoryChangeIn, LedgerEntryOut, StockChangeOut, StockChangeRequest
from stockledger.schemas.product import ProductCreate, ProductOut, ProductUpdate
from stockledger.services import audit_service, ledger_service, product_service

router = APIRouter(prefix="/products", tags=["Products"])

stock_managers = require_roles("admin", "seller")


def _owned_product(db: Session, product_id: str, user: User) -> Product:
    product = product_service.get_product(db, product_id)
    if not product or (not user.is_admin and product.seller_id != user.id):
        raise HTTPException(404, "Product not found")
    return product


@router.post("", response_model=ProductOut, status_code=201)
def create_product(data: ProductCreate, user: User = Depends(stock_managers), db: Session = Depends(get_db)):
    if product_service.get_product_by_sku(db, data.sku):
        raise HTTPException(400, f"Product with SKU {data.sku} already exists")
    seller_id = data.seller_id if user.is_admin and data.seller_id else user.id
    return product_service.create_product(db, data, seller_id=seller_id, performed_by=user.id)


@router.get("", response_model=list[ProductOut])
def list_products(
    skip: int = 0,
    limit: int = 100,
    include_inactive: bool = False,
    user: User = Depends(stock_managers),
    db: Session = Depends(get_db),
):
    return product_service.list_products(
        db,
        skip=skip,
        limit=limit,
        seller_id=audit_service.visible_owner(user),
        include_inactive=include_inactive,
    )


@router.get("/low-stock", response_model=list[ProductOut])
def low_stock(user: User = Depends(stock_managers), db: Session = Depends(get_db)):
    return product_service.get_low_stock(db, seller_id=audit_service.visible_owner(user))


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: str, user: User = Depends(stock_managers), db: Session = Depends(get_db)):
    return _owned_product(db, product_id, user)


@router.patch("/{product_id}", response_model=ProductOut)
def update_product(
    product_id: str, data: ProductUpdate, user: User = Depends(stock_managers), db: Session = Depends(get_db)
):
    _owned_product(db, product_id, user)
    return product_service.update_product(db, product_id, data)


@router.delete("/{product_id}", response_model=ProductOut)
def deactivate_product(product_id: str, user: User = Depends(stock_managers), db: Session = Depends(get_db)):
    _owned_product(db, product_id, user)
    return product_service.deactivate_product(db, product_id)


@router.post("/{product_id}/inventory", response_model=StockChangeOut)
def apply_inventory_change(
    product_id: str,
    data: InventoryChangeIn,
    user: User = Depends(stock_managers),
    db: Session = Depends(get_db),
):
    _owned_product(db, product_id, user)
    change = ledger_service.apply_change(
        db,
        StockChangeRequest(
            product_id=product_id,
            quantity=data.quantity,
            operation_type=data.operation_type,
            order_id=data.order_id,
            performed_by=user.id,
            reason=data.reason,
        ),
    )
    return StockChangeOut.model_validate(change)


@router.get("/{product_id}/inventory-logs", response_model=list[LedgerEntryOut])
def inventory_logs(
    product_id: str,
    skip: int = 0,
    limit: int = 100,
    user: User = Depends(stock_managers),
    db: Session = Depends(get_db),
):
    return audit_service.product_history(
        db, product_id, owner_id=audit_service.visible_owner(user), skip=skip, limit=limit
    )
