import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from stockledger.exceptions import ProductNotFoundError, StockConflictError
from stockledger.models.ledger_entry import OperationType
from stockledger.models.product import STOCK_CAS_OPTION, Product
from stockledger.schemas.product import ProductCreate, ProductStock, ProductUpdate

logger = logging.getLogger(__name__)


# --- Stock repository ---

def load_stock(db: Session, product_id: str) -> ProductStock:
    """Read the persisted stock row, ignoring anything cached in the session."""
    stmt = (
        select(Product)
        .where(Product.id == product_id)
        .execution_options(populate_existing=True)
    )
    product = db.execute(stmt).scalar_one_or_none()
    if product is None:
        raise ProductNotFoundError(product_id)
    return ProductStock(
        product_id=product.id,
        quantity=product.quantity,
        low_stock_threshold=product.low_stock_threshold,
        seller_id=product.seller_id,
        is_active=product.is_active,
    )


def compare_and_swap(db: Session, product_id: str, expected_quantity: int, new_quantity: int) -> None:
    """Set quantity to new_quantity only if it still equals expected_quantity.

    Issued as one conditional UPDATE so the check and the write cannot be
    split by another writer. Does not commit.
    """
    stmt = (
        update(Product)
        .where(Product.id == product_id, Product._quantity == expected_quantity)
        .values({Product._quantity: new_quantity})
        .execution_options(synchronize_session=False, **{STOCK_CAS_OPTION: True})
    )
    result = db.execute(stmt)
    if result.rowcount != 1:
        raise StockConflictError(product_id)


# --- Product service ---

def create_product(
    db: Session,
    data: ProductCreate,
    seller_id: str | None = None,
    performed_by: str | None = None,
) -> Product:
    from stockledger.schemas.ledger import StockChangeRequest
    from stockledger.services import ledger_service

    product = Product(
        sku=data.sku,
        name=data.name,
        price=data.price,
        seller_id=seller_id,
    )
    if data.low_stock_threshold is not None:
        product.low_stock_threshold = data.low_stock_threshold
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info("Created product %s (%s)", product.id, product.sku)

    if data.quantity > 0:
        ledger_service.apply_change(
            db,
            StockChangeRequest(
                product_id=product.id,
                quantity=data.quantity,
                operation_type=OperationType.RESTOCK,
                performed_by=performed_by,
                reason="Initial stock on product creation",
            ),
        )
        db.refresh(product)
    return product


def get_product(db: Session, product_id: str) -> Product | None:
    return db.query(Product).filter(Product.id == product_id).first()


def get_product_by_sku(db: Session, sku: str) -> Product | None:
    return db.query(Product).filter(Product.sku == sku).first()


def list_products(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    seller_id: str | None = None,
    include_inactive: bool = False,
) -> list[Product]:
    q = db.query(Product)
    if seller_id:
        q = q.filter(Product.seller_id == seller_id)
    if not include_inactive:
        q = q.filter(Product.is_active == True)  # noqa: E712
    return q.order_by(Product.created_at.desc()).offset(skip).limit(limit).all()


def update_product(db: Session, product_id: str, data: ProductUpdate) -> Product | None:
    product = get_product(db, product_id)
    if not product:
        return None
    for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(product, field, value)
    db.commit()
    db.refresh(product)
    return product


def deactivate_product(db: Session, product_id: str) -> Product | None:
    """Soft delete: ledger history keeps referencing the product."""
    product = get_product(db, product_id)
    if not product:
        return None
    product.is_active = False
    db.commit()
    db.refresh(product)
    logger.info("Deactivated product %s", product.id)
    return product


def get_low_stock(db: Session, seller_id: str | None = None) -> list[Product]:
    q = db.query(Product).filter(
        Product.is_active == True,  # noqa: E712
        Product.quantity <= Product.low_stock_threshold,
    )
    if seller_id:
        q = q.filter(Product.seller_id == seller_id)
    return q.order_by(Product.quantity.asc()).all()
