"""Read-only queries over the ledger.

Sellers see entries for the products they own; admins see everything.
Results are newest first.
"""

from sqlalchemy.orm import Session

from stockledger.exceptions import ProductNotFoundError
from stockledger.models.ledger_entry import LedgerEntry
from stockledger.models.product import Product
from stockledger.models.user import User
from stockledger.services.ledger_service import parse_operation_type


def visible_owner(user: User) -> str | None:
    """Owner filter for a caller; None means unrestricted."""
    return None if user.is_admin else user.id


def list_entries(
    db: Session,
    owner_id: str | None = None,
    product_id: str | None = None,
    operation_type=None,
    order_id: str | None = None,
    skip: int = 0,
    limit: int = 100,
) -> list[LedgerEntry]:
    q = db.query(LedgerEntry)
    if owner_id is not None:
        q = q.join(Product, LedgerEntry.product_id == Product.id).filter(Product.seller_id == owner_id)
    if product_id:
        q = q.filter(LedgerEntry.product_id == product_id)
    if operation_type is not None:
        q = q.filter(LedgerEntry.operation_type == parse_operation_type(operation_type))
    if order_id:
        q = q.filter(LedgerEntry.order_id == order_id)
    return q.order_by(LedgerEntry.id.desc()).offset(skip).limit(limit).all()


def product_history(
    db: Session, product_id: str, owner_id: str | None = None, skip: int = 0, limit: int = 100
) -> list[LedgerEntry]:
    product = db.query(Product).filter(Product.id == product_id).first()
    if product is None or (owner_id is not None and product.seller_id != owner_id):
        raise ProductNotFoundError(product_id)
    return list_entries(db, product_id=product_id, skip=skip, limit=limit)
