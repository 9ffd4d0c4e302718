from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stockledger.api.auth import require_roles
from stockledger.database import get_db
from stockledger.models.user import User
from stockledger.schemas.ledger import LedgerEntryOut
from stockledger.services import audit_service

router = APIRouter(prefix="/inventory", tags=["Inventory"])


@router.get("/logs", response_model=list[LedgerEntryOut])
def inventory_logs(
    product_id: str | None = None,
    operation_type: str | None = None,
    order_id: str | None = None,
    skip: int = 0,
    limit: int = 100,
    user: User = Depends(require_roles("admin", "seller")),
    db: Session = Depends(get_db),
):
    """Ledger history, newest first. Sellers only see their own products."""
    return audit_service.list_entries(
        db,
        owner_id=audit_service.visible_owner(user),
        product_id=product_id,
        operation_type=operation_type,
        order_id=order_id,
        skip=skip,
        limit=limit,
    )
