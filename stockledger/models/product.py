import uuid
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    String,
    event,
    func,
    inspect,
)
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import Mapped, Session, mapped_column

from stockledger.config import settings
from stockledger.database import Base
from stockledger.exceptions import DirectStockWriteError

# Largest value a signed 64-bit INTEGER column holds
MAX_STOCK = 2**63 - 1

# Execution option carried by the one statement allowed to write stock
STOCK_CAS_OPTION = "stock_cas"


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        CheckConstraint("low_stock_threshold >= 0", name="ck_products_threshold_non_negative"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    sku: Mapped[str] = mapped_column(String, unique=True, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    price: Mapped[float] = mapped_column(Float, default=0.0)
    seller_id: Mapped[str | None] = mapped_column(String, ForeignKey("users.id"), nullable=True, index=True)

    # Written only by product_service.compare_and_swap
    _quantity: Mapped[int] = mapped_column("quantity", BigInteger, nullable=False, default=0)
    low_stock_threshold: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=lambda: settings.DEFAULT_LOW_STOCK_THRESHOLD
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    @hybrid_property
    def quantity(self) -> int:
        return self._quantity

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.low_stock_threshold


@event.listens_for(Product, "before_insert")
def _reject_initial_stock(mapper, connection, target):
    # new products start at 0; opening stock is a ledger restock
    if target._quantity not in (None, 0):
        raise DirectStockWriteError(target.id, "insert")


@event.listens_for(Product, "before_update")
def _reject_stock_assignment(mapper, connection, target):
    if inspect(target).attrs["_quantity"].history.has_changes():
        raise DirectStockWriteError(target.id, "update")


@event.listens_for(Session, "do_orm_execute")
def _reject_bulk_stock_write(orm_execute_state):
    if not orm_execute_state.is_update:
        return
    mapper = orm_execute_state.bind_mapper
    if mapper is None or mapper.class_ is not Product:
        return
    if not orm_execute_state.execution_options.get(STOCK_CAS_OPTION):
        raise DirectStockWriteError("*", "bulk update")
