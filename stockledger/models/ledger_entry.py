import logging
from datetime import datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Enum, ForeignKey, Integer, String, Text, event
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from stockledger.database import Base
from stockledger.exceptions import ImmutableEntryError

logger = logging.getLogger(__name__)


class OperationType(str, PyEnum):
    SALE = "sale"
    RETURN = "return"
    RESTOCK = "restock"
    ADJUSTMENT = "adjustment"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LedgerEntry(Base):
    """Append-only record of one applied stock change."""

    __tablename__ = "ledger_entries"
    __table_args__ = (
        CheckConstraint("stock_before >= 0", name="ck_ledger_stock_before_non_negative"),
        CheckConstraint("stock_after >= 0", name="ck_ledger_stock_after_non_negative"),
        CheckConstraint("stock_after = stock_before + quantity_delta", name="ck_ledger_delta_consistent"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[str] = mapped_column(String, ForeignKey("products.id"), nullable=False, index=True)
    operation_type: Mapped[OperationType] = mapped_column(
        Enum(OperationType, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)  # raw request; override target for adjustment
    quantity_delta: Mapped[int] = mapped_column(BigInteger, nullable=False)  # stock_after - stock_before
    stock_before: Mapped[int] = mapped_column(BigInteger, nullable=False)
    stock_after: Mapped[int] = mapped_column(BigInteger, nullable=False)
    order_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    performed_by: Mapped[str | None] = mapped_column(String, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)

    product: Mapped["Product"] = relationship("Product")  # noqa: F821

    @property
    def product_name(self) -> str:
        return self.product.name if self.product else ""


@event.listens_for(LedgerEntry, "before_update")
def _reject_update(mapper, connection, target):
    logger.error("Blocked update of ledger entry %s", target.id)
    raise ImmutableEntryError(target.id, "update")


@event.listens_for(LedgerEntry, "before_delete")
def _reject_delete(mapper, connection, target):
    logger.error("Blocked delete of ledger entry %s", target.id)
    raise ImmutableEntryError(target.id, "delete")


@event.listens_for(Session, "do_orm_execute")
def _reject_bulk_mutation(orm_execute_state):
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return
    mapper = orm_execute_state.bind_mapper
    if mapper is not None and mapper.class_ is LedgerEntry:
        operation = "update" if orm_execute_state.is_update else "delete"
        logger.error("Blocked bulk %s of ledger entries", operation)
        raise ImmutableEntryError("*", operation)
