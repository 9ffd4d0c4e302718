from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, StrictFloat, StrictInt

from stockledger.models.ledger_entry import OperationType


@dataclass(frozen=True)
class StockChangeRequest:
    """A requested stock change, taken as given; the ledger does all validation."""

    product_id: str
    quantity: Any
    operation_type: Any
    order_id: str | None = None
    performed_by: str | None = None
    reason: str | None = None


@dataclass(frozen=True)
class StockChange:
    """Before/after snapshot returned for an applied change."""

    product_id: str
    stock_before: int
    stock_after: int
    quantity: int
    operation_type: OperationType
    quantity_delta: int
    entry_id: int
    low_stock_threshold: int

    @property
    def is_low_stock(self) -> bool:
        return self.stock_after <= self.low_stock_threshold


class InventoryChangeIn(BaseModel):
    quantity: StrictInt | StrictFloat | None = None
    operation_type: str
    order_id: str | None = None
    reason: str | None = None


class StockChangeOut(BaseModel):
    product_id: str
    stock_before: int
    stock_after: int
    quantity: int
    quantity_delta: int
    operation_type: OperationType
    entry_id: int
    low_stock_threshold: int
    is_low_stock: bool

    model_config = {"from_attributes": True}


class LedgerEntryOut(BaseModel):
    id: int
    product_id: str
    product_name: str = ""
    operation_type: OperationType
    quantity: int
    quantity_delta: int
    stock_before: int
    stock_after: int
    order_id: str | None = None
    performed_by: str | None = None
    reason: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
