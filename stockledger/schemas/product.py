from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, Field

from stockledger.models.product import MAX_STOCK


@dataclass(frozen=True)
class ProductStock:
    """Snapshot of a product's stock as last persisted."""

    product_id: str
    quantity: int
    low_stock_threshold: int
    seller_id: str | None = None
    is_active: bool = True

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.low_stock_threshold


class ProductCreate(BaseModel):
    sku: str
    name: str
    price: float = Field(default=0.0, ge=0)
    quantity: int = Field(default=0, ge=0, le=MAX_STOCK)  # initial stock, recorded as a restock entry
    low_stock_threshold: int | None = Field(default=None, ge=0, le=MAX_STOCK)
    seller_id: str | None = None  # admins may create on behalf of a seller


class ProductUpdate(BaseModel):
    name: str | None = None
    price: float | None = Field(default=None, ge=0)
    low_stock_threshold: int | None = Field(default=None, ge=0, le=MAX_STOCK)


class ProductOut(BaseModel):
    id: str
    sku: str
    name: str
    price: float
    seller_id: str | None = None
    quantity: int
    low_stock_threshold: int
    is_low_stock: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
