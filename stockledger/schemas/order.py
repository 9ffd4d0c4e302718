from datetime import datetime

from pydantic import BaseModel, Field

from stockledger.models.order import OrderItemStatus, OrderStatus


class OrderItemCreate(BaseModel):
    product_id: str
    quantity: int = Field(default=1, gt=0)


class OrderCreate(BaseModel):
    items: list[OrderItemCreate] = Field(min_length=1)
    notes: str = ""


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    note: str = ""


class OrderItemOut(BaseModel):
    id: str
    product_id: str
    sku: str
    product_name: str
    quantity: int
    unit_price: float
    status: OrderItemStatus

    model_config = {"from_attributes": True}


class OrderOut(BaseModel):
    id: str
    order_number: str
    customer_id: str | None = None
    status: OrderStatus
    items: list[OrderItemOut]
    total_price: float
    notes: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
