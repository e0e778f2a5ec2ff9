"""
Storefront — Order, cart and dashboard schemas
"""
from datetime import datetime
from pydantic import BaseModel, Field

from storefront.models.order import OrderStatus


class CartLine(BaseModel):
    """One cart line as the customer's page holds it: price is the snapshot taken on first add."""
    id: str = Field(..., min_length=1, max_length=36, description="menu item id")
    name: str = Field("", max_length=255)
    price: int = Field(..., ge=0)
    quantity: int = Field(..., ge=1)


class OrderSubmitRequest(BaseModel):
    items: list[CartLine] = Field(..., min_length=1, max_length=100)
    total_amount: int | None = Field(None, ge=0)
    phone_number: str = Field("", max_length=32)
    auto_order: bool = False


class OrderSubmitResponse(BaseModel):
    success: bool = True
    message: str
    order_id: str


class PendingOrderDraft(BaseModel):
    """Cart snapshot staged across a login or phone-capture redirect."""
    items: list[CartLine] = Field(..., min_length=1)
    total_amount: int = Field(..., ge=0)
    store_name: str
    phone_number: str | None = None


class DraftStageRequest(BaseModel):
    items: list[CartLine] = Field(..., min_length=1, max_length=100)
    phone_number: str | None = Field(None, max_length=32)


class DraftStageResponse(BaseModel):
    draft_token: str
    total_amount: int
    expires_in: int


class OrderRow(BaseModel):
    order_id: str
    phone_number: str
    total_amount: int
    status: OrderStatus
    created_at: datetime


class OrderItemRow(BaseModel):
    id: str
    order_id: str
    menu_item_id: str | None
    menu_name: str
    quantity: int
    price: int
    subtotal: int


class DashboardFilters(BaseModel):
    phone: str
    date_from: datetime
    date_to: datetime


class StoreInfo(BaseModel):
    profile_id: str
    email: str | None = None
    name: str | None = None
    storename: str | None = None
    storenumber: str | None = None


class OrderListResponse(BaseModel):
    orders: list[OrderRow]
    total_count: int
    page: int
    page_size: int
    filters: DashboardFilters
    store: StoreInfo


class AcceptResponse(BaseModel):
    order_id: str
    accepted: bool
    status: OrderStatus | None = None
