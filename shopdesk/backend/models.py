from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ShippingMethod(str, Enum):
    MYSHIP = "myship"        # convenience-store pickup
    DELIVERY = "delivery"    # home delivery
    PICKUP = "pickup"        # self pickup

    @property
    def label(self) -> str:
        return SHIPPING_METHOD_LABELS[self]


SHIPPING_METHOD_LABELS = {
    ShippingMethod.MYSHIP: "Convenience store",
    ShippingMethod.DELIVERY: "Home delivery",
    ShippingMethod.PICKUP: "Self pickup",
}


class Product(BaseModel):
    id: str
    tenant_id: Optional[str] = None
    sku: str
    name: str = ""
    price: float = 0
    # None or negative means preorder
    stock: Optional[int] = None
    sold_qty: int = 0
    status: str = "active"
    category: Optional[str] = None
    image_url: Optional[str] = None
    is_limited: bool = False
    limit_qty: Optional[int] = None
    end_time: Optional[str] = None
    class Config:
        extra = "allow"


class Member(BaseModel):
    id: str
    line_user_id: Optional[str] = None
    display_name: Optional[str] = None
    nickname: Optional[str] = None
    phone: Optional[str] = None
    receiver_name: Optional[str] = None
    store_id: Optional[str] = None
    class Config:
        extra = "allow"


class OrderItem(BaseModel):
    id: str
    tenant_id: Optional[str] = None
    member_id: Optional[str] = None
    product_id: Optional[str] = None
    checkout_id: Optional[str] = None
    sku: str = ""
    item_name: Optional[str] = None
    quantity: int = 1
    arrived_qty: int = 0
    unit_price: float = 0
    customer_name: Optional[str] = None
    is_arrived: bool = False
    note: Optional[str] = None
    created_at: Optional[str] = None
    member: Optional[Member] = None
    class Config:
        extra = "allow"

    @property
    def is_terminal(self) -> bool:
        return self.checkout_id is not None


# --- RPC replies -----------------------------------------------------------

class CheckoutCreated(BaseModel):
    checkout_id: str
    class Config:
        extra = "allow"


class LinkResult(BaseModel):
    checkout_id: Optional[str] = None
    linked_count: int = 0
    skipped_count: int = 0
    message: Optional[str] = None
    class Config:
        extra = "allow"


class RestockResult(BaseModel):
    message: str = ""
    product_name: Optional[str] = None
    old_stock: Optional[int] = None
    new_stock: Optional[int] = None
    added_qty: Optional[int] = None
    # how many waiting orders the backend filled; its allocation order is opaque
    allocated_count: int = Field(0, alias="fulfilled_orders")
    partial_orders: int = 0
    class Config:
        extra = "allow"
        populate_by_name = True


class OrderDeleteResult(BaseModel):
    deleted_count: int = 0
    skipped_count: int = 0
    deleted_ids: List[str] = Field(default_factory=list)
    class Config:
        extra = "allow"


class ProductDeleteResult(BaseModel):
    hard_deleted_count: int = 0
    soft_deleted_count: int = 0
    skipped_count: int = 0
    hard_deleted_ids: List[str] = Field(default_factory=list)
    soft_deleted_ids: List[str] = Field(default_factory=list)
    class Config:
        extra = "allow"


class StatusUpdateResult(BaseModel):
    updated_count: Optional[int] = None
    status: Optional[str] = None
    class Config:
        extra = "allow"
