from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from chaintrack.models.order import OrderStatus
from chaintrack.schemas.unit import OwnedUnitOut


# Input schema for placing a new order
class OrderCreatePayload(BaseModel):
    product_id: int
    seller_id: int
    quantity: int = Field(gt=0)
    unit_ids: Optional[List[int]] = None


# Seller confirmation, optionally naming the units to hand over
class OrderConfirmPayload(BaseModel):
    unit_ids: Optional[List[int]] = None


class ReturnResolvePayload(BaseModel):
    accept: bool


# Output schema representing the full order details
class OrderResponse(BaseModel):
    id: int
    product_id: int
    product_name: str
    seller_id: int
    buyer_id: int
    quantity: int
    status: OrderStatus
    is_serialized: bool
    unit_selection: Optional[List[int]] = None
    assigned_units: List[OwnedUnitOut] = []
    ordered_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    return_requested_at: Optional[datetime] = None
    return_resolved_at: Optional[datetime] = None


class OrdersPage(BaseModel):
    items: List[OrderResponse]
    total: int
