from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional

# Request schema for adding a selection to the cart
class CartAddItem(BaseModel):
    product_id: int
    seller_id: int
    qty: Optional[int] = Field(default=None, gt=0)
    unit_ids: Optional[List[int]] = None

# Response schema for a single cart line item
class CartItemOut(BaseModel):
    id: int
    product_id: int
    seller_id: int
    name: str
    is_serialized: bool
    qty: int
    unit_ids: Optional[List[int]] = None

    model_config = ConfigDict(from_attributes=True)

# Response schema for the entire cart summary
class CartOut(BaseModel):
    items: List[CartItemOut]
    total_items: int
