# chaintrack/schemas/stock.py
from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import List, Optional

from chaintrack.models.stock import MovementKind


# Manufacturer brings new bulk quantity into the system
class StockProduce(BaseModel):
    product_id: int
    quantity: int = Field(gt=0)


# Manufacturer sends bulk quantity to a seller
class StockDispatch(BaseModel):
    product_id: int
    seller_id: int
    quantity: int = Field(gt=0)


# Manufacturer pulls bulk quantity back from a seller
class StockRecall(BaseModel):
    product_id: int
    seller_id: int
    quantity: int = Field(gt=0)
    reason: Optional[str] = None


class BulkStockOut(BaseModel):
    product_id: int
    owner_id: int
    quantity: int
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# Returned details of one bulk transfer
class BulkMovementOut(BaseModel):
    id: int
    product_id: int
    from_owner_id: Optional[int] = None
    to_owner_id: Optional[int] = None
    qty: int
    kind: MovementKind
    order_id: Optional[int] = None
    reason: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BulkTotalsOut(BaseModel):
    product_id: int
    on_hand: int
    produced: int
    sold: int


class BulkMovementPage(BaseModel):
    items: List[BulkMovementOut]
    total: int
