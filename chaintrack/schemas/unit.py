# chaintrack/schemas/unit.py
from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional
from datetime import datetime

from chaintrack.models.unit import UnitStatus


# Request schema for producing a batch of serialized units
class UnitBatchCreate(BaseModel):
    product_id: int
    serials: List[str] = Field(min_length=1)


# Request schema for handing factory units to a seller
class UnitDispatch(BaseModel):
    unit_ids: List[int] = Field(min_length=1)
    seller_id: int
    in_transit: bool = False


class UnitIds(BaseModel):
    unit_ids: List[int] = Field(min_length=1)


# Unit as seen by manufacturers and sellers; never carries the auth token
class UnitOut(BaseModel):
    id: int
    product_id: int
    serial_number: str
    status: UnitStatus
    manufacturer_id: int
    seller_id: Optional[int] = None
    buyer_id: Optional[int] = None
    manufactured_at: Optional[datetime] = None
    dispatched_at: Optional[datetime] = None
    received_at: Optional[datetime] = None
    sold_at: Optional[datetime] = None
    returned_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# Unit as delivered to its buyer, including the token for verification
class OwnedUnitOut(BaseModel):
    id: int
    serial_number: str
    status: UnitStatus
    auth_token: Optional[str] = None


class AvailabilityOut(BaseModel):
    product_id: int
    owner_id: int
    role: str
    available: int


# QR content for a unit: the serial only
class QrPayloadOut(BaseModel):
    unit_id: int
    payload: str
