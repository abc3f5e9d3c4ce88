from pydantic import BaseModel
from typing import Optional

from chaintrack.models.unit import UnitStatus

# Scanned QR serial plus the token the holder claims for it
class VerifyRequest(BaseModel):
    serial_number: str
    token: str
    product_id: Optional[int] = None

# Metadata disclosed only for an authentic unit
class VerifiedUnitOut(BaseModel):
    unit_id: int
    product_id: int
    product_name: str
    serial_number: str
    manufacturer_id: int
    status: UnitStatus

class VerifyResponse(BaseModel):
    valid: bool
    unit: Optional[VerifiedUnitOut] = None
