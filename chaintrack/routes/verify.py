# chaintrack/routes/verify.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from chaintrack.database import get_db
from chaintrack.schemas.verify import VerifyRequest, VerifyResponse, VerifiedUnitOut
from chaintrack.services import authenticity
from chaintrack.utils.audit import client_ip, write_log

router = APIRouter(tags=["Verify"])


# Public endpoint: anyone holding an item can check it. Failures disclose nothing.
@router.post("/verify", response_model=VerifyResponse)
def verify_unit(payload: VerifyRequest, request: Request, db: Session = Depends(get_db)):
    result = authenticity.verify(db, payload.serial_number, payload.token, product_id=payload.product_id)
    write_log(db, user_id=None, action="VERIFY", resource="units",
              status="SUCCESS" if result.valid else "FAIL", ip=client_ip(request),
              meta={"unit_id": result.unit.id} if result.valid else {})
    if not result.valid:
        return VerifyResponse(valid=False)

    unit = result.unit
    return VerifyResponse(valid=True, unit=VerifiedUnitOut(
        unit_id=unit.id,
        product_id=unit.product_id,
        product_name=unit.product.name,
        serial_number=unit.serial_number,
        manufacturer_id=unit.manufacturer_id,
        status=unit.status,
    ))
