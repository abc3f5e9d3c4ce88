# chaintrack/routes/units.py
from typing import List, Optional
from fastapi import APIRouter, Depends, Request, Query
from sqlalchemy.orm import Session

from chaintrack.database import get_db
from chaintrack.errors import AuthorizationError
from chaintrack.models.unit import UnitStatus
from chaintrack.models.users import User, Role
from chaintrack.schemas import unit as unit_schemas
from chaintrack.services import authenticity, units
from chaintrack.services.access import role_of
from chaintrack.utils.audit import client_ip, write_log
from chaintrack.utils.tokenJWT import get_current_user, role_required

router = APIRouter(prefix="/units", tags=["Units"])


# Units visible to the caller: made by a manufacturer or held by a seller
@router.get("", response_model=List[unit_schemas.UnitOut])
def list_units(
    product_id: Optional[int] = Query(None),
    status: Optional[UnitStatus] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    role = role_of(current_user)
    if role == Role.MANUFACTURER.value:
        return units.list_units(db, product_id=product_id, manufacturer_id=current_user.id, status=status)
    if role == Role.SELLER.value:
        return units.list_units(db, product_id=product_id, seller_id=current_user.id, status=status)
    return units.list_units(db, product_id=product_id, buyer_id=current_user.id, status=status)


@router.get("/availability", response_model=unit_schemas.AvailabilityOut)
def availability(
    product_id: int,
    owner_id: int,
    role: Role,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    count = units.available_count(db, product_id, owner_id, role)
    return {"product_id": product_id, "owner_id": owner_id, "role": role.value, "available": count}


@router.get("/{unit_id}/qr", response_model=unit_schemas.QrPayloadOut)
def qr_payload(
    unit_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(Role.MANUFACTURER)),
):
    unit = units.get_unit(db, unit_id)
    if unit.manufacturer_id != current_user.id:
        raise AuthorizationError(f"Unit {unit_id} belongs to another manufacturer", entity="unit", id=unit_id)
    return {"unit_id": unit.id, "payload": authenticity.qr_payload(unit)}


@router.post("/batch", response_model=List[unit_schemas.UnitOut], status_code=201)
def create_batch(
    payload: unit_schemas.UnitBatchCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(Role.MANUFACTURER)),
):
    created = units.create_batch(db, payload.product_id, current_user.id, payload.serials)
    write_log(db, user_id=current_user.id, action="UNIT_BATCH_CREATE", resource="units", status="SUCCESS",
              ip=client_ip(request), meta={"product_id": payload.product_id, "count": len(created)})
    return created


@router.post("/dispatch", response_model=List[unit_schemas.UnitOut])
def dispatch_units(
    payload: unit_schemas.UnitDispatch,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(Role.MANUFACTURER)),
):
    moved = units.dispatch_to_seller(db, payload.unit_ids, payload.seller_id,
                                     manufacturer_id=current_user.id, in_transit=payload.in_transit)
    write_log(db, user_id=current_user.id, action="UNIT_DISPATCH", resource="units", status="SUCCESS",
              ip=client_ip(request), meta={"unit_ids": payload.unit_ids, "seller_id": payload.seller_id})
    return moved


@router.post("/receive", response_model=List[unit_schemas.UnitOut])
def receive_units(
    payload: unit_schemas.UnitIds,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(Role.SELLER)),
):
    received = units.receive_at_seller(db, payload.unit_ids, current_user.id)
    write_log(db, user_id=current_user.id, action="UNIT_RECEIVE", resource="units", status="SUCCESS",
              ip=client_ip(request), meta={"unit_ids": payload.unit_ids})
    return received


@router.post("/recall", response_model=List[unit_schemas.UnitOut])
def recall_units(
    payload: unit_schemas.UnitIds,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(Role.MANUFACTURER)),
):
    recalled = units.recall_defective(db, payload.unit_ids, manufacturer_id=current_user.id)
    write_log(db, user_id=current_user.id, action="UNIT_RECALL", resource="units", status="SUCCESS",
              ip=client_ip(request), meta={"unit_ids": payload.unit_ids})
    return recalled


@router.delete("/{unit_id}", status_code=204)
def delete_unit(
    unit_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(Role.MANUFACTURER)),
):
    units.delete_unit(db, unit_id, manufacturer_id=current_user.id)
    write_log(db, user_id=current_user.id, action="UNIT_DELETE", resource="units", status="SUCCESS",
              ip=client_ip(request), meta={"unit_id": unit_id})
