# chaintrack/routes/stock.py
from typing import List, Optional
from fastapi import APIRouter, Depends, Request, Query
from sqlalchemy.orm import Session

from chaintrack.database import get_db
from chaintrack.models.stock import MovementKind
from chaintrack.models.users import User, Role
from chaintrack.schemas import stock as stock_schemas
from chaintrack.services import bulk
from chaintrack.utils.audit import client_ip, write_log
from chaintrack.utils.tokenJWT import get_current_user, role_required

router = APIRouter(prefix="/stock", tags=["Stock"])


# Bulk rows held by the caller (or any owner of one product)
@router.get("", response_model=List[stock_schemas.BulkStockOut])
def list_stock(
    product_id: Optional[int] = Query(None),
    owner_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if owner_id is None and product_id is None:
        owner_id = current_user.id
    return bulk.list_stock(db, product_id=product_id, owner_id=owner_id)


@router.get("/movements", response_model=stock_schemas.BulkMovementPage)
def list_movements(
    product_id: Optional[int] = Query(None),
    kind: Optional[MovementKind] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items = bulk.list_movements(db, product_id=product_id, owner_id=current_user.id, kind=kind)
    return {"items": items, "total": len(items)}


@router.get("/{product_id}/totals", response_model=stock_schemas.BulkTotalsOut)
def totals(
    product_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(Role.MANUFACTURER)),
):
    t = bulk.totals(db, product_id)
    return {"product_id": product_id, "on_hand": t.on_hand, "produced": t.produced, "sold": t.sold}


@router.post("/produce", response_model=stock_schemas.BulkMovementOut)
def produce(
    payload: stock_schemas.StockProduce,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(Role.MANUFACTURER)),
):
    movement = bulk.produce(db, payload.product_id, current_user.id, payload.quantity)
    write_log(db, user_id=current_user.id, action="STOCK_PRODUCE", resource="stock", status="SUCCESS",
              ip=client_ip(request), meta={"movement_id": movement.id, "qty": payload.quantity})
    return movement


@router.post("/dispatch", response_model=stock_schemas.BulkMovementOut)
def dispatch(
    payload: stock_schemas.StockDispatch,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(Role.MANUFACTURER)),
):
    movement = bulk.dispatch(db, payload.product_id, current_user.id, payload.seller_id, payload.quantity)
    write_log(db, user_id=current_user.id, action="STOCK_DISPATCH", resource="stock", status="SUCCESS",
              ip=client_ip(request), meta={"movement_id": movement.id, "seller_id": payload.seller_id})
    return movement


@router.post("/recall", response_model=stock_schemas.BulkMovementOut)
def recall(
    payload: stock_schemas.StockRecall,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(Role.MANUFACTURER)),
):
    movement = bulk.recall(db, payload.product_id, payload.seller_id, current_user.id,
                           payload.quantity, reason=payload.reason)
    write_log(db, user_id=current_user.id, action="STOCK_RECALL", resource="stock", status="SUCCESS",
              ip=client_ip(request), meta={"movement_id": movement.id, "seller_id": payload.seller_id})
    return movement
