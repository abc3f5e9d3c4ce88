# chaintrack/routes/orders.py
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Request, Query
from sqlalchemy.orm import Session

from chaintrack.database import get_db
from chaintrack.models.order import Order, OrderStatus
from chaintrack.models.users import User
from chaintrack.schemas.order import (
    OrderResponse, OrdersPage, OrderCreatePayload, OrderConfirmPayload, ReturnResolvePayload,
)
from chaintrack.schemas.unit import OwnedUnitOut
from chaintrack.services import orders
from chaintrack.utils.audit import client_ip, write_log
from chaintrack.utils.tokenJWT import get_current_user

router = APIRouter(prefix="/orders", tags=["Orders"])
logger = logging.getLogger(__name__)


# Map Order model to OrderResponse; only the buyer sees authenticity tokens
def order_to_out(order: Order, viewer: User) -> OrderResponse:
    is_buyer = viewer.id == order.buyer_id
    assigned = [
        OwnedUnitOut(
            id=u.id,
            serial_number=u.serial_number,
            status=u.status,
            auth_token=u.unique_auth_hash if is_buyer else None,
        )
        for u in order.assigned_units
    ]
    return OrderResponse(
        id=order.id,
        product_id=order.product_id,
        product_name=order.product.name if order.product else "Deleted product",
        seller_id=order.seller_id,
        buyer_id=order.buyer_id,
        quantity=order.quantity,
        status=order.status,
        is_serialized=bool(order.product and order.product.is_serialized),
        unit_selection=order.unit_selection,
        assigned_units=assigned,
        ordered_at=order.ordered_at,
        confirmed_at=order.confirmed_at,
        delivered_at=order.delivered_at,
        return_requested_at=order.return_requested_at,
        return_resolved_at=order.return_resolved_at,
    )


def _log(db: Session, request: Request, user: User, action: str, order_id: int, **meta):
    write_log(db, user_id=user.id, action=action, resource="orders", status="SUCCESS",
              ip=client_ip(request), meta={"order_id": order_id, **meta})


@router.post("", response_model=OrderResponse, status_code=201)
def place_order(
    payload: OrderCreatePayload,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    order = orders.place_order(db, current_user, payload.product_id, payload.seller_id,
                               payload.quantity, unit_selection=payload.unit_ids)
    _log(db, request, current_user, "ORDER_PLACE", order.id, qty=payload.quantity)
    return order_to_out(order, current_user)


# Orders where the caller is the buyer or the seller
@router.get("", response_model=OrdersPage)
def list_my_orders(
    status: Optional[OrderStatus] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    rows = orders.list_orders(db, current_user, status=status)
    return {"items": [order_to_out(o, current_user) for o in rows], "total": len(rows)}


@router.get("/{order_id}", response_model=OrderResponse)
def get_order_detail(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return order_to_out(orders.get_order(db, current_user, order_id), current_user)


@router.post("/{order_id}/confirm", response_model=OrderResponse)
def confirm_order(
    order_id: int,
    request: Request,
    payload: Optional[OrderConfirmPayload] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    unit_ids = payload.unit_ids if payload else None
    order = orders.confirm(db, current_user, order_id, unit_ids=unit_ids)
    _log(db, request, current_user, "ORDER_CONFIRM", order.id, unit_ids=order.assigned_unit_ids)
    return order_to_out(order, current_user)


@router.post("/{order_id}/deliver", response_model=OrderResponse)
def confirm_delivery(
    order_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    order = orders.confirm_delivery(db, current_user, order_id)
    _log(db, request, current_user, "ORDER_DELIVERED", order.id)
    return order_to_out(order, current_user)


# Cancelling removes the order entirely
@router.delete("/{order_id}", status_code=204)
def cancel_order(
    order_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    orders.cancel(db, current_user, order_id)
    _log(db, request, current_user, "ORDER_CANCEL", order_id)


@router.post("/{order_id}/return", response_model=OrderResponse)
def request_return(
    order_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    order = orders.request_return(db, current_user, order_id)
    _log(db, request, current_user, "ORDER_RETURN_REQUEST", order.id)
    return order_to_out(order, current_user)


@router.post("/{order_id}/return/resolve", response_model=OrderResponse)
def resolve_return(
    order_id: int,
    payload: ReturnResolvePayload,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    order = orders.resolve_return(db, current_user, order_id, payload.accept)
    _log(db, request, current_user, "ORDER_RETURN_RESOLVE", order.id, accept=payload.accept)
    return order_to_out(order, current_user)
