# chaintrack/routes/cart.py
from typing import List
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from chaintrack.database import get_db
from chaintrack.models.cart import Cart
from chaintrack.models.users import User
from chaintrack.routes.orders import order_to_out
from chaintrack.schemas.cart import CartAddItem, CartOut, CartItemOut
from chaintrack.schemas.order import OrderResponse
from chaintrack.services import cart as cart_service
from chaintrack.utils.audit import client_ip, write_log
from chaintrack.utils.tokenJWT import get_current_user

router = APIRouter(prefix="/cart", tags=["Cart"])


def _cart_to_out(cart: Cart) -> CartOut:
    items_out = []
    for it in cart.items:
        items_out.append(CartItemOut(
            id=it.id,
            product_id=it.product_id,
            seller_id=it.seller_id,
            name=it.product.name if it.product else "",
            is_serialized=bool(it.product and it.product.is_serialized),
            qty=it.qty,
            unit_ids=it.unit_ids,
        ))
    return CartOut(items=items_out, total_items=sum(i.qty for i in items_out))


@router.get("", response_model=CartOut)
def get_cart(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return _cart_to_out(cart_service.get_cart(db, current_user))


@router.post("/add", response_model=CartOut)
def add_to_cart(
    payload: CartAddItem,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    cart = cart_service.add_item(db, current_user, payload.product_id, payload.seller_id,
                                 qty=payload.qty, unit_ids=payload.unit_ids)
    out = _cart_to_out(cart)
    write_log(db, user_id=current_user.id, action="CART_ADD", resource="cart", status="SUCCESS",
              ip=client_ip(request), meta={"product_id": payload.product_id, "cart_items": len(out.items)})
    return out


@router.delete("/items/{item_id}", response_model=CartOut)
def delete_cart_item(
    item_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    cart = cart_service.remove_item(db, current_user, item_id)
    out = _cart_to_out(cart)
    write_log(db, user_id=current_user.id, action="CART_DELETE", resource="cart", status="SUCCESS",
              ip=client_ip(request), meta={"item_id": item_id, "cart_items": len(out.items)})
    return out


@router.post("/checkout", response_model=List[OrderResponse])
def checkout(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    placed = cart_service.checkout(db, current_user)
    write_log(db, user_id=current_user.id, action="CART_CHECKOUT", resource="cart", status="SUCCESS",
              ip=client_ip(request), meta={"order_ids": [o.id for o in placed]})
    return [order_to_out(o, current_user) for o in placed]
