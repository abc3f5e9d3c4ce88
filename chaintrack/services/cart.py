# chaintrack/services/cart.py
from typing import List, Optional

from sqlalchemy.orm import Session

from chaintrack.database import transactional
from chaintrack.errors import NotFoundError, ValidationError
from chaintrack.models.cart import Cart, CartItem
from chaintrack.models.order import Order
from chaintrack.models.users import Role, User
from chaintrack.services import orders
from chaintrack.services.access import require_role
from chaintrack.services.catalog import require_product


def _open_cart(db: Session, user_id: int) -> Optional[Cart]:
    return db.query(Cart).filter(Cart.user_id == user_id, Cart.status == "open").first()


@transactional
def get_cart(db: Session, buyer: User) -> Cart:
    # Retrieve active cart or create a new one
    require_role(buyer, Role.BUYER)
    cart = _open_cart(db, buyer.id)
    if not cart:
        cart = Cart(user_id=buyer.id, status="open")
        db.add(cart)
        db.flush()
    return cart


@transactional
def add_item(db: Session, buyer: User, product_id: int, seller_id: int, qty: Optional[int] = None,
             unit_ids: Optional[List[int]] = None) -> Cart:
    """
    Merge a selection into the line for (product, seller).

    Serialized lines picked by unit carry their quantity as the size of the
    selection; unit picks from repeated adds are unioned.
    """
    cart = get_cart(db, buyer)
    product = require_product(db, product_id)

    if unit_ids:
        if not product.is_serialized:
            raise ValidationError("Bulk products have no units to select", product_id=product_id)
        if qty is not None and qty != len(set(unit_ids)):
            raise ValidationError("Quantity must equal the number of selected units", qty=qty)
    elif isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
        raise ValidationError("Quantity must be a positive integer", qty=qty)

    item = db.query(CartItem).filter(
        CartItem.cart_id == cart.id,
        CartItem.product_id == product_id,
        CartItem.seller_id == seller_id,
    ).first()

    if item is None:
        item = CartItem(cart_id=cart.id, product_id=product_id, seller_id=seller_id, qty=0, unit_ids=None)
        db.add(item)

    if unit_ids:
        if item.qty and not item.unit_ids:
            raise ValidationError("Line was added by quantity; remove it before picking units", item_id=item.id)
        merged = list(item.unit_ids or [])
        for unit_id in unit_ids:
            if unit_id not in merged:
                merged.append(unit_id)
        # Reassign so the JSON column registers the change
        item.unit_ids = merged
        item.qty = len(merged)
    else:
        if item.unit_ids:
            raise ValidationError("Line was added by unit selection; pick units instead", item_id=item.id)
        item.qty += qty

    db.flush()
    db.refresh(cart)
    return cart


@transactional
def remove_item(db: Session, buyer: User, item_id: int) -> Cart:
    cart = get_cart(db, buyer)
    item = db.query(CartItem).filter(CartItem.id == item_id, CartItem.cart_id == cart.id).first()
    if not item:
        raise NotFoundError(f"Cart item {item_id} not found", entity="cart_item", id=item_id)
    db.delete(item)
    db.flush()
    db.refresh(cart)
    return cart


@transactional
def checkout(db: Session, buyer: User) -> List[Order]:
    """Place one order per cart line. Any failing line aborts the whole checkout."""
    cart = get_cart(db, buyer)
    if not cart.items:
        raise ValidationError("Cart is empty")

    placed = [
        orders.place_order(db, buyer, it.product_id, it.seller_id, it.qty, unit_selection=it.unit_ids)
        for it in cart.items
    ]
    cart.status = "ordered"
    db.flush()
    return placed
