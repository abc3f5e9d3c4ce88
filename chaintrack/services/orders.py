# chaintrack/services/orders.py
"""
Order coordinator: the buyer-facing order lifecycle.

Bulk orders debit the seller's stock when placed; serialized orders only check
availability at placement and bind concrete units when the seller confirms.
Every operation calls the ledger first and moves the order only once the ledger
call has succeeded, all inside one transaction.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from chaintrack.database import transactional
from chaintrack.errors import InsufficientStockError, NotFoundError, PreconditionError, ValidationError
from chaintrack.models.order import Order, OrderStatus, ORDER_TRANSITIONS
from chaintrack.models.stock import MovementKind
from chaintrack.models.unit import ProductUnit, SELLABLE_STATUSES
from chaintrack.models.users import Role, User
from chaintrack.services import bulk, units
from chaintrack.services.access import require_owner, require_party, require_role, role_of
from chaintrack.services.catalog import require_product

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _load_order(db: Session, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id).with_for_update().first()
    if not order:
        raise NotFoundError(f"Order {order_id} not found", entity="order", id=order_id)
    return order


def check_transition(order: Order, target: OrderStatus) -> None:
    if target not in ORDER_TRANSITIONS[order.status]:
        allowed_from = sorted(s.value for s, targets in ORDER_TRANSITIONS.items() if target in targets)
        raise PreconditionError(
            f"Order {order.id} cannot move from {order.status.value} to {target.value}",
            entity="order", entity_id=order.id,
            expected=allowed_from, actual=order.status.value,
        )


def _require_status(order: Order, expected: OrderStatus) -> None:
    if order.status != expected:
        raise PreconditionError(
            f"Order {order.id} is {order.status.value}, expected {expected.value}",
            entity="order", entity_id=order.id,
            expected=expected.value, actual=order.status.value,
        )


def _validate_selection(db: Session, product_id: int, seller_id: int, quantity: int,
                        unit_ids: List[int]) -> List[int]:
    ids = list(unit_ids)
    if len(set(ids)) != len(ids):
        raise ValidationError("Selected units must not repeat", unit_ids=ids)
    if len(ids) != quantity:
        raise ValidationError(
            "Selected units must match the ordered quantity", quantity=quantity, selected=len(ids),
        )
    rows = {u.id: u for u in db.query(ProductUnit).filter(ProductUnit.id.in_(ids)).all()}
    for unit_id in ids:
        unit = rows.get(unit_id)
        if unit is None or unit.product_id != product_id:
            raise ValidationError(f"Unit {unit_id} is not a unit of product {product_id}", unit_id=unit_id)
        if unit.seller_id != seller_id or unit.status not in SELLABLE_STATUSES:
            raise PreconditionError(
                f"Unit {unit_id} is not available at seller {seller_id}",
                entity="unit", entity_id=unit_id,
                expected=[s.value for s in SELLABLE_STATUSES], actual=unit.status.value,
            )
    return ids


# -----------------------------------------------------------------------------
# Lifecycle
# -----------------------------------------------------------------------------

@transactional
def place_order(db: Session, buyer: User, product_id: int, seller_id: int, quantity: int,
                unit_selection: Optional[List[int]] = None) -> Order:
    require_role(buyer, Role.BUYER)
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("Quantity must be a positive integer", quantity=quantity)
    product = require_product(db, product_id)
    require_party(db, seller_id, Role.SELLER)

    if product.is_serialized:
        # Point-in-time guard only: units are bound at confirmation
        available = units.available_count(db, product_id, seller_id, Role.SELLER)
        if quantity > available:
            raise InsufficientStockError(
                "Seller does not hold enough units",
                product_id=product_id, seller_id=seller_id, requested=quantity, available=available,
            )
        selection = None
        if unit_selection:
            selection = _validate_selection(db, product_id, seller_id, quantity, unit_selection)
        order = Order(
            product_id=product_id, seller_id=seller_id, buyer_id=buyer.id,
            quantity=quantity, status=OrderStatus.AWAITING_CONFIRMATION,
            unit_selection=selection, ordered_at=_now(),
        )
        db.add(order)
        db.flush()
    else:
        if unit_selection:
            raise ValidationError("Bulk products have no units to select", product_id=product_id)
        movement = bulk.transfer(db, product_id, seller_id, None, quantity, kind=MovementKind.SALE)
        order = Order(
            product_id=product_id, seller_id=seller_id, buyer_id=buyer.id,
            quantity=quantity, status=OrderStatus.AWAITING_CONFIRMATION, ordered_at=_now(),
        )
        db.add(order)
        db.flush()
        movement.order_id = order.id

    logger.info("Order %s placed by buyer %s: %d x product %s from seller %s",
                order.id, buyer.id, quantity, product_id, seller_id)
    return order


@transactional
def confirm(db: Session, seller: User, order_id: int, unit_ids: Optional[List[int]] = None) -> Order:
    require_role(seller, Role.SELLER)
    order = _load_order(db, order_id)
    require_owner(seller, order.seller_id, "order", order_id)
    _require_status(order, OrderStatus.AWAITING_CONFIRMATION)
    check_transition(order, OrderStatus.CONFIRMED)

    if order.product.is_serialized:
        if unit_ids and order.unit_selection and sorted(unit_ids) != sorted(order.unit_selection):
            # The buyer picked these units at placement; the seller may not swap them
            raise PreconditionError(
                f"Order {order.id} was placed for specific units",
                entity="order", entity_id=order.id,
                expected=sorted(order.unit_selection), actual=sorted(unit_ids),
            )
        ids = list(unit_ids or order.unit_selection or [])
        if not ids:
            ids = units.pick_units(db, order.product_id, order.seller_id, order.quantity)
        if len(ids) != order.quantity:
            raise ValidationError(
                "Assigned units must match the ordered quantity",
                quantity=order.quantity, assigned=len(ids),
            )
        units.fulfill_order(db, order.id, ids, order.buyer_id)
    elif unit_ids:
        raise ValidationError("Bulk orders take no unit ids", order_id=order_id)

    order.status = OrderStatus.CONFIRMED
    order.confirmed_at = _now()
    db.flush()
    logger.info("Order %s confirmed by seller %s", order.id, seller.id)
    return order


@transactional
def confirm_delivery(db: Session, buyer: User, order_id: int) -> Order:
    require_role(buyer, Role.BUYER)
    order = _load_order(db, order_id)
    require_owner(buyer, order.buyer_id, "order", order_id)
    _require_status(order, OrderStatus.CONFIRMED)
    check_transition(order, OrderStatus.DELIVERED)

    order.status = OrderStatus.DELIVERED
    order.delivered_at = _now()
    db.flush()
    return order


@transactional
def cancel(db: Session, buyer: User, order_id: int) -> None:
    """Delete an unconfirmed order and put back exactly what placement took."""
    require_role(buyer, Role.BUYER)
    order = _load_order(db, order_id)
    require_owner(buyer, order.buyer_id, "order", order_id)
    _require_status(order, OrderStatus.AWAITING_CONFIRMATION)

    # Serialized placement never moved a unit, so only bulk has anything to restore
    if not order.product.is_serialized:
        bulk.transfer(db, order.product_id, None, order.seller_id, order.quantity,
                      kind=MovementKind.CANCEL, order_id=order.id)

    db.delete(order)
    db.flush()
    logger.info("Order %s cancelled by buyer %s", order_id, buyer.id)


@transactional
def request_return(db: Session, buyer: User, order_id: int) -> Order:
    require_role(buyer, Role.BUYER)
    order = _load_order(db, order_id)
    require_owner(buyer, order.buyer_id, "order", order_id)
    _require_status(order, OrderStatus.DELIVERED)
    check_transition(order, OrderStatus.RETURN_REQUESTED)

    if order.assigned_units:
        units.request_return(db, order.assigned_unit_ids)

    order.status = OrderStatus.RETURN_REQUESTED
    order.return_requested_at = _now()
    db.flush()
    return order


@transactional
def resolve_return(db: Session, seller: User, order_id: int, accept: bool) -> Order:
    require_role(seller, Role.SELLER)
    order = _load_order(db, order_id)
    require_owner(seller, order.seller_id, "order", order_id)
    _require_status(order, OrderStatus.RETURN_REQUESTED)
    target = OrderStatus.RETURNED if accept else OrderStatus.DELIVERED
    check_transition(order, target)

    if order.assigned_units:
        units.resolve_return(db, order.assigned_unit_ids, accept)
    elif accept and not order.product.is_serialized:
        bulk.transfer(db, order.product_id, None, order.seller_id, order.quantity,
                      kind=MovementKind.RETURN, order_id=order.id)

    order.status = target
    order.return_resolved_at = _now()
    db.flush()
    logger.info("Return on order %s %s by seller %s", order.id, "accepted" if accept else "rejected", seller.id)
    return order


# -----------------------------------------------------------------------------
# Queries
# -----------------------------------------------------------------------------

def get_order(db: Session, user: User, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    # Orders of other parties look the same as missing ones
    if not order or user.id not in (order.buyer_id, order.seller_id):
        raise NotFoundError(f"Order {order_id} not found", entity="order", id=order_id)
    return order


def list_orders(db: Session, user: User, status: Optional[OrderStatus] = None) -> List[Order]:
    role = role_of(user)
    q = db.query(Order)
    if role == Role.SELLER.value:
        q = q.filter(Order.seller_id == user.id)
    elif role == Role.BUYER.value:
        q = q.filter(Order.buyer_id == user.id)
    else:
        return []
    if status is not None:
        q = q.filter(Order.status == status)
    return q.order_by(Order.ordered_at.desc(), Order.id.desc()).all()
