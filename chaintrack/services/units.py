# chaintrack/services/units.py
"""
Unit ledger: lifecycle of individually serialized items.

Every operation validates all of its units before touching any of them, and
runs inside one transaction, so a call either moves every unit or none.
"""
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from chaintrack.database import transactional
from chaintrack.errors import (
    AuthorizationError, InsufficientStockError, NotFoundError, PreconditionError, ValidationError,
)
from chaintrack.models.order import Order
from chaintrack.models.unit import ProductUnit, UnitStatus, UNIT_TRANSITIONS, SELLABLE_STATUSES
from chaintrack.models.users import Role
from chaintrack.services import authenticity
from chaintrack.services.access import require_party
from chaintrack.services.catalog import require_product

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_ids(unit_ids: Iterable[int]) -> List[int]:
    ids = list(unit_ids or [])
    if not ids:
        raise ValidationError("At least one unit id is required")
    if len(set(ids)) != len(ids):
        raise ValidationError("Unit ids must not repeat", unit_ids=ids)
    return ids


def _load_units(db: Session, unit_ids: Iterable[int]) -> List[ProductUnit]:
    ids = _normalize_ids(unit_ids)
    rows = (
        db.query(ProductUnit)
        .filter(ProductUnit.id.in_(ids))
        .with_for_update()
        .all()
    )
    by_id = {u.id: u for u in rows}
    missing = [i for i in ids if i not in by_id]
    if missing:
        raise NotFoundError("Unknown unit ids", entity="unit", ids=missing)
    return [by_id[i] for i in ids]


def check_transition(unit: ProductUnit, target: UnitStatus) -> None:
    """Raise PreconditionError unless ``unit.status -> target`` is a legal edge."""
    if target not in UNIT_TRANSITIONS[unit.status]:
        allowed_from = sorted(s.value for s, targets in UNIT_TRANSITIONS.items() if target in targets)
        raise PreconditionError(
            f"Unit {unit.id} cannot move from {unit.status.value} to {target.value}",
            entity="unit", entity_id=unit.id,
            expected=allowed_from, actual=unit.status.value,
        )


def _check_all(units: List[ProductUnit], target: UnitStatus) -> None:
    for unit in units:
        check_transition(unit, target)


# -----------------------------------------------------------------------------
# Production and dispatch
# -----------------------------------------------------------------------------

@transactional
def create_batch(db: Session, product_id: int, manufacturer_id: int, serials: Iterable[str]) -> List[ProductUnit]:
    product = require_product(db, product_id)
    if not product.is_serialized:
        raise PreconditionError(
            f"Product {product_id} is not serialized",
            entity="product", entity_id=product_id, expected="serialized", actual="bulk",
        )
    if product.manufacturer_id != manufacturer_id:
        raise AuthorizationError(
            f"Product {product_id} belongs to another manufacturer", entity="product", id=product_id,
        )

    cleaned = [(s or "").strip() for s in (serials or [])]
    if not cleaned:
        raise ValidationError("A batch needs at least one serial number")
    if any(not s for s in cleaned):
        raise ValidationError("Serial numbers must not be empty")
    repeated = sorted({s for s in cleaned if cleaned.count(s) > 1})
    if repeated:
        raise ValidationError("Serial numbers repeat within the batch", serials=repeated)

    existing = {
        s for (s,) in db.query(ProductUnit.serial_number)
        .filter(ProductUnit.product_id == product_id, ProductUnit.serial_number.in_(cleaned))
        .all()
    }
    if existing:
        raise PreconditionError(
            "Serial numbers already exist for this product",
            entity="product", entity_id=product_id, serials=sorted(existing),
        )

    now = _now()
    units = [
        ProductUnit(
            product_id=product_id,
            serial_number=serial,
            status=UnitStatus.IN_FACTORY,
            manufacturer_id=manufacturer_id,
            unique_auth_hash=authenticity.derive_hash(serial, manufacturer_id),
            manufactured_at=now,
        )
        for serial in cleaned
    ]
    db.add_all(units)
    db.flush()
    logger.info("Created %d units of product %s", len(units), product_id)
    return units


@transactional
def dispatch_to_seller(db: Session, unit_ids: Iterable[int], seller_id: int, *,
                       manufacturer_id: Optional[int] = None, in_transit: bool = False) -> List[ProductUnit]:
    """
    Hand factory units to a seller. With ``in_transit`` the units stop at
    IN_TRANSIT_TO_SELLER until ``receive_at_seller``; otherwise the transit leg
    is elided and they land AT_SELLER directly.
    """
    require_party(db, seller_id, Role.SELLER)
    units = _load_units(db, unit_ids)
    target = UnitStatus.IN_TRANSIT_TO_SELLER if in_transit else UnitStatus.AT_SELLER
    for unit in units:
        if unit.status != UnitStatus.IN_FACTORY:
            raise PreconditionError(
                f"Unit {unit.id} is not in the factory",
                entity="unit", entity_id=unit.id,
                expected=UnitStatus.IN_FACTORY.value, actual=unit.status.value,
            )
        if manufacturer_id is not None and unit.manufacturer_id != manufacturer_id:
            raise AuthorizationError(f"Unit {unit.id} belongs to another manufacturer", entity="unit", id=unit.id)

    now = _now()
    for unit in units:
        unit.seller_id = seller_id
        unit.dispatched_at = now
        unit.status = target
        if target == UnitStatus.AT_SELLER:
            unit.received_at = now
    db.flush()
    logger.info("Dispatched %d units to seller %s (%s)", len(units), seller_id, target.value)
    return units


@transactional
def receive_at_seller(db: Session, unit_ids: Iterable[int], seller_id: int) -> List[ProductUnit]:
    units = _load_units(db, unit_ids)
    for unit in units:
        if unit.status != UnitStatus.IN_TRANSIT_TO_SELLER:
            raise PreconditionError(
                f"Unit {unit.id} is not in transit",
                entity="unit", entity_id=unit.id,
                expected=UnitStatus.IN_TRANSIT_TO_SELLER.value, actual=unit.status.value,
            )
        if unit.seller_id != seller_id:
            raise AuthorizationError(f"Unit {unit.id} is addressed to another seller", entity="unit", id=unit.id)

    now = _now()
    for unit in units:
        unit.status = UnitStatus.AT_SELLER
        unit.received_at = now
    db.flush()
    return units


# -----------------------------------------------------------------------------
# Sale and returns
# -----------------------------------------------------------------------------

@transactional
def fulfill_order(db: Session, order_id: int, unit_ids: Iterable[int], buyer_id: int) -> List[ProductUnit]:
    """Bind units to an order and sell them to its buyer."""
    order = db.query(Order).filter(Order.id == order_id).with_for_update().first()
    if not order:
        raise NotFoundError(f"Order {order_id} not found", entity="order", id=order_id)
    if order.buyer_id != buyer_id:
        raise PreconditionError(
            f"Order {order_id} belongs to another buyer",
            entity="order", entity_id=order_id, expected=order.buyer_id, actual=buyer_id,
        )

    units = _load_units(db, unit_ids)
    for unit in units:
        if unit.product_id != order.product_id:
            raise ValidationError(
                f"Unit {unit.id} is not a unit of product {order.product_id}",
                entity="unit", id=unit.id,
            )
        if unit.status not in SELLABLE_STATUSES:
            raise PreconditionError(
                f"Unit {unit.id} is not available for sale",
                entity="unit", entity_id=unit.id,
                expected=[s.value for s in SELLABLE_STATUSES], actual=unit.status.value,
            )
        if unit.seller_id != order.seller_id:
            raise PreconditionError(
                f"Unit {unit.id} is not held by seller {order.seller_id}",
                entity="unit", entity_id=unit.id,
                expected=order.seller_id, actual=unit.seller_id,
            )

    now = _now()
    for unit in units:
        unit.status = UnitStatus.SOLD_TO_BUYER
        unit.buyer_id = buyer_id
        unit.sold_at = now
    order.assigned_units = units
    db.flush()
    logger.info("Sold units %s on order %s", [u.id for u in units], order_id)
    return units


@transactional
def request_return(db: Session, unit_ids: Iterable[int]) -> List[ProductUnit]:
    units = _load_units(db, unit_ids)
    _check_all(units, UnitStatus.RETURN_REQUESTED)
    for unit in units:
        unit.status = UnitStatus.RETURN_REQUESTED
    db.flush()
    return units


@transactional
def resolve_return(db: Session, unit_ids: Iterable[int], accept: bool) -> List[ProductUnit]:
    units = _load_units(db, unit_ids)
    for unit in units:
        if unit.status != UnitStatus.RETURN_REQUESTED:
            raise PreconditionError(
                f"Unit {unit.id} has no pending return",
                entity="unit", entity_id=unit.id,
                expected=UnitStatus.RETURN_REQUESTED.value, actual=unit.status.value,
            )

    now = _now()
    for unit in units:
        if accept:
            unit.status = UnitStatus.RETURNED_TO_SELLER
            unit.returned_at = now
        else:
            unit.status = UnitStatus.SOLD_TO_BUYER
    db.flush()
    return units


@transactional
def recall_defective(db: Session, unit_ids: Iterable[int], *, manufacturer_id: Optional[int] = None) -> List[ProductUnit]:
    """Pull seller-held units out of circulation for good."""
    units = _load_units(db, unit_ids)
    _check_all(units, UnitStatus.RETURNED_DEFECTIVE)
    if manufacturer_id is not None:
        for unit in units:
            if unit.manufacturer_id != manufacturer_id:
                raise AuthorizationError(f"Unit {unit.id} belongs to another manufacturer", entity="unit", id=unit.id)

    now = _now()
    for unit in units:
        unit.status = UnitStatus.RETURNED_DEFECTIVE
        unit.returned_at = now
    db.flush()
    logger.info("Recalled %d defective units", len(units))
    return units


@transactional
def delete_unit(db: Session, unit_id: int, *, manufacturer_id: Optional[int] = None) -> None:
    unit = _load_units(db, [unit_id])[0]
    if manufacturer_id is not None and unit.manufacturer_id != manufacturer_id:
        raise AuthorizationError(f"Unit {unit.id} belongs to another manufacturer", entity="unit", id=unit.id)
    if unit.status != UnitStatus.IN_FACTORY:
        raise PreconditionError(
            f"Unit {unit.id} has left the factory and cannot be deleted",
            entity="unit", entity_id=unit.id,
            expected=UnitStatus.IN_FACTORY.value, actual=unit.status.value,
        )
    db.delete(unit)


# -----------------------------------------------------------------------------
# Queries
# -----------------------------------------------------------------------------

def get_unit(db: Session, unit_id: int) -> ProductUnit:
    unit = db.query(ProductUnit).filter(ProductUnit.id == unit_id).first()
    if not unit:
        raise NotFoundError(f"Unit {unit_id} not found", entity="unit", id=unit_id)
    return unit


def available_count(db: Session, product_id: int, owner_id: int, role) -> int:
    role = Role(role)
    q = db.query(ProductUnit).filter(ProductUnit.product_id == product_id)
    if role == Role.MANUFACTURER:
        q = q.filter(ProductUnit.status == UnitStatus.IN_FACTORY, ProductUnit.manufacturer_id == owner_id)
    elif role == Role.SELLER:
        q = q.filter(ProductUnit.status.in_(SELLABLE_STATUSES), ProductUnit.seller_id == owner_id)
    else:
        return 0
    return q.count()


def sellable_units(db: Session, product_id: int, seller_id: int, limit: Optional[int] = None) -> List[ProductUnit]:
    q = (
        db.query(ProductUnit)
        .filter(
            ProductUnit.product_id == product_id,
            ProductUnit.seller_id == seller_id,
            ProductUnit.status.in_(SELLABLE_STATUSES),
        )
        .order_by(ProductUnit.id)
    )
    if limit is not None:
        q = q.limit(limit)
    return q.all()


def pick_units(db: Session, product_id: int, seller_id: int, quantity: int) -> List[int]:
    """Oldest sellable units first."""
    units = sellable_units(db, product_id, seller_id, limit=quantity)
    if len(units) < quantity:
        raise InsufficientStockError(
            "Seller does not hold enough units",
            product_id=product_id, seller_id=seller_id, requested=quantity, available=len(units),
        )
    return [u.id for u in units]


def list_units(db: Session, *, product_id: Optional[int] = None, manufacturer_id: Optional[int] = None,
               seller_id: Optional[int] = None, buyer_id: Optional[int] = None,
               status: Optional[UnitStatus] = None) -> List[ProductUnit]:
    q = db.query(ProductUnit)
    if product_id is not None:
        q = q.filter(ProductUnit.product_id == product_id)
    if manufacturer_id is not None:
        q = q.filter(ProductUnit.manufacturer_id == manufacturer_id)
    if seller_id is not None:
        q = q.filter(ProductUnit.seller_id == seller_id)
    if buyer_id is not None:
        q = q.filter(ProductUnit.buyer_id == buyer_id)
    if status is not None:
        q = q.filter(ProductUnit.status == status)
    return q.order_by(ProductUnit.id).all()
