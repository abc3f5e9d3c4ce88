# chaintrack/services/bulk.py
"""
Bulk ledger: fungible quantities per (product, owner).

One primitive, ``transfer``, moves quantity between owners. A null source
brings stock into the system (production, restored sales); a null destination
takes it out (sale to a buyer). Every transfer is recorded as a movement, so

    sum(on hand) + net sold == produced

holds for each product at all times.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from chaintrack.database import transactional
from chaintrack.errors import AuthorizationError, InsufficientStockError, PreconditionError, ValidationError
from chaintrack.models.stock import BulkStock, BulkMovement, MovementKind
from chaintrack.models.users import Role
from chaintrack.services.access import require_party
from chaintrack.services.catalog import require_product

logger = logging.getLogger(__name__)


def _validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("Quantity must be a positive integer", quantity=quantity)
    return quantity


def _get_row(db: Session, product_id: int, owner_id: int, lock: bool = False) -> Optional[BulkStock]:
    q = db.query(BulkStock).filter(BulkStock.product_id == product_id, BulkStock.owner_id == owner_id)
    if lock:
        q = q.with_for_update()
    return q.first()


def _infer_kind(from_owner_id, to_owner_id) -> MovementKind:
    if from_owner_id is None:
        return MovementKind.PRODUCE
    if to_owner_id is None:
        return MovementKind.SALE
    return MovementKind.DISPATCH


@transactional
def transfer(db: Session, product_id: int, from_owner_id: Optional[int], to_owner_id: Optional[int],
             quantity: int, *, kind: Optional[MovementKind] = None, order_id: Optional[int] = None,
             reason: Optional[str] = None) -> BulkMovement:
    quantity = _validate_quantity(quantity)
    if from_owner_id is None and to_owner_id is None:
        raise ValidationError("A transfer needs a source or a destination")
    if from_owner_id == to_owner_id:
        raise ValidationError("Source and destination must differ", owner_id=from_owner_id)

    product = require_product(db, product_id)
    if product.is_serialized:
        raise PreconditionError(
            f"Product {product_id} is serialized; move its units instead",
            entity="product", entity_id=product_id, expected="bulk", actual="serialized",
        )

    if from_owner_id is not None:
        source = _get_row(db, product_id, from_owner_id, lock=True)
        available = source.quantity if source else 0
        if available < quantity:
            raise InsufficientStockError(
                "Not enough stock to transfer",
                product_id=product_id, owner_id=from_owner_id, requested=quantity, available=available,
            )
        source.quantity -= quantity

    if to_owner_id is not None:
        target = _get_row(db, product_id, to_owner_id, lock=True)
        if target is None:
            target = BulkStock(product_id=product_id, owner_id=to_owner_id, quantity=0)
            db.add(target)
        target.quantity += quantity

    movement = BulkMovement(
        product_id=product_id,
        from_owner_id=from_owner_id,
        to_owner_id=to_owner_id,
        qty=quantity,
        kind=kind or _infer_kind(from_owner_id, to_owner_id),
        order_id=order_id,
        reason=reason,
    )
    db.add(movement)
    db.flush()
    logger.info("Bulk %s of %d x product %s: %s -> %s",
                movement.kind.value, quantity, product_id, from_owner_id, to_owner_id)
    return movement


def _require_manufacturer(db: Session, product_id: int, manufacturer_id: int) -> None:
    product = require_product(db, product_id)
    if product.manufacturer_id != manufacturer_id:
        raise AuthorizationError(f"Product {product_id} belongs to another manufacturer", entity="product", id=product_id)


@transactional
def produce(db: Session, product_id: int, manufacturer_id: int, quantity: int) -> BulkMovement:
    _require_manufacturer(db, product_id, manufacturer_id)
    return transfer(db, product_id, None, manufacturer_id, quantity, kind=MovementKind.PRODUCE)


@transactional
def dispatch(db: Session, product_id: int, manufacturer_id: int, seller_id: int, quantity: int) -> BulkMovement:
    _require_manufacturer(db, product_id, manufacturer_id)
    require_party(db, seller_id, Role.SELLER)
    return transfer(db, product_id, manufacturer_id, seller_id, quantity, kind=MovementKind.DISPATCH)


@transactional
def recall(db: Session, product_id: int, seller_id: int, manufacturer_id: int, quantity: int,
           reason: Optional[str] = None) -> BulkMovement:
    _require_manufacturer(db, product_id, manufacturer_id)
    require_party(db, seller_id, Role.SELLER)
    return transfer(db, product_id, seller_id, manufacturer_id, quantity, kind=MovementKind.RECALL, reason=reason)


# -----------------------------------------------------------------------------
# Queries
# -----------------------------------------------------------------------------

def balance(db: Session, product_id: int, owner_id: int) -> int:
    row = _get_row(db, product_id, owner_id)
    return row.quantity if row else 0


def list_stock(db: Session, product_id: Optional[int] = None, owner_id: Optional[int] = None,
               include_empty: bool = False) -> List[BulkStock]:
    q = db.query(BulkStock)
    if product_id is not None:
        q = q.filter(BulkStock.product_id == product_id)
    if owner_id is not None:
        q = q.filter(BulkStock.owner_id == owner_id)
    if not include_empty:
        q = q.filter(BulkStock.quantity > 0)
    return q.order_by(BulkStock.product_id, BulkStock.owner_id).all()


def list_movements(db: Session, product_id: Optional[int] = None, owner_id: Optional[int] = None,
                   kind: Optional[MovementKind] = None) -> List[BulkMovement]:
    q = db.query(BulkMovement)
    if product_id is not None:
        q = q.filter(BulkMovement.product_id == product_id)
    if owner_id is not None:
        q = q.filter((BulkMovement.from_owner_id == owner_id) | (BulkMovement.to_owner_id == owner_id))
    if kind is not None:
        q = q.filter(BulkMovement.kind == kind)
    return q.order_by(BulkMovement.id).all()


@dataclass
class BulkTotals:
    on_hand: int
    produced: int
    sold: int

    @property
    def balanced(self) -> bool:
        return self.on_hand + self.sold == self.produced


def totals(db: Session, product_id: int) -> BulkTotals:
    on_hand = db.query(func.coalesce(func.sum(BulkStock.quantity), 0)).filter(
        BulkStock.product_id == product_id
    ).scalar()

    per_kind = dict(
        db.query(BulkMovement.kind, func.sum(BulkMovement.qty))
        .filter(BulkMovement.product_id == product_id)
        .group_by(BulkMovement.kind)
        .all()
    )
    produced = per_kind.get(MovementKind.PRODUCE) or 0
    # Cancellations and accepted returns put sold stock back on the seller's shelf
    sold = (per_kind.get(MovementKind.SALE) or 0) \
        - (per_kind.get(MovementKind.CANCEL) or 0) \
        - (per_kind.get(MovementKind.RETURN) or 0)
    return BulkTotals(on_hand=int(on_hand), produced=int(produced), sold=int(sold))
