# chaintrack/services/catalog.py
from typing import List, Optional

from sqlalchemy.orm import Session

from chaintrack.database import transactional
from chaintrack.errors import NotFoundError, PreconditionError, ValidationError
from chaintrack.models.cart import CartItem
from chaintrack.models.order import Order
from chaintrack.models.product import Product
from chaintrack.models.stock import BulkMovement, BulkStock
from chaintrack.models.unit import ProductUnit


def get_product(db: Session, product_id: int) -> Optional[Product]:
    return db.query(Product).filter(Product.id == product_id).first()


def require_product(db: Session, product_id: int) -> Product:
    product = get_product(db, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found", entity="product", id=product_id)
    return product


def list_products(db: Session, manufacturer_id: Optional[int] = None, serialized: Optional[bool] = None) -> List[Product]:
    q = db.query(Product)
    if manufacturer_id is not None:
        q = q.filter(Product.manufacturer_id == manufacturer_id)
    if serialized is not None:
        q = q.filter(Product.is_serialized == serialized)
    return q.order_by(Product.id).all()


def _has_inventory(db: Session, product_id: int) -> bool:
    has_units = db.query(ProductUnit.id).filter(ProductUnit.product_id == product_id).first() is not None
    has_stock = db.query(BulkStock.id).filter(
        BulkStock.product_id == product_id, BulkStock.quantity > 0
    ).first() is not None
    return has_units or has_stock


@transactional
def create_product(db: Session, *, name: str, manufacturer_id: int, is_serialized: bool,
                   description: Optional[str] = None) -> Product:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Product name must not be empty")
    product = Product(
        name=name,
        description=description,
        manufacturer_id=manufacturer_id,
        is_serialized=bool(is_serialized),
    )
    db.add(product)
    db.flush()
    return product


@transactional
def update_product(db: Session, product_id: int, *, name: Optional[str] = None,
                   description: Optional[str] = None, is_serialized: Optional[bool] = None) -> Product:
    product = require_product(db, product_id)

    if name is not None:
        name = name.strip()
        if not name:
            raise ValidationError("Product name must not be empty")
        product.name = name
    if description is not None:
        product.description = description

    if is_serialized is not None and bool(is_serialized) != product.is_serialized:
        # The stock representation cannot flip under existing units or quantities
        has_units = db.query(ProductUnit.id).filter(ProductUnit.product_id == product_id).first() is not None
        has_rows = db.query(BulkStock.id).filter(BulkStock.product_id == product_id).first() is not None
        if has_units or has_rows:
            raise PreconditionError(
                "Serialization flag is fixed once units or stock exist",
                entity="product", entity_id=product_id,
                expected="no units or stock", actual="inventory present",
            )
        product.is_serialized = bool(is_serialized)

    db.flush()
    return product


@transactional
def delete_product(db: Session, product_id: int) -> None:
    product = require_product(db, product_id)
    if _has_inventory(db, product_id):
        raise PreconditionError(
            "Product is still referenced by units or stock",
            entity="product", entity_id=product_id,
            expected="no units or stock", actual="inventory present",
        )
    if db.query(Order.id).filter(Order.product_id == product_id).first() is not None:
        raise PreconditionError(
            "Product is still referenced by orders",
            entity="product", entity_id=product_id,
            expected="no orders", actual="orders present",
        )
    # Idle rows, movement history and cart lines go with the product
    db.query(BulkStock).filter(BulkStock.product_id == product_id).delete(synchronize_session=False)
    db.query(BulkMovement).filter(BulkMovement.product_id == product_id).delete(synchronize_session=False)
    db.query(CartItem).filter(CartItem.product_id == product_id).delete(synchronize_session=False)
    db.delete(product)
