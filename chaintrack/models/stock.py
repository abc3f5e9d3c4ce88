# chaintrack/models/stock.py
import enum
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum, CheckConstraint, UniqueConstraint, func
from sqlalchemy.orm import relationship
from chaintrack.database import Base

# Classification of a bulk transfer by its endpoints
class MovementKind(str, enum.Enum):
    PRODUCE = "PRODUCE"     # null -> manufacturer
    DISPATCH = "DISPATCH"   # manufacturer -> seller
    SALE = "SALE"           # seller -> null
    CANCEL = "CANCEL"       # null -> seller, order cancelled
    RETURN = "RETURN"       # null -> seller, return accepted
    RECALL = "RECALL"       # seller -> manufacturer


# Fungible quantity of one bulk product held by one owner
class BulkStock(Base):
    __tablename__ = "bulk_stock"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    quantity = Column(Integer, CheckConstraint("quantity >= 0"), nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Optimistic concurrency guard
    version = Column(Integer, nullable=False)

    product = relationship("Product")

    __table_args__ = (
        UniqueConstraint("product_id", "owner_id", name="uq_bulkstock_product_owner"),
    )
    __mapper_args__ = {"version_id_col": version}


# Append-only history of every bulk transfer
class BulkMovement(Base):
    __tablename__ = "bulk_movements"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    # Null endpoints mean stock entering or leaving the traceable system
    from_owner_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    to_owner_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    qty = Column(Integer, nullable=False)
    kind = Column(Enum(MovementKind), nullable=False, index=True)

    # Plain column: the order row is hard-deleted on cancellation
    order_id = Column(Integer, nullable=True, index=True)
    reason = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    product = relationship("Product")
