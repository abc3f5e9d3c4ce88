# chaintrack/models/unit.py
import enum
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from chaintrack.database import Base

# Lifecycle of one physical item of a serialized product
class UnitStatus(str, enum.Enum):
    IN_FACTORY = "IN_FACTORY"
    IN_TRANSIT_TO_SELLER = "IN_TRANSIT_TO_SELLER"
    AT_SELLER = "AT_SELLER"
    SOLD_TO_BUYER = "SOLD_TO_BUYER"
    RETURN_REQUESTED = "RETURN_REQUESTED"
    RETURNED_TO_SELLER = "RETURNED_TO_SELLER"
    RETURNED_DEFECTIVE = "RETURNED_DEFECTIVE"

# Every legal edge of the unit state machine. Anything else is refused.
UNIT_TRANSITIONS = {
    UnitStatus.IN_FACTORY: {UnitStatus.IN_TRANSIT_TO_SELLER, UnitStatus.AT_SELLER},
    UnitStatus.IN_TRANSIT_TO_SELLER: {UnitStatus.AT_SELLER},
    UnitStatus.AT_SELLER: {UnitStatus.SOLD_TO_BUYER, UnitStatus.RETURNED_DEFECTIVE},
    UnitStatus.SOLD_TO_BUYER: {UnitStatus.RETURN_REQUESTED},
    UnitStatus.RETURN_REQUESTED: {UnitStatus.RETURNED_TO_SELLER, UnitStatus.SOLD_TO_BUYER},
    UnitStatus.RETURNED_TO_SELLER: {UnitStatus.SOLD_TO_BUYER, UnitStatus.RETURNED_DEFECTIVE},
    UnitStatus.RETURNED_DEFECTIVE: set(),
}

# Statuses counted as stock a seller can sell
SELLABLE_STATUSES = (UnitStatus.AT_SELLER, UnitStatus.RETURNED_TO_SELLER)


class ProductUnit(Base):
    __tablename__ = "product_units"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    serial_number = Column(String, nullable=False, index=True)
    status = Column(Enum(UnitStatus), nullable=False, default=UnitStatus.IN_FACTORY, index=True)

    manufacturer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    buyer_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    # Opaque verification token derived from serial + manufacturer + system secret
    unique_auth_hash = Column(String, nullable=True)

    manufactured_at = Column(DateTime(timezone=True), nullable=True)
    dispatched_at = Column(DateTime(timezone=True), nullable=True)
    received_at = Column(DateTime(timezone=True), nullable=True)
    sold_at = Column(DateTime(timezone=True), nullable=True)
    returned_at = Column(DateTime(timezone=True), nullable=True)

    # Optimistic concurrency guard
    version = Column(Integer, nullable=False)

    product = relationship("Product")

    __table_args__ = (
        UniqueConstraint("product_id", "serial_number", name="uq_unit_product_serial"),
    )
    __mapper_args__ = {"version_id_col": version}
