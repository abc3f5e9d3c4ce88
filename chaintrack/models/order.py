# chaintrack/models/order.py
import enum
from sqlalchemy import Column, Integer, ForeignKey, DateTime, Enum, JSON, Table, func
from sqlalchemy.orm import relationship
from chaintrack.database import Base

class OrderStatus(str, enum.Enum):
    AWAITING_CONFIRMATION = "Awaiting Confirmation"
    CONFIRMED = "Confirmed"
    DELIVERED = "Delivered"
    RETURN_REQUESTED = "Return Requested"
    RETURNED = "Returned"

# Legal order edges. Cancellation is not an edge: it deletes the row.
ORDER_TRANSITIONS = {
    OrderStatus.AWAITING_CONFIRMATION: {OrderStatus.CONFIRMED},
    OrderStatus.CONFIRMED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.RETURN_REQUESTED},
    OrderStatus.RETURN_REQUESTED: {OrderStatus.RETURNED, OrderStatus.DELIVERED},
    OrderStatus.RETURNED: set(),
}

# Units bound to an order at confirmation (serialized products only)
order_units = Table(
    "order_units",
    Base.metadata,
    Column("order_id", Integer, ForeignKey("orders.id", ondelete="CASCADE"), primary_key=True),
    Column("unit_id", Integer, ForeignKey("product_units.id"), primary_key=True),
)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    buyer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    status = Column(Enum(OrderStatus), nullable=False, default=OrderStatus.AWAITING_CONFIRMATION, index=True)

    # Units the buyer picked at placement; honoured at confirmation if still sellable
    unit_selection = Column(JSON, nullable=True)

    ordered_at = Column(DateTime(timezone=True), server_default=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    return_requested_at = Column(DateTime(timezone=True), nullable=True)
    return_resolved_at = Column(DateTime(timezone=True), nullable=True)

    # Optimistic concurrency guard
    version = Column(Integer, nullable=False)

    product = relationship("Product")
    assigned_units = relationship("ProductUnit", secondary=order_units, order_by="ProductUnit.id")

    __mapper_args__ = {"version_id_col": version}

    @property
    def assigned_unit_ids(self):
        return [u.id for u in self.assigned_units]
