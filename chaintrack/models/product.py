# chaintrack/models/product.py
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, func
from sqlalchemy.orm import relationship
from chaintrack.database import Base

# Catalog entry. Serialized products are tracked unit by unit,
# bulk products only as a quantity per owner.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(String, nullable=True)
    manufacturer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Fixed once any unit or stock row references the product
    is_serialized = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    manufacturer = relationship("User")
