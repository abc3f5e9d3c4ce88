# chaintrack/models/cart.py
from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, JSON, UniqueConstraint, func
from sqlalchemy.orm import relationship
from chaintrack.database import Base

# Represents the buyer's pending selections before checkout
class Cart(Base):
    __tablename__ = "carts" # Table name

    id = Column(Integer, primary_key=True, index=True) # Primary key
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False) # Foreign key to users
    status = Column(String, default="open", index=True)  # Cart status
    created_at = Column(DateTime, server_default=func.now()) # Creation timestamp

    # One-to-many relationship with cart items
    items = relationship("CartItem", back_populates="cart", cascade="all, delete-orphan", order_by="CartItem.id")


# A product offered by one seller, with the merged quantity and unit picks
class CartItem(Base):
    __tablename__ = "cart_items" # Table name

    id = Column(Integer, primary_key=True, index=True)
    cart_id = Column(Integer, ForeignKey("carts.id"), index=True, nullable=False) # Foreign key to parent cart
    product_id = Column(Integer, ForeignKey("products.id"), index=True, nullable=False)
    seller_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    qty = Column(Integer, nullable=False, default=1)

    # Serialized products only: specific unit ids picked by the buyer
    unit_ids = Column(JSON, nullable=True)

    cart = relationship("Cart", back_populates="items") # Relationship back to Cart
    product = relationship("Product") # Relationship to Product

    __table_args__ = (
        # One line per (product, seller) in the same cart
        UniqueConstraint("cart_id", "product_id", "seller_id", name="uq_cartitem_cart_product_seller"),
    )
