# chaintrack/models/users.py
import enum
from sqlalchemy import Column, Integer, String
from chaintrack.database import Base

# The three parties goods move between
class Role(str, enum.Enum):
    MANUFACTURER = "manufacturer"
    SELLER = "seller"
    BUYER = "buyer"

# Represents a user account with authentication details and system role
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, index=True)
    name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
