# chaintrack/schemas/product.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Schema for creating a new catalog entry
class ProductCreate(ORMBase):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    is_serialized: bool = False


# Schema for partial product updates
class ProductEditRequest(ORMBase):
    """Schema for PATCH requests - all fields optional."""
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    is_serialized: Optional[bool] = None


# Full product representation including ID
class ProductOut(ORMBase):
    id: int
    name: str
    description: Optional[str] = None
    manufacturer_id: int
    is_serialized: bool
    created_at: Optional[datetime] = None


class ProductListPage(ORMBase):
    items: List[ProductOut]
    total: int
