from pydantic import BaseModel, EmailStr, ConfigDict
from typing import Optional
from chaintrack.models.users import Role

# Shared properties for user models
class UserBase(BaseModel):
    email: EmailStr

# Schema for user authentication credentials
class UserLogin(UserBase):
    password: str

# Schema for user registration requests
class UserCreate(UserBase):
    password: str
    name: str
    role: Role
    phone: Optional[str] = None

# Output schema for user profile details
class UserResponse(UserBase):
    id: int
    role: str
    name: Optional[str] = None
    phone: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

# Public view of another party (e.g. a seller picked for dispatch)
class PartyOut(BaseModel):
    id: int
    name: Optional[str] = None
    role: str

    model_config = ConfigDict(from_attributes=True)

# Schema for JWT authentication token response
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
