from datetime import datetime
from typing import List, Optional

from pydantic import EmailStr, Field

from schemas.base import AppModel


# Schema for user authentication credentials
class UserLogin(AppModel):
    email: EmailStr
    password: str
    next: Optional[str] = None  # page the user was sent away from


# Schema for registration requests; the role is never taken from the client
class UserCreate(AppModel):
    email: EmailStr
    password: str = Field(min_length=6)
    first_name: str
    last_name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    postcode: Optional[str] = None


# Output schema for user profile details
class UserResponse(AppModel):
    id: int
    auth_id: str
    email: EmailStr
    role: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    postcode: Optional[str] = None
    created_at: Optional[datetime] = None


class ProfileUpdate(AppModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    postcode: Optional[str] = None


# Schema for JWT authentication token response
class Token(AppModel):
    access_token: str
    token_type: str = "bearer"
    redirect_to: str = "/dashboard"
    user: Optional[UserResponse] = None


class CustomersPage(AppModel):
    items: List[UserResponse]
    count: int
    page: int
    page_size: Optional[int] = None
    loading: bool = False
    error: Optional[str] = None


class CustomerStats(AppModel):
    total: int
    active: int
    new: int
    recurring: int
