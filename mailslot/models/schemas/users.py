"""
Pydantic schemas for user-related operations.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, EmailStr, ConfigDict
from ..db.enums import UserRole

class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    business_name: Optional[str] = Field(None, max_length=200)
    role: UserRole = UserRole.CUSTOMER

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "name": "Dana Whitfield",
            "email": "dana@whitfieldplumbing.com",
            "business_name": "Whitfield Plumbing",
            "role": "CUSTOMER"
        }
    })

class UserRead(BaseModel):
    id: int
    name: str
    email: str
    business_name: Optional[str]
    is_active: bool
    role: UserRole
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class UserWithApiKey(UserRead):
    """Returned once, at registration, so the caller can store the key."""
    api_key: Optional[str]

class LoyaltyRead(BaseModel):
    user_id: int
    year: int
    slots_earned_this_year: int
    discounts_available: int
    slots_until_next_discount: int
    discount_amount: int
