"""
Pydantic schemas for booking creation, payment, review and cancellation.
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, EmailStr, ConfigDict
from ..db.enums import (
    PaymentStatus,
    BookingStatus,
    ApprovalStatus,
    ArtworkStatus,
    RefundStatus,
)

class BookingCreate(BaseModel):
    campaign_id: int = Field(gt=0)
    route_id: int = Field(gt=0)
    industry_id: int = Field(gt=0)
    subcategory_id: Optional[int] = Field(None, gt=0)
    industry_description: Optional[str] = Field(None, max_length=300, description="Required for the Other industry")
    business_name: str = Field(min_length=1, max_length=200)
    contact_email: EmailStr
    contact_phone: Optional[str] = Field(None, max_length=40)
    quantity: int = Field(1, ge=1, description="Number of slots (upper bound is configurable)")
    loyalty_exempt: bool = Field(False, description="Do not spend an available loyalty discount")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "campaign_id": 1,
            "route_id": 3,
            "industry_id": 2,
            "subcategory_id": 7,
            "business_name": "Whitfield Plumbing",
            "contact_email": "dana@whitfieldplumbing.com",
            "quantity": 1
        }
    })

class BundleCreate(BaseModel):
    items: List[BookingCreate] = Field(min_length=1)

class BookingRead(BaseModel):
    id: int
    user_id: int
    campaign_id: int
    route_id: int
    industry_id: int
    subcategory_id: Optional[int]
    industry_description: Optional[str]
    slot_key: str
    bundle_id: Optional[str]
    business_name: str
    contact_email: str
    quantity: int
    base_price_before_discounts: int
    discount_amount: int
    amount: int
    payment_status: PaymentStatus
    status: BookingStatus
    approval_status: ApprovalStatus
    rejection_note: Optional[str]
    artwork_status: ArtworkStatus
    artwork_file_name: Optional[str]
    artwork_rejection_reason: Optional[str]
    amount_paid: Optional[int]
    paid_at: Optional[datetime]
    cancellation_date: Optional[datetime]
    refund_amount: Optional[int]
    refund_status: Optional[RefundStatus]
    counts_toward_loyalty: bool
    loyalty_discount_applied: bool
    created_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)

class BookingCreatedResponse(BaseModel):
    booking_id: int
    booking: BookingRead

class BundleCreatedResponse(BaseModel):
    bundle_id: str
    booking_ids: List[int]
    total_amount: int
    bookings: List[BookingRead]

class CheckoutResponse(BaseModel):
    booking_id: int
    session_id: str
    checkout_url: str
    amount: int

class ConfirmPaymentRequest(BaseModel):
    session_id: str = Field(min_length=1)

class ConfirmPaymentResponse(BaseModel):
    booking: BookingRead
    replayed: bool
    loyalty_discounts_earned: int

class RejectRequest(BaseModel):
    note: Optional[str] = Field(None, max_length=1000)

class ArtworkReviewRequest(BaseModel):
    approve: bool
    reason: Optional[str] = Field(None, max_length=1000)

class RefundInfo(BaseModel):
    status: RefundStatus
    amount: int
    days_until_deadline: int

class CancelResponse(BaseModel):
    booking_id: int
    refund: RefundInfo
    waitlist_notified: int

class ExpirePendingRequest(BaseModel):
    older_than_minutes: Optional[int] = Field(None, ge=0)

class ExpirePendingResponse(BaseModel):
    expired_booking_ids: List[int]
