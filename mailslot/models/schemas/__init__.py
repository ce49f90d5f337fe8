from .base import ResponseBase, ErrorResponse
from .users import UserCreate, UserRead, UserWithApiKey, LoyaltyRead
from .catalog import (
    RouteCreate, RouteRead, IndustryCreate, IndustryRead, SubcategoryCreate, SubcategoryRead,
    CampaignCreate, CampaignUpdate, CampaignRead,
)
from .pricing import QuoteRead, PricingRuleCreate, PricingRuleUpdate, PricingRuleRead
from .bookings import (
    BookingCreate, BundleCreate, BookingRead, BookingCreatedResponse, BundleCreatedResponse,
    CheckoutResponse, ConfirmPaymentRequest, ConfirmPaymentResponse, RejectRequest,
    ArtworkReviewRequest, CancelResponse, RefundInfo, ExpirePendingRequest, ExpirePendingResponse,
)
from .waitlist import WaitlistJoin, WaitlistEntryRead, WaitlistJoinResponse

__all__ = [
    "ResponseBase", "ErrorResponse",
    "UserCreate", "UserRead", "UserWithApiKey", "LoyaltyRead",
    "RouteCreate", "RouteRead", "IndustryCreate", "IndustryRead", "SubcategoryCreate", "SubcategoryRead",
    "CampaignCreate", "CampaignUpdate", "CampaignRead",
    "QuoteRead", "PricingRuleCreate", "PricingRuleUpdate", "PricingRuleRead",
    "BookingCreate", "BundleCreate", "BookingRead", "BookingCreatedResponse", "BundleCreatedResponse",
    "CheckoutResponse", "ConfirmPaymentRequest", "ConfirmPaymentResponse", "RejectRequest",
    "ArtworkReviewRequest", "CancelResponse", "RefundInfo", "ExpirePendingRequest", "ExpirePendingResponse",
    "WaitlistJoin", "WaitlistEntryRead", "WaitlistJoinResponse",
]
