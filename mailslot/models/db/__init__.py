from .campaigns import Campaign, campaign_route_association, campaign_industry_association
from .routes import Route
from .industries import Industry, IndustrySubcategory
from .users import User
from .bookings import Booking
from .pricing_rules import PricingRule, PricingRuleApplication
from .loyalty import LoyaltyCounter
from .waitlist import WaitlistEntry

__all__ = [
    "Campaign",
    "campaign_route_association",
    "campaign_industry_association",
    "Route",
    "Industry",
    "IndustrySubcategory",
    "User",
    "Booking",
    "PricingRule",
    "PricingRuleApplication",
    "LoyaltyCounter",
    "WaitlistEntry",
]
