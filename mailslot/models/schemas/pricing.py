"""
Pydantic schemas for quotes and pricing rules.
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict, model_validator
from ..db.enums import RuleType, RuleStatus

class PriceBreakdown(BaseModel):
    base_price: int
    discount_amount: int
    final_price: int

class RuleOutcomeRead(BaseModel):
    rule_id: Optional[int]
    rule_type: RuleType
    value: int
    priority: int
    applied: bool
    reason: str
    discount_amount: int = 0

    model_config = ConfigDict(from_attributes=True)

class QuoteRead(BaseModel):
    campaign_id: int
    quantity: int
    user_id: Optional[int]
    total_price: int
    breakdown: PriceBreakdown
    first_slot_price: int
    additional_slot_price: int
    price_source: str
    applied_rules: List[RuleOutcomeRead]
    considered_rules: List[RuleOutcomeRead]
    counts_toward_loyalty: bool

    @classmethod
    def from_quote(cls, quote) -> "QuoteRead":
        return cls.model_validate(quote.to_dict())

class PricingRuleCreate(BaseModel):
    rule_type: RuleType
    value: int = Field(ge=0, description="Cents. Discount amount, or first-slot price for tiered_base")
    additional_value: Optional[int] = Field(None, ge=0, description="Additional-slot price for tiered_base")
    priority: int = Field(100, ge=0)
    campaign_id: Optional[int] = Field(None, gt=0)
    user_id: Optional[int] = Field(None, gt=0)
    usage_limit: Optional[int] = Field(None, gt=0)
    status: RuleStatus = RuleStatus.ACTIVE
    description: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def _additional_only_for_tiers(self):
        if self.additional_value is not None and self.rule_type != RuleType.TIERED_BASE:
            raise ValueError("additional_value is only valid for tiered_base rules")
        return self

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "rule_type": "bulk_discount",
            "value": 30000,
            "priority": 1,
            "description": "$300 off when booking three campaigns together"
        }
    })

class PricingRuleUpdate(BaseModel):
    value: Optional[int] = Field(None, ge=0)
    additional_value: Optional[int] = Field(None, ge=0)
    priority: Optional[int] = Field(None, ge=0)
    usage_limit: Optional[int] = Field(None, gt=0)
    status: Optional[RuleStatus] = None
    description: Optional[str] = Field(None, max_length=500)

class PricingRuleRead(BaseModel):
    id: int
    rule_type: RuleType
    value: int
    additional_value: Optional[int]
    priority: int
    campaign_id: Optional[int]
    user_id: Optional[int]
    usage_limit: Optional[int]
    usage_count: int
    status: RuleStatus
    description: Optional[str]
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
