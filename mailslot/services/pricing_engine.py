"""Pricing rule engine.

Rules:
* Base price = first slot + (quantity - 1) * additional slot. Each component
  comes from the campaign when set, else the lowest-priority applicable
  ``tiered_base`` rule, else ``PRICING_SETTINGS`` defaults.
* Candidate rules are active, within their usage limit and scoped globally,
  to this campaign or to this user (a rule scoped to both must match both).
* At most one discount applies. A ``manual_override`` always wins; otherwise
  candidates are evaluated by ascending (priority, id) and the first one
  whose conditions hold wins:
    - ``bulk_discount``: bundle of at least ``min_campaigns`` campaigns and
      this booking is the bundle lead (one discount per bundle)
    - ``loyalty_discount``: the user has a discount available and the
      request is not loyalty-exempt
* discount = min(rule value, base); final = base - discount.
* When no rule of type bulk/loyalty is configured, a built-in rule backed by
  ``BULK_DISCOUNT_SETTINGS`` / ``LOYALTY_SETTINGS`` takes its place.

``evaluate_rules`` is pure: quote, checkout and refund recomputation all call
it with a snapshot and get identical answers for identical inputs. Quotes
never consume usage; ``record_rule_usage`` does, inside the booking
transaction, with a conditional UPDATE so limited rules cannot be
over-allocated.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session

from mailslot.config import PRICING_SETTINGS, BULK_DISCOUNT_SETTINGS, LOYALTY_SETTINGS
from mailslot.exceptions import PricingRuleExhausted, ValidationError
from mailslot.models.db import Campaign, PricingRule, PricingRuleApplication
from mailslot.models.db.enums import RuleStatus, RuleType
from mailslot.services import loyalty
from mailslot.services.catalog import get_campaign
from mailslot.utils import get_logger, utc_now

logger = get_logger(__name__)

DISCOUNT_RULE_TYPES = (RuleType.BULK_DISCOUNT, RuleType.LOYALTY_DISCOUNT, RuleType.MANUAL_OVERRIDE)


@dataclass(frozen=True)
class RuleSnapshot:
    """Immutable view of a pricing rule. ``id`` is None for built-in rules."""
    id: Optional[int]
    rule_type: RuleType
    value: int
    priority: int
    additional_value: Optional[int] = None
    campaign_id: Optional[int] = None
    user_id: Optional[int] = None
    usage_limit: Optional[int] = None
    usage_count: int = 0
    status: RuleStatus = RuleStatus.ACTIVE
    description: Optional[str] = None

    @classmethod
    def from_model(cls, rule: PricingRule) -> "RuleSnapshot":
        return cls(
            id=rule.id,
            rule_type=rule.rule_type,
            value=rule.value,
            priority=rule.priority,
            additional_value=rule.additional_value,
            campaign_id=rule.campaign_id,
            user_id=rule.user_id,
            usage_limit=rule.usage_limit,
            usage_count=rule.usage_count or 0,
            status=rule.status,
            description=rule.description,
        )

    @property
    def sort_key(self) -> Tuple[int, int]:
        # Built-in rules sort after configured rules sharing their priority
        return (self.priority, self.id if self.id is not None else 2**31)


@dataclass(frozen=True)
class PricingContext:
    campaign_id: int
    quantity: int
    user_id: Optional[int] = None
    bundle_size: int = 1
    bundle_lead: bool = True
    loyalty_discounts_available: int = 0
    loyalty_exempt: bool = False
    campaign_base_price: Optional[int] = None
    campaign_additional_price: Optional[int] = None


@dataclass(frozen=True)
class RuleOutcome:
    rule_id: Optional[int]
    rule_type: RuleType
    value: int
    priority: int
    applied: bool
    reason: str
    discount_amount: int = 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "rule_id": self.rule_id,
            "rule_type": self.rule_type.value,
            "value": self.value,
            "priority": self.priority,
            "applied": self.applied,
            "reason": self.reason,
            "discount_amount": self.discount_amount,
        }


@dataclass(frozen=True)
class Quote:
    campaign_id: int
    quantity: int
    user_id: Optional[int]
    base_price: int
    discount_amount: int
    final_price: int
    first_slot_price: int
    additional_slot_price: int
    price_source: str
    applied_rules: Tuple[RuleOutcome, ...] = field(default_factory=tuple)
    considered_rules: Tuple[RuleOutcome, ...] = field(default_factory=tuple)

    @property
    def total_price(self) -> int:
        return self.final_price

    @property
    def breakdown(self) -> Dict[str, int]:
        return {
            "base_price": self.base_price,
            "discount_amount": self.discount_amount,
            "final_price": self.final_price,
        }

    @property
    def discount_rule(self) -> Optional[RuleOutcome]:
        for outcome in self.applied_rules:
            if outcome.rule_type in DISCOUNT_RULE_TYPES:
                return outcome
        return None

    @property
    def uses_loyalty_discount(self) -> bool:
        rule = self.discount_rule
        return rule is not None and rule.rule_type == RuleType.LOYALTY_DISCOUNT

    @property
    def counts_toward_loyalty(self) -> bool:
        """Only bookings priced without any discount rule earn loyalty credit."""
        return self.discount_rule is None

    def to_dict(self) -> Dict[str, object]:
        return {
            "campaign_id": self.campaign_id,
            "quantity": self.quantity,
            "user_id": self.user_id,
            "total_price": self.total_price,
            "breakdown": self.breakdown,
            "first_slot_price": self.first_slot_price,
            "additional_slot_price": self.additional_slot_price,
            "price_source": self.price_source,
            "applied_rules": [o.to_dict() for o in self.applied_rules],
            "considered_rules": [o.to_dict() for o in self.considered_rules],
            "counts_toward_loyalty": self.counts_toward_loyalty,
        }


# ----------------------------- Pure evaluation ----------------------------- #

def validate_quantity(quantity: int) -> None:
    max_quantity = int(PRICING_SETTINGS["max_quantity"])
    if quantity < 1 or quantity > max_quantity:
        raise ValidationError(
            f"Quantity must be between 1 and {max_quantity}",
            details={"quantity": quantity, "max_quantity": max_quantity},
        )


def in_scope(rule: RuleSnapshot, campaign_id: int, user_id: Optional[int]) -> bool:
    if rule.campaign_id is not None and rule.campaign_id != campaign_id:
        return False
    if rule.user_id is not None and rule.user_id != user_id:
        return False
    return True


def is_candidate(rule: RuleSnapshot, campaign_id: int, user_id: Optional[int]) -> bool:
    if rule.status != RuleStatus.ACTIVE:
        return False
    if rule.usage_limit is not None and rule.usage_count >= rule.usage_limit:
        return False
    return in_scope(rule, campaign_id, user_id)


def builtin_rules() -> List[RuleSnapshot]:
    return [
        RuleSnapshot(
            id=None,
            rule_type=RuleType.BULK_DISCOUNT,
            value=int(BULK_DISCOUNT_SETTINGS["default_amount"]),
            priority=int(BULK_DISCOUNT_SETTINGS["default_priority"]),
            description="Built-in multi-campaign discount",
        ),
        RuleSnapshot(
            id=None,
            rule_type=RuleType.LOYALTY_DISCOUNT,
            value=int(LOYALTY_SETTINGS["discount_amount"]),
            priority=int(LOYALTY_SETTINGS["default_priority"]),
            description="Built-in loyalty discount",
        ),
    ]


def _discount_applies(rule: RuleSnapshot, ctx: PricingContext) -> Tuple[bool, str]:
    if rule.rule_type == RuleType.MANUAL_OVERRIDE:
        return True, "manual override"
    if rule.rule_type == RuleType.BULK_DISCOUNT:
        min_campaigns = int(BULK_DISCOUNT_SETTINGS["min_campaigns"])
        if ctx.bundle_size < min_campaigns:
            return False, f"bundle of {ctx.bundle_size} campaign(s) is below {min_campaigns}"
        if not ctx.bundle_lead:
            return False, "bulk discount already applied to the bundle lead"
        return True, f"bundle of {ctx.bundle_size} campaigns"
    if rule.rule_type == RuleType.LOYALTY_DISCOUNT:
        if ctx.loyalty_exempt:
            return False, "booking is loyalty-exempt"
        if ctx.loyalty_discounts_available <= 0:
            return False, "no loyalty discount available"
        return True, f"{ctx.loyalty_discounts_available} loyalty discount(s) available"
    return False, "not a discount rule"


def evaluate_rules(rules: Sequence[RuleSnapshot], ctx: PricingContext) -> Quote:
    """Price a request from a rule snapshot. Pure and deterministic."""
    validate_quantity(ctx.quantity)

    candidates = sorted(
        (r for r in rules if is_candidate(r, ctx.campaign_id, ctx.user_id)),
        key=lambda r: r.sort_key,
    )
    # A configured rule of a type, even inactive or used up, replaces the built-in one
    configured_types = {
        r.rule_type for r in rules if r.id is not None and in_scope(r, ctx.campaign_id, ctx.user_id)
    }
    candidates = sorted(
        candidates + [b for b in builtin_rules() if b.rule_type not in configured_types],
        key=lambda r: r.sort_key,
    )

    considered: List[RuleOutcome] = []
    applied: List[RuleOutcome] = []

    # 1. Base price schedule
    tier_rules = [r for r in candidates if r.rule_type == RuleType.TIERED_BASE]
    tier_rule = tier_rules[0] if tier_rules else None
    tier_rule_used = False

    if ctx.campaign_base_price is not None:
        first, source = ctx.campaign_base_price, "campaign"
    elif tier_rule is not None:
        first, source, tier_rule_used = tier_rule.value, "rule", True
    else:
        first, source = int(PRICING_SETTINGS["first_slot_price"]), "default"

    if ctx.campaign_additional_price is not None:
        additional = ctx.campaign_additional_price
    elif tier_rule is not None and tier_rule.additional_value is not None:
        additional, tier_rule_used = tier_rule.additional_value, True
    else:
        additional = int(PRICING_SETTINGS["additional_slot_price"])

    base_price = first + (ctx.quantity - 1) * additional

    for rule in tier_rules:
        if rule is tier_rule and tier_rule_used:
            outcome = RuleOutcome(rule.id, rule.rule_type, rule.value, rule.priority, True, "sets tiered base price")
            applied.append(outcome)
        elif rule is tier_rule:
            outcome = RuleOutcome(rule.id, rule.rule_type, rule.value, rule.priority, False,
                                  "campaign prices take precedence")
        else:
            outcome = RuleOutcome(rule.id, rule.rule_type, rule.value, rule.priority, False,
                                  f"lower precedence than tiered_base rule {tier_rule.id}")
        considered.append(outcome)

    # 2. Single discount
    discount_rules = [r for r in candidates if r.rule_type in DISCOUNT_RULE_TYPES]
    overrides = [r for r in discount_rules if r.rule_type == RuleType.MANUAL_OVERRIDE]
    winner: Optional[RuleSnapshot] = overrides[0] if overrides else None
    winner_reason = "manual override" if winner else ""
    reasons: Dict[int, str] = {}

    for idx, rule in enumerate(discount_rules):
        ok, reason = _discount_applies(rule, ctx)
        reasons[idx] = reason
        if winner is None and ok:
            winner, winner_reason = rule, reason

    discount_amount = 0
    for idx, rule in enumerate(discount_rules):
        if rule is winner:
            discount_amount = min(rule.value, base_price)
            outcome = RuleOutcome(rule.id, rule.rule_type, rule.value, rule.priority, True,
                                  winner_reason, discount_amount)
            applied.append(outcome)
        elif winner is not None and winner.rule_type == RuleType.MANUAL_OVERRIDE:
            outcome = RuleOutcome(rule.id, rule.rule_type, rule.value, rule.priority, False,
                                  "superseded by manual override")
        elif winner is not None and rule.sort_key > winner.sort_key and _discount_applies(rule, ctx)[0]:
            outcome = RuleOutcome(rule.id, rule.rule_type, rule.value, rule.priority, False,
                                  f"{winner.rule_type.value} rule took precedence")
        else:
            outcome = RuleOutcome(rule.id, rule.rule_type, rule.value, rule.priority, False, reasons[idx])
        considered.append(outcome)

    final_price = base_price - discount_amount

    return Quote(
        campaign_id=ctx.campaign_id,
        quantity=ctx.quantity,
        user_id=ctx.user_id,
        base_price=base_price,
        discount_amount=discount_amount,
        final_price=final_price,
        first_slot_price=first,
        additional_slot_price=additional,
        price_source=source,
        applied_rules=tuple(applied),
        considered_rules=tuple(considered),
    )


# ---------------------------- Database-backed ------------------------------ #

def load_rule_snapshot(session: Session, campaign_id: int, user_id: Optional[int]) -> List[RuleSnapshot]:
    """Rules scoped to (campaign, user) in any status, as immutable snapshots.

    Inactive and exhausted rules never apply but still switch off the built-in
    rule of their type.
    """
    query = session.query(PricingRule).filter((PricingRule.campaign_id.is_(None)) | (PricingRule.campaign_id == campaign_id))
    if user_id is None:
        query = query.filter(PricingRule.user_id.is_(None))
    else:
        query = query.filter((PricingRule.user_id.is_(None)) | (PricingRule.user_id == user_id))
    return [RuleSnapshot.from_model(r) for r in query.order_by(PricingRule.priority, PricingRule.id).all()]


def build_context(
    session: Session,
    campaign: Campaign,
    quantity: int,
    user_id: Optional[int],
    *,
    bundle_size: int = 1,
    bundle_lead: bool = True,
    loyalty_exempt: bool = False,
    now: Optional[datetime] = None,
) -> PricingContext:
    now = now or utc_now()
    discounts_available = 0
    if user_id is not None:
        state = loyalty.effective_state(loyalty.find_counter(session, user_id), now)
        discounts_available = state.discounts_available
    return PricingContext(
        campaign_id=campaign.id,
        quantity=quantity,
        user_id=user_id,
        bundle_size=bundle_size,
        bundle_lead=bundle_lead,
        loyalty_discounts_available=discounts_available,
        loyalty_exempt=loyalty_exempt,
        campaign_base_price=campaign.base_slot_price,
        campaign_additional_price=campaign.additional_slot_price,
    )


def quote(
    session: Session,
    campaign_id: int,
    quantity: int,
    user_id: Optional[int] = None,
    *,
    bundle_size: int = 1,
    bundle_lead: bool = True,
    loyalty_exempt: bool = False,
    now: Optional[datetime] = None,
) -> Quote:
    """Price ``quantity`` slots in a campaign for a user. Read-only."""
    validate_quantity(quantity)
    campaign = get_campaign(session, campaign_id)
    ctx = build_context(
        session, campaign, quantity, user_id,
        bundle_size=bundle_size, bundle_lead=bundle_lead, loyalty_exempt=loyalty_exempt, now=now,
    )
    result = evaluate_rules(load_rule_snapshot(session, campaign_id, user_id), ctx)
    logger.debug(
        "Quote computed",
        campaign_id=campaign_id,
        quantity=quantity,
        user_id=user_id,
        base_price=result.base_price,
        final_price=result.final_price,
        applied_rules=[o.rule_type.value for o in result.applied_rules],
    )
    return result


def record_rule_usage(session: Session, quote_: Quote, booking_id: int, user_id: int) -> List[int]:
    """Consume usage for every configured rule the quote applied.

    Runs in the caller's transaction. Raises PricingRuleExhausted when a
    limited rule ran out after the quote was computed.
    """
    consumed: List[int] = []
    for outcome in quote_.applied_rules:
        if outcome.rule_id is None:
            continue
        result = session.execute(
            update(PricingRule)
            .where(
                PricingRule.id == outcome.rule_id,
                PricingRule.status == RuleStatus.ACTIVE,
                (PricingRule.usage_limit.is_(None)) | (PricingRule.usage_count < PricingRule.usage_limit),
            )
            .values(usage_count=PricingRule.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning("Pricing rule exhausted before booking persisted", rule_id=outcome.rule_id,
                           booking_id=booking_id)
            raise PricingRuleExhausted(
                f"Pricing rule {outcome.rule_id} is no longer available; request a new quote",
                details={"rule_id": outcome.rule_id, "rule_type": outcome.rule_type.value},
            )
        session.add(PricingRuleApplication(
            rule_id=outcome.rule_id,
            booking_id=booking_id,
            user_id=user_id,
            discount_amount=outcome.discount_amount,
        ))
        consumed.append(outcome.rule_id)
    return consumed


def applied_rule_types(outcomes: Iterable[RuleOutcome]) -> List[str]:
    return [o.rule_type.value for o in outcomes]


__all__ = [
    "RuleSnapshot",
    "PricingContext",
    "RuleOutcome",
    "Quote",
    "validate_quantity",
    "in_scope",
    "is_candidate",
    "builtin_rules",
    "evaluate_rules",
    "load_rule_snapshot",
    "build_context",
    "quote",
    "record_rule_usage",
    "applied_rule_types",
]
