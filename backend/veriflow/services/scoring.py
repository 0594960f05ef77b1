# backend/veriflow/services/scoring.py
# Pure rule tables mapping a validator response to (quality_score, risk_tier).
from typing import NamedTuple

from ..models.verification_record import RiskTier
from ..schemas.validation import EmailValidationResult, PhoneValidationResult

TIER_ORDER = [RiskTier.low, RiskTier.medium, RiskTier.high]

UNDELIVERABLE_SCORE = 0.1
INVALID_PHONE_SCORE = 0.1


class Score(NamedTuple):
    quality_score: float
    risk_tier: RiskTier


def escalate(tier: RiskTier, steps: int = 1) -> RiskTier:
    idx = min(TIER_ORDER.index(tier) + steps, len(TIER_ORDER) - 1)
    return TIER_ORDER[idx]


def raise_to(tier: RiskTier, floor: RiskTier) -> RiskTier:
    # never lowers
    return max(tier, floor, key=TIER_ORDER.index)


def tier_from_quality(q: float) -> RiskTier:
    if q < 0.3:
        return RiskTier.high
    if q <= 0.7:
        return RiskTier.medium
    return RiskTier.low


def score_email(result: EmailValidationResult) -> Score:
    if not result.is_deliverable:
        return Score(UNDELIVERABLE_SCORE, RiskTier.high)

    q = result.email_quality.score
    q = float(q) if q is not None else 0.0
    # clamp 0-1
    q = max(0.0, min(1.0, q))
    tier = tier_from_quality(q)

    risk = result.email_risk
    statuses = (risk.address_risk_status, risk.domain_risk_status)
    if "high" in statuses:
        tier = raise_to(tier, RiskTier.high)
    elif "medium" in statuses:
        tier = raise_to(tier, RiskTier.medium)

    if (result.email_breaches.total_breaches or 0) > 0:
        tier = escalate(tier)

    return Score(q, tier)


def score_phone(result: PhoneValidationResult) -> Score:
    if not result.valid:
        return Score(INVALID_PHONE_SCORE, RiskTier.high)
    if result.type == "Mobile":
        return Score(0.9, RiskTier.low)
    if result.type == "Landline":
        return Score(0.7, RiskTier.low)
    if result.type in ("Toll_Free", "Unknown"):
        return Score(0.5, RiskTier.medium)
    return Score(0.8, RiskTier.low)


def compute_score(result) -> Score:
    """Dispatch on the result's `kind` tag."""
    if result.kind == "email":
        return score_email(result)
    if result.kind == "phone":
        return score_phone(result)
    raise ValueError(f"unknown validation kind: {result.kind!r}")
