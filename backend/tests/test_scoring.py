import random

import pytest

from veriflow.models.verification_record import RiskTier
from veriflow.schemas.validation import EmailValidationResult, PhoneValidationResult
from veriflow.services.scoring import (
    TIER_ORDER,
    compute_score,
    escalate,
    score_email,
    score_phone,
    tier_from_quality,
)

RISK_STATUSES = ["low", "medium", "high", None]


def _email(payload) -> EmailValidationResult:
    return EmailValidationResult.model_validate(payload)


def _random_email_payload(rng: random.Random, factory):
    return factory(
        email_deliverability={"status": rng.choice(["deliverable", "undeliverable", "unknown"])},
        email_quality={"score": round(rng.random(), 2)},
        email_risk={
            "address_risk_status": rng.choice(RISK_STATUSES),
            "domain_risk_status": rng.choice(RISK_STATUSES),
        },
        email_breaches={"total_breaches": rng.choice([0, 0, 1, 4])},
    )


# ---------------------------------------------------
# Email rule table
# ---------------------------------------------------
def test_end_to_end_example_payload_is_low_risk(email_payload):
    score = score_email(_email(email_payload()))
    assert score.quality_score == 0.85
    assert score.risk_tier == RiskTier.low


@pytest.mark.parametrize("status", ["undeliverable", "unknown", None])
def test_undeliverable_is_always_high(email_payload, status):
    payload = email_payload(
        email_deliverability={"status": status},
        email_quality={"score": 0.99},
        email_risk={"address_risk_status": "low", "domain_risk_status": "low"},
    )
    assert score_email(_email(payload)) == (0.1, RiskTier.high)


@pytest.mark.parametrize(
    "q,expected",
    [
        (0.0, RiskTier.high),
        (0.29, RiskTier.high),
        (0.3, RiskTier.medium),
        (0.5, RiskTier.medium),
        (0.7, RiskTier.medium),
        (0.71, RiskTier.low),
        (1.0, RiskTier.low),
    ],
)
def test_tier_from_quality_boundaries(q, expected):
    assert tier_from_quality(q) == expected


def test_high_address_risk_escalates_to_high(email_payload):
    payload = email_payload(email_risk={"address_risk_status": "high"})
    score = score_email(_email(payload))
    assert score.quality_score == 0.85
    assert score.risk_tier == RiskTier.high


def test_medium_domain_risk_lifts_low_to_medium(email_payload):
    payload = email_payload(email_risk={"domain_risk_status": "medium"})
    assert score_email(_email(payload)).risk_tier == RiskTier.medium


def test_medium_risk_does_not_lower_high(email_payload):
    payload = email_payload(email_quality={"score": 0.1}, email_risk={"domain_risk_status": "medium"})
    assert score_email(_email(payload)).risk_tier == RiskTier.high


def test_breaches_escalate_one_step(email_payload):
    low = email_payload(email_breaches={"total_breaches": 3})
    assert score_email(_email(low)).risk_tier == RiskTier.medium

    medium = email_payload(email_quality={"score": 0.5}, email_breaches={"total_breaches": 1})
    assert score_email(_email(medium)).risk_tier == RiskTier.high


def test_escalations_compose(email_payload):
    # low -> medium (domain risk) -> high (breach)
    payload = email_payload(
        email_risk={"domain_risk_status": "medium"},
        email_breaches={"total_breaches": 1},
    )
    assert score_email(_email(payload)).risk_tier == RiskTier.high


def test_missing_quality_score_counts_as_zero(email_payload):
    payload = email_payload(email_quality={"score": None})
    assert score_email(_email(payload)) == (0.0, RiskTier.high)


def test_escalate_saturates_at_high():
    assert escalate(RiskTier.low) == RiskTier.medium
    assert escalate(RiskTier.medium) == RiskTier.high
    assert escalate(RiskTier.high) == RiskTier.high


# ---------------------------------------------------
# Properties over seeded random payloads
# ---------------------------------------------------
@pytest.mark.parametrize("seed", range(25))
def test_email_scoring_is_deterministic(email_payload, seed):
    payload = _random_email_payload(random.Random(seed), email_payload)
    assert score_email(_email(payload)) == score_email(_email(payload))


@pytest.mark.parametrize("seed", range(25))
def test_email_escalation_never_lowers_base_tier(email_payload, seed):
    payload = _random_email_payload(random.Random(seed), email_payload)
    result = _email(payload)
    score = score_email(result)
    assert 0.0 <= score.quality_score <= 1.0
    if result.is_deliverable:
        base = tier_from_quality(result.email_quality.score)
        assert TIER_ORDER.index(score.risk_tier) >= TIER_ORDER.index(base)
    else:
        assert score == (0.1, RiskTier.high)


# ---------------------------------------------------
# Phone rule table
# ---------------------------------------------------
@pytest.mark.parametrize(
    "phone_type,expected",
    [
        ("Mobile", (0.9, RiskTier.low)),
        ("Landline", (0.7, RiskTier.low)),
        ("Toll_Free", (0.5, RiskTier.medium)),
        ("Unknown", (0.5, RiskTier.medium)),
        ("Satellite", (0.8, RiskTier.low)),
        ("Premium", (0.8, RiskTier.low)),
        (None, (0.8, RiskTier.low)),
    ],
)
def test_phone_types(phone_payload, phone_type, expected):
    result = PhoneValidationResult.model_validate(phone_payload(type=phone_type))
    assert score_phone(result) == expected


@pytest.mark.parametrize("phone_type", ["Mobile", "Landline", "Toll_Free", "Unknown"])
def test_invalid_phone_is_always_high(phone_payload, phone_type):
    result = PhoneValidationResult.model_validate(phone_payload(valid=False, type=phone_type))
    assert score_phone(result) == (0.1, RiskTier.high)


def test_compute_score_dispatches_on_kind(email_payload, phone_payload):
    assert compute_score(_email(email_payload())).quality_score == 0.85
    phone = PhoneValidationResult.model_validate(phone_payload())
    assert compute_score(phone).quality_score == 0.9
