import enum
from sqlalchemy import Column, Integer, String, Float, DateTime, JSON, Index, UniqueConstraint, CheckConstraint
from veriflow.db import Base


class VerificationKind(str, enum.Enum):
    email = "email"
    phone = "phone"


class VerificationStatus(str, enum.Enum):
    pending = "pending"
    verified = "verified"
    failed = "failed"


class RiskTier(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"


class VerificationRecord(Base):
    __tablename__ = "verification_records"
    __table_args__ = (
        # one accepted attempt per value per rate-limit bucket
        UniqueConstraint("kind", "value", "rate_bucket", name="uq_verification_kind_value_bucket"),
        Index("idx_verification_kind_value", "kind", "value"),
        CheckConstraint("kind IN ('email', 'phone')", name="ck_verification_kind"),
        CheckConstraint("status IN ('pending', 'verified', 'failed')", name="ck_verification_status"),
        CheckConstraint("risk_tier IN ('low', 'medium', 'high')", name="ck_verification_risk_tier"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(String(10), nullable=False)
    value = Column(String(320), nullable=False)
    status = Column(String(20), nullable=False, default=VerificationStatus.pending.value, index=True)
    verification_code = Column(String(16), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    # set only by reserved attempts; NULLs never collide in the unique constraint
    rate_bucket = Column(Integer, nullable=True)

    requester_ip = Column(String(64), nullable=True)
    requester_agent = Column(String(512), nullable=True)

    validation_payload = Column(JSON(none_as_null=True), nullable=True)
    response_latency_ms = Column(Integer, nullable=True)
    quality_score = Column(Float, nullable=True, index=True)
    risk_tier = Column(String(10), nullable=True, index=True)
