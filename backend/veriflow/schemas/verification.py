# backend/veriflow/schemas/verification.py
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, StrictStr


class EmailVerifyRequest(BaseModel):
    email: StrictStr


class PhoneVerifyRequest(BaseModel):
    phone: StrictStr


class VerificationEnvelope(BaseModel):
    success: bool = True
    message: str
    requestId: int
    verificationCode: str
    validation: Dict[str, Any]
    qualityScore: float
    riskLevel: str
    responseTime: int
    timestamp: datetime


class ErrorEnvelope(BaseModel):
    error: str


class VerificationRecordResponse(BaseModel):
    id: int
    kind: str
    value: str
    status: str
    verificationCode: str
    createdAt: datetime
    updatedAt: datetime
    requesterIp: Optional[str] = None
    requesterAgent: Optional[str] = None
    validationPayload: Optional[Dict[str, Any]] = None
    responseLatencyMs: Optional[int] = None
    qualityScore: Optional[float] = None
    riskTier: Optional[str] = None


class RiskDistribution(BaseModel):
    low: int = 0
    medium: int = 0
    high: int = 0


class VerificationStats(BaseModel):
    total_requests: int
    successful_requests: int
    failed_requests: int
    pending_requests: int
    average_response_time: float
    average_quality_score: float
    risk_distribution: RiskDistribution
