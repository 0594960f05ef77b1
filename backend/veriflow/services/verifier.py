# backend/veriflow/services/verifier.py
import logging
import time
from typing import Awaitable, Callable, Optional

from ..errors import InvalidInput, ExternalServiceError
from ..models.verification_record import VerificationKind, VerificationStatus
from ..schemas.verification import VerificationEnvelope
from ..utils.helpers import is_valid_email_input, is_valid_phone_input, utcnow
from .abstract_client import AbstractAPIClient, ExternalValidation
from .scoring import compute_score
from .storage import RecordStore

logger = logging.getLogger("veriflow.verifier")


class VerificationOrchestrator:
    """
    Runs one verification request end to end:

        validate input -> rate-limit + pending insert -> external call
        -> score -> single status update -> success envelope

    Rejected input never touches the store. A rate-limited request creates
    no record and makes no external call. If the external call fails the
    pending record is left as-is (audit trail) and the error propagates.
    """

    def __init__(self, store: RecordStore, client: AbstractAPIClient):
        self.store = store
        self.client = client

    async def verify_email(self, email, requester_ip: Optional[str] = None,
                           requester_agent: Optional[str] = None) -> VerificationEnvelope:
        if not is_valid_email_input(email):
            raise InvalidInput("empty email", public_message="Valid email address is required")
        return await self._run(
            VerificationKind.email, email, requester_ip, requester_agent,
            self.client.validate_email, "Email validation completed successfully",
        )

    async def verify_phone(self, phone, requester_ip: Optional[str] = None,
                           requester_agent: Optional[str] = None) -> VerificationEnvelope:
        if not isinstance(phone, str) or not phone:
            raise InvalidInput("empty phone", public_message="Valid phone number is required")
        if not is_valid_phone_input(phone):
            raise InvalidInput("phone pattern mismatch", public_message="Invalid phone number format")
        return await self._run(
            VerificationKind.phone, phone, requester_ip, requester_agent,
            self.client.validate_phone, "Phone validation completed successfully",
        )

    async def _run(self, kind: VerificationKind, value: str, requester_ip, requester_agent,
                   call: Callable[[str], Awaitable[ExternalValidation]], message: str) -> VerificationEnvelope:
        record = await self.store.reserve(kind, value, requester_ip, requester_agent)
        started = time.perf_counter()
        logger.info("Created %s verification request id=%s", kind.value, record.id)
        # no delivery channel exists yet; the code is only surfaced here and in the response
        logger.info("%s verification code for request %s: %s", kind.value, record.id, record.verification_code)

        try:
            external = await call(value)
        except ExternalServiceError as e:
            logger.warning("Verification request id=%s left pending: %s", record.id, e.detail)
            raise

        score = compute_score(external.result)
        status = VerificationStatus.verified if self._is_valid(external) else VerificationStatus.failed
        latency_ms = int(round((time.perf_counter() - started) * 1000))

        await self.store.update(
            record.id,
            status=status,
            validation_payload=external.payload,
            quality_score=score.quality_score,
            risk_tier=score.risk_tier,
            response_latency_ms=latency_ms,
        )
        logger.info(
            "Verification request id=%s %s score=%.2f risk=%s latency=%dms attempts=%d",
            record.id, status.value, score.quality_score, score.risk_tier.value, latency_ms, external.attempts,
        )

        return VerificationEnvelope(
            success=True,
            message=message,
            requestId=record.id,
            verificationCode=record.verification_code,
            validation=external.payload,
            qualityScore=score.quality_score,
            riskLevel=score.risk_tier.value,
            responseTime=latency_ms,
            timestamp=utcnow(),
        )

    @staticmethod
    def _is_valid(external: ExternalValidation) -> bool:
        result = external.result
        if result.kind == "email":
            return result.is_deliverable
        return bool(result.valid)
