# backend/veriflow/services/storage.py
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import select, update, func, case
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..errors import PersistenceError, RateLimited
from ..models.verification_record import VerificationRecord, VerificationStatus
from ..utils.helpers import generate_verification_code, utcnow, as_utc

logger = logging.getLogger("veriflow.db")


UPDATABLE_FIELDS = {"status", "validation_payload", "response_latency_ms", "quality_score", "risk_tier"}


def rate_bucket_for(ts: datetime, window_seconds: int) -> int:
    return int(ts.timestamp() // window_seconds)


def _enum_value(v):
    return getattr(v, "value", v)


class RecordStore:
    """
    Durable store for verification attempts.

    Built from an explicit session maker; every public method acquires its
    own session and releases it before returning.
    """

    def __init__(self, session_maker, window_seconds: Optional[int] = None):
        self._session_maker = session_maker
        self.window_seconds = window_seconds or settings.RATE_LIMIT_WINDOW_SECONDS

    @asynccontextmanager
    async def _session(self):
        try:
            async with self._session_maker() as session:
                yield session
        except (RateLimited, PersistenceError):
            raise
        except IntegrityError as e:
            if "unique" not in str(e.orig).lower():
                logger.exception("Record store integrity failure")
                raise PersistenceError(f"integrity error: {e.orig}")
            logger.info("Rate bucket constraint hit: %s", e.orig)
            raise RateLimited("duplicate attempt inside rate bucket")
        except SQLAlchemyError as e:
            logger.exception("Record store failure")
            raise PersistenceError(f"record store unavailable: {type(e).__name__}")

    # ---------------------------------------------------
    # Session-level helpers (shared by the public methods)
    # ---------------------------------------------------
    async def _find_recent(self, session: AsyncSession, kind, value: str, since: datetime) -> List[VerificationRecord]:
        q = await session.execute(
            select(VerificationRecord)
            .where(
                VerificationRecord.kind == _enum_value(kind),
                VerificationRecord.value == value,
                VerificationRecord.created_at > since,
            )
            .order_by(VerificationRecord.created_at.desc(), VerificationRecord.id.desc())
        )
        return list(q.scalars().all())

    def _new_record(self, kind, value: str, requester_ip: Optional[str], requester_agent: Optional[str],
                    claim_bucket: bool = False) -> VerificationRecord:
        now = utcnow()
        return VerificationRecord(
            kind=_enum_value(kind),
            value=value,
            status=VerificationStatus.pending.value,
            verification_code=generate_verification_code(),
            created_at=now,
            updated_at=now,
            rate_bucket=rate_bucket_for(now, self.window_seconds) if claim_bucket else None,
            requester_ip=requester_ip,
            requester_agent=requester_agent,
            validation_payload=None,
            response_latency_ms=None,
            quality_score=None,
            risk_tier=None,
        )

    # ---------------------------------------------------
    # Public contract
    # ---------------------------------------------------
    async def insert(self, kind, value: str, requester_ip: Optional[str] = None,
                     requester_agent: Optional[str] = None) -> VerificationRecord:
        """Plain insert. No rate-limit bucket is claimed, see `reserve`."""
        async with self._session() as session:
            record = self._new_record(kind, value, requester_ip, requester_agent)
            session.add(record)
            await session.commit()
            return record

    async def find_recent(self, kind, value: str, since: datetime) -> List[VerificationRecord]:
        async with self._session() as session:
            return await self._find_recent(session, kind, value, since)

    async def reserve(self, kind, value: str, requester_ip: Optional[str] = None,
                      requester_agent: Optional[str] = None) -> VerificationRecord:
        """
        Rate-limit check and pending-record insert in one transaction.

        Raises RateLimited if an attempt for (kind, value) exists inside the
        window, or if a concurrent request won the same rate bucket.
        """
        async with self._session() as session:
            async with session.begin():
                since = utcnow() - timedelta(seconds=self.window_seconds)
                recent = await self._find_recent(session, kind, value, since)
                if recent:
                    raise RateLimited(f"{_enum_value(kind)} attempt {recent[0].id} inside window")
                record = self._new_record(kind, value, requester_ip, requester_agent, claim_bucket=True)
                session.add(record)
            return record

    async def update(self, record_id: int, **fields) -> None:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"fields not updatable: {sorted(unknown)}")
        values = {k: _enum_value(v) for k, v in fields.items() if v is not None}
        if not values:
            return
        values["updated_at"] = utcnow()

        async with self._session() as session:
            res = await session.execute(
                update(VerificationRecord).where(VerificationRecord.id == record_id).values(**values)
            )
            await session.commit()
            if res.rowcount == 0:
                logger.debug("update ignored, no record with id=%s", record_id)

    async def get_by_id(self, record_id: int) -> Optional[VerificationRecord]:
        async with self._session() as session:
            return await session.get(VerificationRecord, record_id)

    # ---------------------------------------------------
    # Derived read-only statistics
    # ---------------------------------------------------
    async def stats(self) -> dict:
        r = VerificationRecord
        async with self._session() as session:
            row = (await session.execute(
                select(
                    func.count(r.id),
                    func.sum(case((r.status == VerificationStatus.verified.value, 1), else_=0)),
                    func.sum(case((r.status == VerificationStatus.failed.value, 1), else_=0)),
                    func.sum(case((r.status == VerificationStatus.pending.value, 1), else_=0)),
                    func.avg(r.response_latency_ms),
                    func.avg(r.quality_score),
                    func.sum(case((r.risk_tier == "low", 1), else_=0)),
                    func.sum(case((r.risk_tier == "medium", 1), else_=0)),
                    func.sum(case((r.risk_tier == "high", 1), else_=0)),
                )
            )).one()

        total, verified, failed, pending, avg_latency, avg_quality, low, medium, high = row
        return {
            "total_requests": total or 0,
            "successful_requests": verified or 0,
            "failed_requests": failed or 0,
            "pending_requests": pending or 0,
            "average_response_time": float(avg_latency or 0),
            "average_quality_score": float(avg_quality or 0),
            "risk_distribution": {"low": low or 0, "medium": medium or 0, "high": high or 0},
        }


def record_to_dict(record: VerificationRecord) -> dict:
    return {
        "id": record.id,
        "kind": record.kind,
        "value": record.value,
        "status": record.status,
        "verificationCode": record.verification_code,
        "createdAt": as_utc(record.created_at),
        "updatedAt": as_utc(record.updated_at),
        "requesterIp": record.requester_ip,
        "requesterAgent": record.requester_agent,
        "validationPayload": record.validation_payload,
        "responseLatencyMs": record.response_latency_ms,
        "qualityScore": record.quality_score,
        "riskTier": record.risk_tier,
    }
