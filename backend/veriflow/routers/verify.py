# backend/veriflow/routers/verify.py
import asyncio
import logging

from fastapi import APIRouter, Depends, Path, Request

from ..config import settings
from ..errors import VerificationError, ServiceUnavailable, UnexpectedError, RateLimited, RecordNotFound
from ..schemas.verification import (
    EmailVerifyRequest,
    PhoneVerifyRequest,
    VerificationEnvelope,
    VerificationRecordResponse,
    VerificationStats,
    ErrorEnvelope,
)
from ..services.storage import RecordStore, record_to_dict
from ..services.verifier import VerificationOrchestrator

router = APIRouter()

logger = logging.getLogger("veriflow.api")

ERROR_RESPONSES = {
    400: {"model": ErrorEnvelope},
    429: {"model": ErrorEnvelope},
    500: {"model": ErrorEnvelope},
    502: {"model": ErrorEnvelope},
}


# ---------------------------------------------------
# Dependencies (wired by the app lifespan)
# ---------------------------------------------------
def get_orchestrator(request: Request) -> VerificationOrchestrator:
    return request.app.state.orchestrator


def get_store(request: Request) -> RecordStore:
    return request.app.state.store


def requester_of(request: Request):
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    elif request.client:
        ip = request.client.host
    else:
        ip = "unknown"
    return ip, request.headers.get("user-agent", "unknown")


# ---------------------------------------------------
# Deadline wrapper
# ---------------------------------------------------
def _log_late_failure(task: asyncio.Task):
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("Verification finished with error after deadline: %r", exc)


async def run_with_deadline(coro, deadline: float):
    task = asyncio.ensure_future(coro)
    try:
        # shielded: the caller gives up, the work is allowed to finish
        return await asyncio.wait_for(asyncio.shield(task), timeout=deadline)
    except asyncio.TimeoutError:
        task.add_done_callback(_log_late_failure)
        logger.warning("Verification exceeded %.1fs deadline", deadline)
        raise ServiceUnavailable("request deadline exceeded", public_message="Verification timed out")


async def _guarded(coro):
    try:
        return await run_with_deadline(coro, settings.REQUEST_DEADLINE_SECONDS)
    except RateLimited as e:
        logger.info("Rate limited: %s", e.detail)
        raise
    except VerificationError:
        raise
    except Exception as e:
        logger.exception("Unexpected verification error")
        raise UnexpectedError(f"{type(e).__name__}: {e}")


# ---------------------------------------------------
# Routes
# ---------------------------------------------------
@router.post("/email", response_model=VerificationEnvelope, responses=ERROR_RESPONSES)
async def verify_email(
    payload: EmailVerifyRequest,
    request: Request,
    orchestrator: VerificationOrchestrator = Depends(get_orchestrator),
):
    ip, agent = requester_of(request)
    return await _guarded(orchestrator.verify_email(payload.email, ip, agent))


@router.post("/phone", response_model=VerificationEnvelope, responses=ERROR_RESPONSES)
async def verify_phone(
    payload: PhoneVerifyRequest,
    request: Request,
    orchestrator: VerificationOrchestrator = Depends(get_orchestrator),
):
    ip, agent = requester_of(request)
    return await _guarded(orchestrator.verify_phone(payload.phone, ip, agent))


@router.get("/stats", response_model=VerificationStats)
async def verification_stats(store: RecordStore = Depends(get_store)):
    return await store.stats()


@router.get("/records/{record_id}", response_model=VerificationRecordResponse, responses={404: {"model": ErrorEnvelope}})
async def get_record(
    record_id: int = Path(...),
    store: RecordStore = Depends(get_store),
):
    record = await store.get_by_id(record_id)
    if not record:
        raise RecordNotFound(f"no record {record_id}")
    return record_to_dict(record)
