# backend/veriflow/services/abstract_client.py
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Type

import httpx
from pydantic import ValidationError

from ..config import settings
from ..errors import ExternalClientError, ExternalTransientError, ServiceUnavailable
from ..schemas.validation import EmailValidationResult, PhoneValidationResult, ValidationResult

logger = logging.getLogger("veriflow.client")


@dataclass
class ExternalValidation:
    """Parsed result plus the raw JSON body it was parsed from."""
    result: ValidationResult
    payload: Dict[str, Any]
    attempts: int


def backoff_delay_ms(attempt: int, base_ms: int = 1000, cap_ms: int = 5000) -> int:
    """Delay after failed attempt `attempt` (1-based): min(base * 2^(attempt-1), cap)."""
    return min(base_ms * (2 ** (attempt - 1)), cap_ms)


class AbstractAPIClient:
    """
    Thin async client for the Abstract email reputation / phone validation APIs.

    One logical call = up to `max_attempts` HTTP GETs. 4xx other than 429 is
    terminal; 5xx, 429, network errors, per-attempt timeouts and bodies that
    fail to parse are retried with capped exponential backoff.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        email_api_key: Optional[str] = None,
        phone_api_key: Optional[str] = None,
        email_url: Optional[str] = None,
        phone_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        backoff_base_ms: Optional[int] = None,
        backoff_cap_ms: Optional[int] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.http = http
        self.email_api_key = settings.ABSTRACT_EMAIL_API_KEY if email_api_key is None else email_api_key
        self.phone_api_key = settings.ABSTRACT_PHONE_API_KEY if phone_api_key is None else phone_api_key
        self.email_url = email_url or settings.EMAIL_VALIDATION_URL
        self.phone_url = phone_url or settings.PHONE_VALIDATION_URL
        self.timeout = timeout or settings.EXTERNAL_TIMEOUT_SECONDS
        self.max_attempts = max_attempts or settings.EXTERNAL_MAX_ATTEMPTS
        self.backoff_base_ms = settings.BACKOFF_BASE_MS if backoff_base_ms is None else backoff_base_ms
        self.backoff_cap_ms = settings.BACKOFF_CAP_MS if backoff_cap_ms is None else backoff_cap_ms
        self._sleep = sleep

    def missing_keys(self):
        return [name for name, key in (("email", self.email_api_key), ("phone", self.phone_api_key)) if not key]

    async def validate_email(self, email: str) -> ExternalValidation:
        return await self._call("email", self.email_url, self.email_api_key, {"email": email}, EmailValidationResult)

    async def validate_phone(self, phone: str) -> ExternalValidation:
        return await self._call("phone", self.phone_url, self.phone_api_key, {"phone": phone}, PhoneValidationResult)

    # ---------------------------------------------------
    # Single attempt
    # ---------------------------------------------------
    async def _attempt(self, url: str, params: dict, model: Type[ValidationResult]) -> ExternalValidation:
        try:
            resp = await asyncio.wait_for(
                self.http.get(
                    url,
                    params=params,
                    headers={"Content-Type": "application/json", "User-Agent": settings.USER_AGENT},
                    timeout=self.timeout,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise ExternalTransientError(f"timeout after {self.timeout}s")
        except httpx.TimeoutException as e:
            raise ExternalTransientError(f"timeout: {type(e).__name__}")
        except httpx.RequestError as e:
            # transport failures plus DecodingError and TooManyRedirects
            raise ExternalTransientError(f"network error: {type(e).__name__}: {e}")

        status = resp.status_code
        if 400 <= status < 500 and status != 429:
            raise ExternalClientError(f"HTTP {status}", status=status)
        if not resp.is_success:
            raise ExternalTransientError(f"HTTP {status}")

        try:
            payload = resp.json()
        except ValueError:
            raise ExternalTransientError("malformed response: body is not JSON")
        if not isinstance(payload, dict):
            raise ExternalTransientError("malformed response: expected a JSON object")

        try:
            result = model.model_validate(payload)
        except ValidationError as e:
            missing = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise ExternalTransientError(f"malformed response: {missing}")

        return ExternalValidation(result=result, payload=payload, attempts=0)

    # ---------------------------------------------------
    # Retry loop
    # ---------------------------------------------------
    async def _call(self, kind: str, url: str, api_key: str, query: dict, model) -> ExternalValidation:
        if not api_key:
            raise ExternalClientError(f"{kind} API key not configured")

        params = {"api_key": api_key, **query}
        last_error = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                out = await self._attempt(url, params, model)
                out.attempts = attempt
                if attempt > 1:
                    logger.info("%s validation succeeded on attempt %d", kind, attempt)
                return out
            except ExternalClientError as e:
                logger.error("%s validation rejected by provider (%s), not retrying", kind, e.detail)
                raise
            except ExternalTransientError as e:
                last_error = e
                logger.warning("%s validation attempt %d/%d failed: %s", kind, attempt, self.max_attempts, e.detail)

            if attempt < self.max_attempts:
                delay = backoff_delay_ms(attempt, self.backoff_base_ms, self.backoff_cap_ms)
                await self._sleep(delay / 1000.0)

        raise ServiceUnavailable(
            f"{kind} validation failed after {self.max_attempts} attempts: {last_error.detail}",
            cause=last_error,
        )
