import asyncio
import copy

import httpx
import pytest

from veriflow.db import build_engine, build_session_maker, create_tables
from veriflow.services.abstract_client import AbstractAPIClient
from veriflow.services.storage import RecordStore


EMAIL_PAYLOAD = {
    "email_address": "test@example.com",
    "email_deliverability": {
        "status": "deliverable",
        "status_detail": "valid_email",
        "is_format_valid": True,
        "is_smtp_valid": True,
        "is_mx_valid": True,
        "mx_records": ["mx1.example.com"],
    },
    "email_quality": {
        "score": 0.85,
        "is_free_email": False,
        "is_username_suspicious": False,
        "is_disposable": False,
        "is_catchall": False,
        "is_subaddress": False,
        "is_role": False,
        "is_dmarc_enforced": True,
        "is_spf_strict": True,
        "minimum_age": None,
    },
    "email_sender": {"first_name": None, "last_name": None, "email_provider_name": None,
                     "organization_name": None, "organization_type": None},
    "email_domain": {"domain": "example.com", "domain_age": 10000, "is_live_site": True},
    "email_risk": {"address_risk_status": "low", "domain_risk_status": "low"},
    "email_breaches": {"total_breaches": 0, "date_first_breached": None,
                       "date_last_breached": None, "breached_domains": []},
}

PHONE_PAYLOAD = {
    "phone": "14152007986",
    "valid": True,
    "format": {"international": "+14152007986", "local": "(415) 200-7986"},
    "country": {"code": "US", "name": "United States", "prefix": "+1"},
    "location": "California",
    "type": "Mobile",
    "carrier": "T-Mobile USA, Inc.",
}


def _merge(base: dict, overrides: dict) -> dict:
    out = copy.deepcopy(base)
    for k, v in overrides.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


@pytest.fixture
def email_payload():
    """Factory: email_payload(email_quality={"score": 0.2}) -> deep-merged dict."""
    return lambda **overrides: _merge(EMAIL_PAYLOAD, overrides)


@pytest.fixture
def phone_payload():
    return lambda **overrides: _merge(PHONE_PAYLOAD, overrides)


@pytest.fixture
def store(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'verification.db'}", echo=False)
    asyncio.run(create_tables(engine))
    yield RecordStore(build_session_maker(engine), window_seconds=300)
    asyncio.run(engine.dispose())


class FakeUpstream:
    """
    Scripted stand-in for the Abstract API. Each entry in `script` is either
    an httpx.Response, an exception to raise, or a callable(request).
    The last entry repeats once the script runs out.
    """

    def __init__(self, *script):
        self.script = list(script)
        self.requests = []

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        idx = min(len(self.requests) - 1, len(self.script) - 1)
        step = self.script[idx]
        if isinstance(step, Exception):
            raise step
        if callable(step) and not isinstance(step, httpx.Response):
            return step(request)
        return step

    @property
    def calls(self):
        return len(self.requests)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_client(sleeps):
    clients = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    def factory(upstream, **kwargs):
        http = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
        clients.append(http)
        kwargs.setdefault("email_api_key", "test-email-key")
        kwargs.setdefault("phone_api_key", "test-phone-key")
        kwargs.setdefault("sleep", fake_sleep)
        return AbstractAPIClient(http, **kwargs)

    yield factory
    for http in clients:
        asyncio.run(http.aclose())
