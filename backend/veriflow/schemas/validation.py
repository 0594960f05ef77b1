# backend/veriflow/schemas/validation.py
"""
Typed views of the Abstract API responses.

The raw JSON is what gets persisted and echoed back to the caller; these
models only exist so scoring reads named fields instead of poking at dicts,
and so a body missing its required top-level fields is caught as malformed.
Unknown keys are kept (extra="allow") because the provider adds fields.
"""
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _Payload(BaseModel):
    model_config = ConfigDict(extra="allow")


# -------------------------------------------------------------------
# Email reputation
# -------------------------------------------------------------------
class EmailDeliverability(_Payload):
    status: Optional[str] = None
    status_detail: Optional[str] = None
    is_format_valid: Optional[bool] = None
    is_smtp_valid: Optional[bool] = None
    is_mx_valid: Optional[bool] = None
    mx_records: Optional[List[str]] = None


class EmailQuality(_Payload):
    score: Optional[float] = None
    is_free_email: Optional[bool] = None
    is_username_suspicious: Optional[bool] = None
    is_disposable: Optional[bool] = None
    is_catchall: Optional[bool] = None
    is_subaddress: Optional[bool] = None
    is_role: Optional[bool] = None
    is_dmarc_enforced: Optional[bool] = None
    is_spf_strict: Optional[bool] = None
    minimum_age: Optional[int] = None


class EmailRisk(_Payload):
    address_risk_status: Optional[str] = None
    domain_risk_status: Optional[str] = None


class EmailBreaches(_Payload):
    total_breaches: Optional[int] = 0
    date_first_breached: Optional[str] = None
    date_last_breached: Optional[str] = None
    breached_domains: Optional[List[dict]] = None


class EmailValidationResult(_Payload):
    kind: Literal["email"] = "email"

    email_address: str
    email_deliverability: EmailDeliverability
    email_quality: EmailQuality = Field(default_factory=EmailQuality)
    email_sender: Optional[dict] = None
    email_domain: Optional[dict] = None
    email_risk: EmailRisk = Field(default_factory=EmailRisk)
    email_breaches: EmailBreaches = Field(default_factory=EmailBreaches)

    @property
    def is_deliverable(self) -> bool:
        return self.email_deliverability.status == "deliverable"


# -------------------------------------------------------------------
# Phone validation
# -------------------------------------------------------------------
class PhoneFormat(_Payload):
    international: Optional[str] = None
    local: Optional[str] = None


class PhoneCountry(_Payload):
    code: Optional[str] = None
    name: Optional[str] = None
    prefix: Optional[str] = None


class PhoneValidationResult(_Payload):
    kind: Literal["phone"] = "phone"

    phone: Optional[str] = None
    valid: bool
    format: PhoneFormat = Field(default_factory=PhoneFormat)
    country: PhoneCountry = Field(default_factory=PhoneCountry)
    location: Optional[str] = None
    type: Optional[str] = None
    carrier: Optional[str] = None


ValidationResult = Union[EmailValidationResult, PhoneValidationResult]
