# backend/veriflow/utils/helpers.py
import re
import secrets
import string
from datetime import datetime, timezone

# optional leading +, then 10+ digits / spaces / hyphens / parentheses
PHONE_REGEX = re.compile(r"\+?[\d\s\-()]{10,}")

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6


def is_valid_email_input(email) -> bool:
    return isinstance(email, str) and bool(email.strip())


def is_valid_phone_input(phone) -> bool:
    if not isinstance(phone, str) or not phone:
        return False
    return PHONE_REGEX.fullmatch(phone) is not None


def generate_verification_code(length: int = CODE_LENGTH) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # sqlite hands timestamps back without tzinfo
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
