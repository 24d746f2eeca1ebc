"""Input format validators."""

import re

EMAIL_REGEX = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
STRIPE_ACCOUNT_ID_REGEX = re.compile(r"acct_[A-Za-z0-9]{16,}")
STRIPE_SESSION_ID_REGEX = re.compile(r"cs_[A-Za-z0-9_]+")
# Echoed into response headers and log prefixes
CORRELATION_ID_REGEX = re.compile(r"[A-Za-z0-9._:-]{1,128}")

# C0 control characters except tab/newline/carriage return, plus DEL
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def is_valid_email(email: object) -> bool:
    return isinstance(email, str) and bool(EMAIL_REGEX.fullmatch(email.strip()))


def is_valid_connected_account_id(account_id: object) -> bool:
    return isinstance(account_id, str) and bool(STRIPE_ACCOUNT_ID_REGEX.fullmatch(account_id))


def is_valid_session_id(session_id: object) -> bool:
    return isinstance(session_id, str) and bool(STRIPE_SESSION_ID_REGEX.fullmatch(session_id))


def is_valid_correlation_id(value: object) -> bool:
    return isinstance(value, str) and bool(CORRELATION_ID_REGEX.fullmatch(value))


def sanitize_string(value: object, max_length: int = 255) -> str:
    """Trim, truncate and strip control characters."""
    if not isinstance(value, str):
        return ""
    return _CONTROL_CHARS.sub("", value.strip()[:max_length])
