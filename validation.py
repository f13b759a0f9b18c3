import html
import re
from datetime import date
from typing import Optional

from errors import ValidationError

# same patterns the borrow application form checks client-side
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^\+?[\d\s\-()]{10,}$")
TAG_RE = re.compile(r"<[^>]*>")

FIELD_LABELS = {
    "asset_id": "Asset serial number",
    "borrower_name": "Borrower name",
    "borrower_department": "Borrower department",
    "borrower_contact": "Contact number",
    "borrower_email": "Email",
    "purpose": "Purpose",
    "requested_date": "Requested date",
    "expected_return_date": "Expected return date",
    "reason": "Rejection reason",
}


def sanitize_text(value: Optional[str]) -> str:
    """Strip markup and escape HTML-significant characters.

    Already-escaped input comes back unchanged, so stored text can be sent
    back through an edit without being escaped twice.
    """
    if value is None:
        return ""
    stripped = TAG_RE.sub("", value)
    return html.escape(html.unescape(stripped).strip(), quote=True)


def sanitize_optional(value: Optional[str]) -> Optional[str]:
    cleaned = sanitize_text(value)
    return cleaned or None


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email or ""))


def is_valid_phone(phone: str) -> bool:
    return bool(PHONE_RE.match(phone or ""))


def field_label(field: str) -> str:
    return FIELD_LABELS.get(field, field)


def check_borrower_fields(fields: dict[str, Optional[str]]) -> tuple[dict[str, str], list[str]]:
    """Sanitize required text fields and collect problems.

    Returns the cleaned values and the list of error messages; the caller
    decides whether to raise so that date checks can be reported together.
    """
    cleaned: dict[str, str] = {}
    errors: list[str] = []

    for name, raw in fields.items():
        value = sanitize_text(raw)
        if not value:
            errors.append(f"{field_label(name)} is required")
        cleaned[name] = value

    email = (fields.get("borrower_email") or "").strip()
    if email and not is_valid_email(email):
        errors.append("Please enter a valid email address")

    contact = (fields.get("borrower_contact") or "").strip()
    if contact and not is_valid_phone(contact):
        errors.append("Please enter a valid phone number")

    return cleaned, errors


def check_dates(requested: date, expected: date) -> list[str]:
    if expected <= requested:
        return ["Expected return date must be after the borrow date"]
    return []


def require_reason(reason: Optional[str]) -> str:
    value = sanitize_text(reason)
    if not value:
        raise ValidationError([f"{field_label('reason')} is required"], reason="reason_required")
    return value


def raise_if_errors(errors: list[str]) -> None:
    if errors:
        raise ValidationError(errors)
