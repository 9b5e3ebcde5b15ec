import re
from datetime import date, datetime, timezone

from flask import jsonify

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# result["error_code"] -> HTTP status
ERROR_CODE_STATUS = {
    "not_found": 404,
    "conflict": 409,
    "forbidden": 403,
    "invalid": 400,
    "unauthorized": 401,
}


def error_response(message: str, status_code: int = 400, extra: dict | None = None):
    payload = {"error": message}
    if extra:
        payload.update(extra)
    return jsonify(payload), status_code


def result_response(result: dict, success_status: int = 200):
    """Turn a service result dict into a JSON response"""
    if result.get("success"):
        return jsonify(result), success_status
    return jsonify(result), ERROR_CODE_STATUS.get(result.get("error_code"), 400)


def validate_email(email: str) -> bool:
    if not email or not isinstance(email, str):
        return False
    return bool(EMAIL_PATTERN.match(email.strip()))


def normalize_email(email: str) -> str | None:
    """
    Returns lower-cased, trimmed e-mail.
    """
    if not validate_email(email):
        return None
    return email.strip().lower()


def round_money(value) -> float:
    return round(float(value or 0), 2)


def as_naive_utc(value: datetime | None) -> datetime | None:
    """Drop tzinfo after converting to UTC so DB values compare with utcnow()"""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_date(value) -> date | None:
    """Accept date, datetime or ISO-8601 string"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()


def isoformat(value) -> str | None:
    return value.isoformat() if value else None


def billing_month_label(value: date) -> str:
    """date(2025, 10, 1) -> "October 2025" """
    return value.strftime("%B %Y")


def parse_billing_month(label: str) -> date | None:
    try:
        return datetime.strptime(label, "%B %Y").date()
    except (TypeError, ValueError):
        return None
