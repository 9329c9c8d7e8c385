"""
Field checks shared by the services; every failure is a ValidationError
"""
from datetime import datetime, timezone
from numbers import Real
from typing import Any, List, Optional, Sequence

from bson import ObjectId

from database.models import as_object_id
from services.errors import ValidationError


def required_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    return value.strip()


def optional_text(value: Any, field: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value.strip() or None


def one_of(value: Any, allowed: Sequence[str], field: str) -> str:
    if value not in allowed:
        raise ValidationError(f"Invalid {field}. Must be one of {list(allowed)}")
    return value


def user_ref(value: Any, field: str = "user id") -> ObjectId:
    oid = as_object_id(value)
    if oid is None:
        raise ValidationError(f"Invalid {field}")
    return oid


def to_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_datetime(value: Any, field: str) -> datetime:
    """Accept a datetime or an ISO-8601 string; return naive UTC"""
    if isinstance(value, datetime):
        return to_utc_naive(value)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return to_utc_naive(datetime.fromisoformat(text))
        except ValueError:
            pass
    raise ValidationError(f"Valid {field} is required")


def string_list(value: Any, field: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"{field} must be a list of strings")
    return [v.strip() for v in value if v.strip()]


def is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)
