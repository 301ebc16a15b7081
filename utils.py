import math
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Union

import jwt
import pytz

from config import settings


def get_local_now() -> datetime:
    """Timezone-aware "now" in the operator's zone (Asia/Jakarta by default)."""
    return datetime.now(pytz.timezone(settings.TIMEZONE))


def as_naive_local(value: datetime) -> datetime:
    """Drop tzinfo after converting to the operator's zone.

    SQLite hands datetimes back without tzinfo, PostgreSQL keeps it; reports
    compare both against ``get_local_now()``.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(pytz.timezone(settings.TIMEZONE)).replace(tzinfo=None)


def create_access_token(
        subject: Union[str, int],
        name: str,
        role: str,
        expires_delta: Optional[timedelta] = None,
) -> str:
    if expires_delta is not None:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {"exp": expire, "sub": str(subject), "un": name, "role": role}
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.ALGORITHM])


def page_offset(page: int, limit: int) -> int:
    return (max(page, 1) - 1) * limit


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0
