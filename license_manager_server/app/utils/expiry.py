# app/utils/expiry.py
"""
License expiry evaluation and renewal.

All stored expiry values are naive UTC datetimes; on the wire they use the
fixed ``YYYY-MM-DD HH:MM:SS`` format.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from app.utils.errors import LicenseExpired

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.strftime(DATETIME_FORMAT)


def parse_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    return datetime.strptime(value, DATETIME_FORMAT)


def evaluate_expiry(
    expires_at: Union[str, datetime, None],
    now: Optional[datetime] = None,
) -> Optional[LicenseExpired]:
    """
    Returns None while the license is valid (no expiry set, or expiry in
    the future) and a LicenseExpired error carrying the expiry otherwise.
    The error is returned, not raised; callers decide.
    """
    expiry = parse_datetime(expires_at)
    if expiry is None:
        return None

    now = parse_datetime(now) if now is not None else utc_now()
    if now > expiry:
        return LicenseExpired(format_datetime(expiry))
    return None


def calculate_renewal(
    previous_expiry: Union[str, datetime],
    extension_days: int,
    now: Optional[datetime] = None,
) -> datetime:
    """
    New expiry after a renewal of ``extension_days``.

    Renewing an expired license starts from now; renewing early extends the
    previous expiry so the remaining time is kept.
    """
    previous = parse_datetime(previous_expiry)
    if previous is None:
        raise ValueError("A perpetual license has no expiry to renew.")
    if extension_days is None or int(extension_days) <= 0:
        raise ValueError("Renewal extension must be a positive number of days.")

    now = parse_datetime(now) if now is not None else utc_now()
    interval = timedelta(days=int(extension_days))

    if previous < now:
        return now + interval
    return previous + interval
