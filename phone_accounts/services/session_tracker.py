"""Session timeout tracking based on the last successful login time."""

from datetime import datetime
from typing import Optional

from phone_accounts.config import settings


def elapsed_minutes(last_activity: datetime, now: datetime) -> int:
    """Whole minutes between two timestamps, truncated toward zero."""
    return int((now - last_activity).total_seconds() / 60)


def is_expired(last_activity: datetime, now: datetime, timeout_minutes: Optional[int] = None) -> bool:
    """
    Return True when the session that started at last_activity has timed out.

    A session is expired once the completed minutes since last_activity
    reach timeout_minutes. A sentinel far-past last_activity is therefore
    always expired.
    """
    if timeout_minutes is None:
        timeout_minutes = settings.session_timeout_minutes
    return elapsed_minutes(last_activity, now) >= timeout_minutes
