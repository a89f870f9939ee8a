"""Time helpers."""

from datetime import datetime

from modelfunc.constants import CST


def get_now_time() -> datetime:
    """Current time in UTC+8, independent of the host timezone."""
    return datetime.now(CST)
