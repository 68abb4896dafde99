import time
from datetime import UTC, datetime


def now() -> datetime:
    return datetime.now(UTC)


def now_ms() -> int:
    """Current time as epoch milliseconds (the unit session timestamps are stored in)."""
    return int(time.time() * 1000)


def now_seconds() -> int:
    return int(time.time())
