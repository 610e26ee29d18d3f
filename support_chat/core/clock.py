"""Timestamps in the format the chat API expects."""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], str]


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and ``Z`` suffix."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def parse_iso(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
