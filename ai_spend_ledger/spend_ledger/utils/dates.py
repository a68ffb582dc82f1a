"""UTC day/month helpers shared by sync, alerts, forecast and ledger reads."""
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import NamedTuple, Optional

from spend_ledger.errors import InvalidMonthError

MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


class MonthRange(NamedTuple):
    start: datetime
    end_exclusive: datetime


class SyncWindow(NamedTuple):
    """[start, end_exclusive) in UTC; end is midnight after today so today is included."""

    start: datetime
    end_exclusive: datetime


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def start_of_day_utc(value: datetime) -> datetime:
    """Truncate to 00:00 UTC. Naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return datetime.combine(value.date(), time.min, tzinfo=timezone.utc)


def utc_day(value: datetime) -> date:
    return start_of_day_utc(value).date()


def parse_utc_timestamp(raw: str) -> datetime:
    """ISO-8601 string (with 'Z' or offset) -> aware UTC datetime."""
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def from_unix_seconds(seconds: float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def to_unix_seconds(value: datetime) -> int:
    return int(value.timestamp())


def format_month(value: datetime | date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def month_range(month: str) -> MonthRange:
    """
    "2024-02" -> [2024-02-01T00:00Z, 2024-03-01T00:00Z).
    End is the first day of the next month, so month length never matters.
    """
    if not MONTH_RE.match(month or ""):
        raise InvalidMonthError("Invalid month format")
    year, mon = (int(part) for part in month.split("-"))
    start = datetime(year, mon, 1, tzinfo=timezone.utc)
    if mon == 12:
        end_exclusive = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end_exclusive = datetime(year, mon + 1, 1, tzinfo=timezone.utc)
    return MonthRange(start=start, end_exclusive=end_exclusive)


def previous_month(month: str) -> str:
    start = month_range(month).start
    return format_month(start - timedelta(days=1))


def sync_window(days: int, now: Optional[datetime] = None) -> SyncWindow:
    """`days` full UTC days before today plus today, ending at midnight after today."""
    today = start_of_day_utc(now or utc_now())
    return SyncWindow(
        start=today - timedelta(days=days),
        end_exclusive=today + timedelta(days=1),
    )
