"""
General helper utilities
"""
from datetime import date, datetime, time
from decimal import Decimal, ROUND_HALF_UP
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo

from ordering.config import get_settings


@lru_cache()
def restaurant_tz() -> ZoneInfo:
    return ZoneInfo(get_settings().TIMEZONE)


def local_now() -> datetime:
    """Current time in the restaurant's timezone (tz-aware)"""
    return datetime.now(restaurant_tz())


def to_local(value: datetime) -> datetime:
    """Convert to restaurant local time; naive values are taken as local already"""
    if value.tzinfo is None:
        return value.replace(tzinfo=restaurant_tz())
    return value.astimezone(restaurant_tz())


def format_huf(amount: int) -> str:
    """Format an amount as Hungarian forints, e.g. 12 500 Ft"""
    return f"{amount:,} Ft".replace(",", " ")


def round_half_up(value: Decimal) -> int:
    """Round to the nearest whole forint, halves away from zero"""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD"""
    return date.fromisoformat(value.strip())


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO timestamp, accepting the trailing 'Z' browsers send"""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def parse_timeslot(value: str) -> time:
    """Parse HH:MM or HH:MM:SS into a time (seconds dropped)"""
    parsed = time.fromisoformat(value.strip())
    return parsed.replace(second=0, microsecond=0)


def format_timeslot(value: time) -> str:
    return value.strftime("%H:%M")


def mask_phone(phone: Optional[str]) -> str:
    """Keep only the last 3 digits for log lines"""
    if not phone:
        return "-"
    return "***" + phone[-3:]
