"""
Slot availability.

Times are compared as integer minutes since midnight. The functions here are
pure: they read the bookings they are handed and never touch the database.
"""
import re
from datetime import date, datetime

from core.errors import ValidationError

_TIME_RE = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")

DEFAULT_BUSINESS_DAYS = (0, 1, 2, 3, 4, 5)  # Monday..Saturday


class BusinessHours:
    def __init__(self, start_hour=8, end_hour=18, days=DEFAULT_BUSINESS_DAYS):
        if not 0 <= start_hour < end_hour <= 24:
            raise ValueError("start_hour must be before end_hour within a day")
        self.start_hour = start_hour
        self.end_hour = end_hour
        self.days = frozenset(days)

    @classmethod
    def from_config(cls, config):
        return cls(
            start_hour=config.get("BUSINESS_START_HOUR", 8),
            end_hour=config.get("BUSINESS_END_HOUR", 18),
            days=config.get("BUSINESS_DAYS", DEFAULT_BUSINESS_DAYS),
        )

    def is_open(self, day) -> bool:
        return day.weekday() in self.days

    def candidates(self, interval: int):
        minute = self.start_hour * 60
        while minute < self.end_hour * 60:
            yield minute
            minute += interval


def parse_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value or "").strip()[:10])
    except ValueError:
        raise ValidationError("Invalid date. Use YYYY-MM-DD")


def parse_time(value: str) -> int:
    match = _TIME_RE.match(str(value or "").strip())
    if not match:
        raise ValidationError("Invalid time format (HH:MM)")
    return int(match.group(1)) * 60 + int(match.group(2))


def normalize_time(value: str) -> str:
    return format_time(parse_time(value))


def format_time(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def overlaps(start: int, end: int, other_start: int, other_end: int) -> bool:
    # half-open windows: [start, end) vs [other_start, other_end)
    return start < other_end and end > other_start


def _busy_windows(day, bookings):
    windows = []
    for b in bookings:
        if b.status == "cancelled" or b.scheduled_date != day:
            continue
        start = parse_time(b.scheduled_time)
        windows.append((start, start + int(b.duration)))
    return windows


def _check_args(duration, interval):
    if int(duration) <= 0:
        raise ValidationError("Duration must be greater than 0")
    if int(interval) <= 0:
        raise ValidationError("Slot interval must be greater than 0")


def available_slots(day, duration, bookings, interval=30, hours=None):
    """
    Free start times on `day` for an appointment lasting `duration` minutes.
    Returns HH:MM labels, earliest first; closed days give an empty list.
    """
    _check_args(duration, interval)
    hours = hours or BusinessHours()
    if not hours.is_open(day):
        return []

    busy = _busy_windows(day, bookings)
    slots = []
    for start in hours.candidates(int(interval)):
        end = start + int(duration)
        if not any(overlaps(start, end, b_start, b_end) for b_start, b_end in busy):
            slots.append(format_time(start))
    return slots


def reschedule_slots(day, duration, bookings, interval=60, hours=None):
    """
    Admin variant: every candidate is listed, taken ones tagged "Booked".
    """
    _check_args(duration, interval)
    hours = hours or BusinessHours()
    if not hours.is_open(day):
        return []

    busy = _busy_windows(day, bookings)
    slots = []
    for start in hours.candidates(int(interval)):
        end = start + int(duration)
        taken = any(overlaps(start, end, b_start, b_end) for b_start, b_end in busy)
        slot = {"time": format_time(start), "available": not taken}
        if taken:
            slot["reason"] = "Booked"
        slots.append(slot)
    return slots
