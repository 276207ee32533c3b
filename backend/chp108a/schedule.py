"""Inspection schedule projection and date formatting helpers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, Mapping, Optional, Union

from .models import MONTHS, Month

SCHEDULE_INTERVAL_DAYS = 45
DISPLAY_FORMAT = "%m/%d/%y"
DOCUMENT_FORMAT = "%m/%d/%Y"

DateInput = Union[str, date, None]


@dataclass(frozen=True)
class NextInspection:
    month: Month
    inspection_date: str
    days_until: int


def parse_date(value: DateInput) -> Optional[date]:
    """Parse an ISO date (or a ``MM/DD/YYYY`` document date); ``None`` when unusable."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(text, DOCUMENT_FORMAT).date()
    except ValueError:
        return None


def project_schedule(anchor: DateInput = None) -> Dict[Month, str]:
    """Project twelve inspection dates, 45 days apart, onto the month slots.

    Each date lands in the slot for its own calendar month. When that slot is
    taken the date moves to the next free slot, wrapping from DEC to JAN.
    """
    schedule: Dict[Month, str] = {month: "" for month in MONTHS}
    start = parse_date(anchor)
    if start is None:
        return schedule

    occupied: set[int] = set()
    for offset in range(len(MONTHS)):
        current = start + timedelta(days=SCHEDULE_INTERVAL_DAYS * offset)
        slot = current.month - 1
        while slot in occupied:
            slot = (slot + 1) % len(MONTHS)
        occupied.add(slot)
        schedule[MONTHS[slot]] = current.isoformat()
    return schedule


def format_for_display(value: DateInput) -> str:
    parsed = parse_date(value)
    return parsed.strftime(DISPLAY_FORMAT) if parsed else ""


def format_for_document(value: DateInput) -> str:
    parsed = parse_date(value)
    return parsed.strftime(DOCUMENT_FORMAT) if parsed else ""


def month_slot_of(value: DateInput) -> Month:
    parsed = parse_date(value)
    if parsed is None:
        return Month.JAN
    return MONTHS[parsed.month - 1]


def display_month_name(slot: Month, value: DateInput) -> str:
    if parse_date(value) is None:
        return slot.full_name
    return month_slot_of(value).full_name


def next_inspection_info(
    current: Month,
    schedule: Mapping[Month, str],
    today: Optional[date] = None,
) -> Optional[NextInspection]:
    position = current.ordinal
    if position == len(MONTHS) - 1:
        return None
    next_month = MONTHS[position + 1]
    next_date = parse_date(schedule.get(next_month, ""))
    if next_date is None:
        return None
    reference = today or date.today()
    return NextInspection(
        month=next_month,
        inspection_date=next_date.isoformat(),
        days_until=(next_date - reference).days,
    )
