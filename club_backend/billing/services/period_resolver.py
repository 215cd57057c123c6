# billing/services/period_resolver.py

"""
FINANCE PERIOD RESOLVER

Turns a reporting window request into concrete aware datetimes + a label.

Inputs:
- preset: YEAR_TO_DATE (default) | ALL_TIME | LAST_12_MONTHS | CURRENT_MONTH
- date_from / date_to: custom range (ISO date or datetime); takes precedence

Deterministic for an injected `now`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from billing.services.exceptions import ValidationFailed, field_issue

PERIOD_YEAR_TO_DATE = "YEAR_TO_DATE"
PERIOD_ALL_TIME = "ALL_TIME"
PERIOD_LAST_12_MONTHS = "LAST_12_MONTHS"
PERIOD_CURRENT_MONTH = "CURRENT_MONTH"
PERIOD_CUSTOM = "CUSTOM"

PRESETS = (
    PERIOD_YEAR_TO_DATE,
    PERIOD_ALL_TIME,
    PERIOD_LAST_12_MONTHS,
    PERIOD_CURRENT_MONTH,
)

ALL_TIME_START = date(2000, 1, 1)


@dataclass(frozen=True)
class FinancePeriod:
    type: str
    date_from: datetime
    date_to: datetime
    label: str

    def as_dict(self) -> dict:
        return {
            "type": self.type,
            "from": self.date_from.isoformat(),
            "to": self.date_to.isoformat(),
            "label": self.label,
        }


def format_date_label(value: datetime | date) -> str:
    """Jan 1, 2026"""
    return f"{value:%b} {value.day}, {value.year}"


def _start_of_day(d: date) -> datetime:
    return timezone.make_aware(datetime.combine(d, time.min))


def _end_of_day(d: date) -> datetime:
    return timezone.make_aware(datetime.combine(d, time.max))


def _parse_bound(raw, *, end: bool) -> datetime | None:
    if isinstance(raw, datetime):
        return raw if timezone.is_aware(raw) else timezone.make_aware(raw)
    if isinstance(raw, date):
        return _end_of_day(raw) if end else _start_of_day(raw)

    text = str(raw).strip()
    try:
        # Date-only first: parse_datetime would read "2026-01-31" as midnight.
        parsed_d = parse_date(text)
        if parsed_d is not None:
            return _end_of_day(parsed_d) if end else _start_of_day(parsed_d)
        parsed_dt = parse_datetime(text)
    except ValueError:
        # well-formed but impossible values, e.g. 2026-02-30
        return None

    if parsed_dt is None:
        return None

    if timezone.is_naive(parsed_dt):
        parsed_dt = timezone.make_aware(parsed_dt)
    return parsed_dt


def _twelve_months_before(now: datetime) -> datetime:
    try:
        return now.replace(year=now.year - 1)
    except ValueError:
        return now.replace(year=now.year - 1, day=28)


def _resolve_custom(date_from, date_to) -> FinancePeriod:
    details = []
    if not date_from:
        details.append(field_issue("from", "required"))
    if not date_to:
        details.append(field_issue("to", "required"))
    if details:
        raise ValidationFailed(
            "Both from and to must be provided for a custom range.", details=details
        )

    start = _parse_bound(date_from, end=False)
    end = _parse_bound(date_to, end=True)
    if start is None:
        details.append(field_issue("from", "invalid"))
    if end is None:
        details.append(field_issue("to", "invalid"))
    if details:
        raise ValidationFailed(
            "Invalid date format for from/to. Use ISO 8601 (YYYY-MM-DD).",
            details=details,
        )

    if start > end:
        raise ValidationFailed(
            "from must not be after to.", details=[field_issue("from", "after_to")]
        )

    return FinancePeriod(
        type=PERIOD_CUSTOM,
        date_from=start,
        date_to=end,
        label=f"Custom Range ({format_date_label(start)} - {format_date_label(end)})",
    )


def resolve_period(
    preset: str | None = None,
    date_from=None,
    date_to=None,
    now: datetime | None = None,
) -> FinancePeriod:
    if date_from or date_to:
        return _resolve_custom(date_from, date_to)

    now = timezone.localtime(now or timezone.now())
    kind = (preset or PERIOD_YEAR_TO_DATE).strip().upper()

    if kind == PERIOD_ALL_TIME:
        start = _start_of_day(ALL_TIME_START)
        return FinancePeriod(
            type=kind,
            date_from=start,
            date_to=now,
            label=f"All Time (up to {format_date_label(now)})",
        )

    if kind == PERIOD_YEAR_TO_DATE:
        start = _start_of_day(date(now.year, 1, 1))
        return FinancePeriod(
            type=kind,
            date_from=start,
            date_to=now,
            label=f"Year to Date ({format_date_label(start)} - {format_date_label(now)})",
        )

    if kind == PERIOD_LAST_12_MONTHS:
        start = _twelve_months_before(now)
        return FinancePeriod(
            type=kind,
            date_from=start,
            date_to=now,
            label=f"Last 12 Months ({format_date_label(start)} - {format_date_label(now)})",
        )

    if kind == PERIOD_CURRENT_MONTH:
        start = _start_of_day(date(now.year, now.month, 1))
        return FinancePeriod(
            type=kind,
            date_from=start,
            date_to=now,
            label=f"Current Month ({format_date_label(start)} - {format_date_label(now)})",
        )

    raise ValidationFailed(
        f"Invalid period type: {kind}. Must be one of: {', '.join(PRESETS)}",
        details=[field_issue("period", "invalid")],
    )
