"""iCalendar-subset recurrence rules.

Rules are semicolon-delimited ``KEY=VALUE`` pairs, for example
``FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE;COUNT=10`` or ``FREQ=DAILY;UNTIL=20250630``.
Supported keys: FREQ (required), INTERVAL, BYDAY, COUNT, UNTIL (``YYYYMMDD``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from datetime import datetime
from datetime import timedelta
from enum import Enum
from typing import TypeVar

from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)

DEFAULT_MAX_OCCURRENCES = 100
# Ten years of weeks.
MAX_WEEKS_SCANNED = 520

D = TypeVar("D", date, datetime)


class RecurrenceParseError(ValueError):
    """Raised when a rule string cannot be interpreted."""


class RecurrenceFrequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class RecurrenceDay(str, Enum):
    SU = "SU"
    MO = "MO"
    TU = "TU"
    WE = "WE"
    TH = "TH"
    FR = "FR"
    SA = "SA"

    @property
    def week_index(self) -> int:
        """Position in a Sunday-first week (SU=0 ... SA=6)."""
        return _SUNDAY_FIRST.index(self)

    @property
    def label(self) -> str:
        return _DAY_LABELS[self]


_SUNDAY_FIRST = list(RecurrenceDay)

_DAY_LABELS = {
    RecurrenceDay.SU: "Sunday",
    RecurrenceDay.MO: "Monday",
    RecurrenceDay.TU: "Tuesday",
    RecurrenceDay.WE: "Wednesday",
    RecurrenceDay.TH: "Thursday",
    RecurrenceDay.FR: "Friday",
    RecurrenceDay.SA: "Saturday",
}

_UNITS = {
    RecurrenceFrequency.DAILY: "days",
    RecurrenceFrequency.WEEKLY: "weeks",
    RecurrenceFrequency.MONTHLY: "months",
    RecurrenceFrequency.YEARLY: "years",
}

_LEGACY_PATTERNS = {
    "daily": "FREQ=DAILY",
    "weekly": "FREQ=WEEKLY",
    "biweekly": "FREQ=WEEKLY;INTERVAL=2",
    "monthly": "FREQ=MONTHLY",
    "yearly": "FREQ=YEARLY",
}


@dataclass(frozen=True)
class RecurrencePattern:
    frequency: RecurrenceFrequency
    interval: int = 1
    byday: tuple[RecurrenceDay, ...] | None = None
    count: int | None = None
    until: date | None = None


def _positive_int(key: str, value: str) -> int:
    if not (value.isascii() and value.isdigit()) or int(value) < 1:
        msg = f"Invalid {key.lower()}: {value!r}"
        raise RecurrenceParseError(msg)
    return int(value)


def _parse_until(value: str) -> date:
    if len(value) != 8 or not (value.isascii() and value.isdigit()):  # noqa: PLR2004
        msg = f"Invalid until date format: {value!r}"
        raise RecurrenceParseError(msg)
    try:
        return date(int(value[:4]), int(value[4:6]), int(value[6:8]))
    except ValueError as exc:
        msg = f"Invalid until date: {value!r}"
        raise RecurrenceParseError(msg) from exc


def _parse_byday(value: str) -> tuple[RecurrenceDay, ...]:
    # Duplicates collapse; first-seen order is kept.
    days = tuple(
        dict.fromkeys(
            RecurrenceDay(code)
            for code in value.split(",")
            if code in RecurrenceDay.__members__
        )
    )
    if not days:
        msg = f"Invalid days: {value!r}"
        raise RecurrenceParseError(msg)
    return days


def parse_recurrence_rule(rule: str) -> RecurrencePattern:
    """Parse ``rule`` strictly, raising :class:`RecurrenceParseError`.

    Unknown keys, malformed or duplicate pairs and invalid values are errors.
    Unknown day codes inside BYDAY are ignored as long as one valid code remains.
    """

    if not rule or not rule.strip():
        msg = "Empty recurrence rule"
        raise RecurrenceParseError(msg)

    fields: dict[str, object] = {}
    for part in rule.strip().split(";"):
        key, sep, value = part.partition("=")
        if not sep or not key or not value:
            msg = f"Malformed rule part: {part!r}"
            raise RecurrenceParseError(msg)
        if key in fields:
            msg = f"Duplicate key: {key}"
            raise RecurrenceParseError(msg)

        if key == "FREQ":
            try:
                fields[key] = RecurrenceFrequency(value)
            except ValueError as exc:
                msg = f"Invalid frequency: {value!r}"
                raise RecurrenceParseError(msg) from exc
        elif key in {"INTERVAL", "COUNT"}:
            fields[key] = _positive_int(key, value)
        elif key == "BYDAY":
            fields[key] = _parse_byday(value)
        elif key == "UNTIL":
            fields[key] = _parse_until(value)
        else:
            msg = f"Unknown key: {key}"
            raise RecurrenceParseError(msg)

    if "FREQ" not in fields:
        msg = "Missing frequency in recurrence rule"
        raise RecurrenceParseError(msg)

    return RecurrencePattern(
        frequency=fields["FREQ"],  # type: ignore[arg-type]
        interval=fields.get("INTERVAL", 1),  # type: ignore[arg-type]
        byday=fields.get("BYDAY"),  # type: ignore[arg-type]
        count=fields.get("COUNT"),  # type: ignore[arg-type]
        until=fields.get("UNTIL"),  # type: ignore[arg-type]
    )


def parse_recurrence_pattern(rule: str | None) -> RecurrencePattern | None:
    """Lenient parse: ``None`` for an empty or invalid rule."""

    if not rule:
        return None
    try:
        return parse_recurrence_rule(rule)
    except RecurrenceParseError as exc:
        logger.warning("Ignoring recurrence rule %r: %s", rule, exc)
        return None


def format_recurrence_pattern(pattern: RecurrencePattern) -> str:
    if not pattern.frequency:
        msg = "Frequency is required for recurrence pattern"
        raise ValueError(msg)

    parts = [f"FREQ={RecurrenceFrequency(pattern.frequency).value}"]
    if pattern.interval and pattern.interval > 1:
        parts.append(f"INTERVAL={pattern.interval}")
    if pattern.byday:
        parts.append("BYDAY=" + ",".join(RecurrenceDay(d).value for d in pattern.byday))
    if pattern.count and pattern.count > 0:
        parts.append(f"COUNT={pattern.count}")
    if pattern.until:
        parts.append(f"UNTIL={pattern.until:%Y%m%d}")
    return ";".join(parts)


def rule_for_legacy_pattern(name: str | None) -> str | None:
    """Translate the old booking enum (daily/weekly/...) into a rule string.

    Strings that already look like rules are returned unchanged; anything else
    yields ``None``.
    """

    if not name:
        return None
    value = name.strip()
    legacy = _LEGACY_PATTERNS.get(value.lower())
    if legacy:
        return legacy
    if value.upper().startswith("FREQ=") or ";FREQ=" in value.upper():
        return value
    return None


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def _effective_limit(
    until: date | None,
    end_date: date | datetime | None,
) -> date | None:
    limits = [d for d in (until, end_date) if d is not None]
    if not limits:
        return None
    return min(_as_date(d) for d in limits)


def _sunday_first_index(value: date | datetime) -> int:
    return (value.weekday() + 1) % 7


def _weekly_by_day(
    start: D,
    pattern: RecurrencePattern,
    limit: date | None,
    cap: int,
) -> list[D]:
    occurrences = [start]
    start_index = _sunday_first_index(start)
    selected = sorted({RecurrenceDay(d).week_index for d in pattern.byday or ()})

    for week in range(MAX_WEEKS_SCANNED + 1):
        if week % pattern.interval:
            continue
        week_anchor = start + timedelta(weeks=week)
        for day_index in selected:
            candidate = week_anchor + timedelta(days=day_index - start_index)
            if candidate <= start:
                continue
            if limit is not None and _as_date(candidate) > limit:
                return occurrences
            occurrences.append(candidate)
            if len(occurrences) >= cap:
                return occurrences
    return occurrences


def _step(start: D, frequency: RecurrenceFrequency, amount: int) -> D:
    if frequency == RecurrenceFrequency.DAILY:
        return start + timedelta(days=amount)
    if frequency == RecurrenceFrequency.WEEKLY:
        return start + timedelta(weeks=amount)
    if frequency == RecurrenceFrequency.MONTHLY:
        return start + relativedelta(months=amount)
    return start + relativedelta(years=amount)


def generate_occurrences(
    start: D,
    pattern: RecurrencePattern | str | None,
    end_date: date | datetime | None = None,
    *,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> list[D]:
    """Expand ``pattern`` into an ordered list of dates beginning at ``start``.

    An invalid or empty rule means "no recurrence" and yields ``[start]``.
    The result never holds more than ``count`` items (``max_occurrences``
    when the rule has no COUNT) and nothing later than the earlier of
    ``until`` and ``end_date``. Month and year steps are always taken from
    ``start`` so that day 31 clamps to the month end without drifting.
    """

    if isinstance(pattern, str) or pattern is None:
        pattern = parse_recurrence_pattern(pattern)
    if pattern is None:
        return [start]

    limit = _effective_limit(pattern.until, end_date)
    if limit is not None and _as_date(start) > limit:
        return []
    cap = pattern.count or max_occurrences
    if cap <= 1:
        return [start]

    if pattern.frequency == RecurrenceFrequency.WEEKLY and pattern.byday:
        return _weekly_by_day(start, pattern, limit, cap)

    occurrences = [start]
    for i in range(1, cap):
        current = _step(start, pattern.frequency, i * pattern.interval)
        if limit is not None and _as_date(current) > limit:
            break
        occurrences.append(current)
    return occurrences


def describe_recurrence(pattern: RecurrencePattern | str | None) -> str:
    """Human readable summary, e.g. "Every 2 weeks on Monday, Friday, 6 times"."""

    if isinstance(pattern, str) or pattern is None:
        pattern = parse_recurrence_pattern(pattern)
    if pattern is None:
        return "One-time event"

    if pattern.interval == 1:
        base = pattern.frequency.value.capitalize()
    else:
        base = f"Every {pattern.interval} {_UNITS[pattern.frequency]}"

    if pattern.frequency == RecurrenceFrequency.WEEKLY and pattern.byday:
        base += " on " + ", ".join(RecurrenceDay(d).label for d in pattern.byday)

    if pattern.count:
        return f"{base}, {pattern.count} times"
    if pattern.until:
        until = pattern.until
        return f"{base}, until {until:%b} {until.day}, {until.year}"
    return base
