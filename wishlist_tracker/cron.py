"""Five-field cron expressions, evaluated in UTC."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Mapping, Optional

_SEARCH_YEARS = 5
_NUMBER_RE = re.compile(r"^\d+$")

_MONTHS = {
    name: number
    for number, name in enumerate(
        ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"),
        start=1,
    )
}
_WEEKDAYS = {
    name: number
    for number, name in enumerate(("sun", "mon", "tue", "wed", "thu", "fri", "sat"))
}
_DESCRIPTORS = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}


class CronError(ValueError):
    """Raised for an invalid or unsatisfiable cron expression."""


def _value(text: str, low: int, high: int, names: Optional[Mapping[str, int]]) -> int:
    if names and text.lower() in names:
        return names[text.lower()]
    if not _NUMBER_RE.match(text):
        raise CronError(f"failed to parse int from {text!r}")
    return int(text)


def _parse_part(
    part: str, low: int, high: int, names: Optional[Mapping[str, int]]
) -> tuple[set[int], bool]:
    range_text, has_step, step_text = part.partition("/")
    step = 1
    if has_step:
        if not _NUMBER_RE.match(step_text):
            raise CronError(f"failed to parse step from {part!r}")
        step = int(step_text)
        if step <= 0:
            raise CronError(f"step of range should be a positive number: {part!r}")

    star = False
    if range_text in ("*", "?"):
        start, end, star = low, high, True
    else:
        first, has_dash, last = range_text.partition("-")
        start = _value(first, low, high, names)
        end = _value(last, low, high, names) if has_dash else start
        if has_step and not has_dash:
            end = high

    if start < low:
        raise CronError(f"beginning of range ({start}) below minimum ({low}): {part!r}")
    if end > high:
        raise CronError(f"end of range ({end}) above maximum ({high}): {part!r}")
    if start > end:
        raise CronError(f"beginning of range ({start}) beyond end of range ({end}): {part!r}")
    if step > 1:
        star = False
    return set(range(start, end + 1, step)), star


def _parse_field(
    text: str, low: int, high: int, names: Optional[Mapping[str, int]] = None
) -> tuple[frozenset[int], bool]:
    values: set[int] = set()
    star = False
    for part in text.split(","):
        part_values, part_star = _parse_part(part, low, high, names)
        values |= part_values
        star = star or part_star
    return frozenset(values), star


def _utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


@dataclass(frozen=True)
class CronSchedule:
    """The set of UTC minutes a cron expression selects."""

    minutes: frozenset[int]
    hours: frozenset[int]
    days: frozenset[int]
    months: frozenset[int]
    weekdays: frozenset[int]
    any_day: bool = False
    any_weekday: bool = False

    @classmethod
    def parse(cls, expr: str) -> "CronSchedule":
        """Parse a five-field expression or one of the @ descriptors."""
        text = expr.strip()
        if text.startswith("@"):
            if text.lower() not in _DESCRIPTORS:
                raise CronError(f"unrecognized descriptor: {text}")
            text = _DESCRIPTORS[text.lower()]
        fields = text.split()
        if len(fields) != 5:
            raise CronError(f"expected exactly 5 fields, found {len(fields)}: {expr!r}")

        minutes, _ = _parse_field(fields[0], 0, 59)
        hours, _ = _parse_field(fields[1], 0, 23)
        days, any_day = _parse_field(fields[2], 1, 31)
        months, _ = _parse_field(fields[3], 1, 12, _MONTHS)
        weekdays, any_weekday = _parse_field(fields[4], 0, 6, _WEEKDAYS)
        return cls(minutes, hours, days, months, weekdays, any_day, any_weekday)

    def _day_matches(self, day: date) -> bool:
        if day.month not in self.months:
            return False
        day_hit = day.day in self.days
        weekday_hit = day.isoweekday() % 7 in self.weekdays
        if self.any_day or self.any_weekday:
            return day_hit and weekday_hit
        return day_hit or weekday_hit

    def matches(self, moment: datetime) -> bool:
        """Tell whether the minute holding this moment is selected."""
        moment = _utc(moment)
        return (
            moment.minute in self.minutes
            and moment.hour in self.hours
            and self._day_matches(moment.date())
        )

    def next_after(self, moment: datetime) -> datetime:
        """Return the first selected minute strictly after the moment, in UTC."""
        start = _utc(moment).replace(second=0, microsecond=0) + timedelta(minutes=1)
        hours = sorted(self.hours)
        minutes = sorted(self.minutes)
        day = start.date()
        last_year = start.year + _SEARCH_YEARS
        while day.year <= last_year:
            if self._day_matches(day):
                first_day = day == start.date()
                for hour in hours:
                    if first_day and hour < start.hour:
                        continue
                    for minute in minutes:
                        if first_day and hour == start.hour and minute < start.minute:
                            continue
                        return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)
            day += timedelta(days=1)
        raise CronError(f"no matching time within {_SEARCH_YEARS} years")