"""Expansion of recurrence rules into concrete occurrences.

Everything here is pure: callers hand in a rule and an anchor start/end and
get back an ordered list of ``(start, end)`` pairs in UTC. Persisting the
occurrences is the job service's concern.
"""
import logging
from datetime import datetime, timedelta
from itertools import count as counter
from typing import Iterator

from dateutil.relativedelta import relativedelta

from jobdesk.config import settings
from jobdesk.schemas.recurrence import Frequency, RecurrenceRule
from jobdesk.utils.timeutils import overlaps, parse_iso, to_utc

logger = logging.getLogger(__name__)

Occurrence = tuple[datetime, datetime]


def sunday_weekday(dt: datetime) -> int:
    """Weekday numbered 0 = Sunday ... 6 = Saturday."""
    return (dt.weekday() + 1) % 7


def uses_day_pattern(rule: RecurrenceRule) -> bool:
    if rule.frequency == Frequency.CUSTOM:
        return True
    return rule.frequency == Frequency.WEEKLY and bool(rule.days_of_week)


def _interval_starts(rule: RecurrenceRule, anchor: datetime) -> Iterator[datetime]:
    for k in counter():
        step = k * rule.interval
        if rule.frequency == Frequency.DAILY:
            yield anchor + timedelta(days=step)
        elif rule.frequency == Frequency.WEEKLY:
            yield anchor + timedelta(weeks=step)
        else:
            # relativedelta clamps to the last day of shorter months; stepping
            # from the anchor every time keeps Jan 31 -> Feb 28 -> Mar 31.
            yield anchor + relativedelta(months=step)


def _day_pattern_starts(rule: RecurrenceRule, anchor: datetime) -> Iterator[datetime]:
    days = rule.days_of_week or []
    week_start = anchor - timedelta(days=sunday_weekday(anchor))
    for week in counter(step=rule.interval):
        base = week_start + timedelta(weeks=week)
        for day in days:
            candidate = base + timedelta(days=day)
            if candidate < anchor:
                continue
            yield candidate


def expand_recurrence(
    rule: RecurrenceRule,
    start: datetime,
    end: datetime,
    horizon: datetime | None = None,
    max_occurrences: int | None = None,
) -> list[Occurrence]:
    """Materialize the occurrences of ``rule`` anchored at ``start``/``end``.

    Generation stops at ``rule.count`` occurrences or at the first start past
    ``rule.until_date``, whichever comes first. A rule with neither bound is
    cut off at ``horizon``; without a horizon it is rejected. ``count`` above
    the occurrence cap is rejected rather than silently truncated.

    Raises:
        ValueError: the rule or the anchor pair cannot produce a finite series.
    """
    cap = max_occurrences or settings.max_occurrences
    start, end = to_utc(start), to_utc(end)
    if end <= start:
        raise ValueError("Recurrence end time must be after its start time")
    if rule.count is not None and rule.count > cap:
        raise ValueError(f"Recurrence count may not exceed {cap} occurrences")
    if rule.frequency == Frequency.CUSTOM and not rule.days_of_week:
        raise ValueError("Custom recurrence requires at least one day of the week")

    until = to_utc(rule.until_date) if rule.until_date else None
    if until is None and rule.count is None:
        if horizon is None:
            raise ValueError("Recurrence needs a count, an until date or a horizon")
        until = to_utc(horizon)
    limit = rule.count or cap

    duration = end - start
    starts = _day_pattern_starts(rule, start) if uses_day_pattern(rule) else _interval_starts(rule, start)

    occurrences: list[Occurrence] = []
    for occurrence_start in starts:
        if len(occurrences) >= limit:
            break
        if until is not None and occurrence_start > until:
            break
        occurrences.append((occurrence_start, occurrence_start + duration))

    logger.debug(
        "Expanded %s/%d recurrence from %s into %d occurrences",
        rule.frequency.value, rule.interval, start.isoformat(), len(occurrences),
    )
    return occurrences


def default_horizon(start: datetime) -> datetime:
    return to_utc(start) + timedelta(days=settings.recurrence_horizon_days)


def skip_breaks(occurrences: list[Occurrence], breaks: list[dict] | None) -> list[Occurrence]:
    """Drop occurrences that overlap any break period."""
    if not breaks:
        return occurrences
    periods = [(parse_iso(b["start_time"]), parse_iso(b["end_time"])) for b in breaks]
    kept = []
    for occ_start, occ_end in occurrences:
        if any(overlaps(occ_start, occ_end, b_start, b_end) for b_start, b_end in periods):
            logger.info("Skipping occurrence at %s: falls within a break", occ_start.isoformat())
            continue
        kept.append((occ_start, occ_end))
    return kept
