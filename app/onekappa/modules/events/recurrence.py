"""
Recurring events.

A recurring event is stored once: ``event_date`` holds the first occurrence and
``recurrence_rule`` an RFC 5545 RRULE body (``FREQ=WEEKLY;BYDAY=MO;COUNT=5``).
Listings expand each series into dated instances over a bounded window; the
instances share the series' id.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, NamedTuple

from dateutil.rrule import rrule, rrulestr

if TYPE_CHECKING:
    from app.onekappa.modules.events.models import Event

logger = logging.getLogger(__name__)

EXPANSION_WINDOW = timedelta(days=90)


class Occurrence(NamedTuple):
    event: "Event"
    starts_at: datetime
    is_instance: bool


def parse_rule(rule: str, dtstart: datetime) -> rrule:
    """Parse ``rule`` anchored at ``dtstart``. Raises ValueError for an unparseable rule."""
    try:
        # ignoretz: event dates are naive UTC, so a trailing Z on UNTIL is dropped
        parsed = rrulestr(rule.strip(), dtstart=dtstart, ignoretz=True)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Invalid recurrence rule: {e}") from e
    if not isinstance(parsed, rrule):
        # rrulestr returns an rruleset when given several RRULE/RDATE lines
        raise ValueError("Invalid recurrence rule: only a single RRULE is supported")
    return parsed


def series_dates(event: "Event", start: datetime | None, end: datetime) -> list[datetime]:
    """Occurrence dates of ``event`` in [start, end], capped at its recurrence_end_date."""
    if event.recurrence_end_date is not None and event.recurrence_end_date < end:
        end = event.recurrence_end_date
    lo = start if start is not None else event.event_date
    if end < lo:
        return []
    return parse_rule(event.recurrence_rule or "", event.event_date).between(lo, end, inc=True)


def expand_events(
    events: list["Event"],
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Occurrence]:
    """
    Flatten events into occurrences sorted by start time.

    One-off events are kept when they start at or after ``start`` (all of them
    when ``start`` is None). Recurring events contribute one instance per rule
    date up to ``end``, which defaults to ``EXPANSION_WINDOW`` from now. A series
    whose stored rule no longer parses is listed once, as itself.
    """
    now = datetime.utcnow()
    if end is None:
        end = (start or now) + EXPANSION_WINDOW

    out: list[Occurrence] = []
    for event in events:
        if not event.is_recurring or not event.recurrence_rule:
            if start is None or event.event_date >= start:
                out.append(Occurrence(event, event.event_date, False))
            continue
        try:
            dates = series_dates(event, start, end)
        except ValueError as e:
            logger.error("EVENTS: cannot expand event_id=%s: %s", event.id, e)
            out.append(Occurrence(event, event.event_date, False))
            continue
        out.extend(Occurrence(event, d, True) for d in dates)

    out.sort(key=lambda o: (o.starts_at, o.event.id or 0))
    return out
