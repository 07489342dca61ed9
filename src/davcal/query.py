"""
Gather occurrences from many calendars into one timeline
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Sequence

from icalendar import Component

from davcal.caldav_source import CalendarRef
from davcal.errors import DavcalError, RecurrenceError, TransportError
from davcal.events import (
    Occurrence,
    QueryWindow,
    decode_datetime,
    decode_text,
    expand_event,
    sort_occurrences,
)

BASE_PROPERTIES = ['SUMMARY', 'DTSTART', 'DTEND', 'LOCATION']
RECURRENCE_PROPERTIES = ['DURATION', 'RRULE', 'RDATE', 'EXDATE', 'UID', 'RECURRENCE-ID']

QueryFunc = Callable[[CalendarRef, QueryWindow, Sequence[str]], Iterable[Component]]


@dataclass(frozen=True)
class QueryFailure:
    calendar: CalendarRef
    error: DavcalError
    summary: str | None = None

    def __str__(self) -> str:
        if self.summary is None:
            return f"{self.calendar.label}: {self.error}"
        return f"{self.calendar.label}: event {self.summary!r}: {self.error}"


@dataclass
class QueryResult:
    occurrences: list[Occurrence] = field(default_factory=list)
    failures: list[QueryFailure] = field(default_factory=list)


def requested_properties(include_description: bool) -> list[str]:
    props = BASE_PROPERTIES + RECURRENCE_PROPERTIES
    if include_description:
        props.append('DESCRIPTION')
    return props


def find_overrides(events: Iterable[Component]) -> dict[str, list[datetime]]:
    """Map each UID to the instance starts replaced by RECURRENCE-ID components."""
    overrides: dict[str, list[datetime]] = {}
    for event in events:
        uid = decode_text(event, 'UID')
        rid = decode_datetime(event, 'RECURRENCE-ID')
        if uid is not None and rid is not None:
            overrides.setdefault(uid, []).append(rid)
    return overrides


def expand_calendar(
    calendar: CalendarRef,
    events: Sequence[Component],
    window: QueryWindow,
    include_description: bool,
    result: QueryResult,
) -> None:
    """Expand every event of one calendar into ``result``.

    Events whose recurrence cannot be expanded are recorded as failures and
    skipped.
    """
    overrides = find_overrides(events)

    for event in events:
        uid = decode_text(event, 'UID')
        is_override = decode_datetime(event, 'RECURRENCE-ID') is not None
        try:
            occurrences = expand_event(
                event,
                window,
                include_description=include_description,
                overridden=() if is_override else overrides.get(uid, ()),
            )
        except RecurrenceError as e:
            failure = QueryFailure(calendar, e, decode_text(event, 'SUMMARY') or '')
            logging.warning(f"Skipped event: {failure}")
            result.failures.append(failure)
            continue

        if is_override:
            occurrences = [o for o in occurrences if o.start in window]
        result.occurrences.extend(occurrences)


def gather_occurrences(
    query: QueryFunc,
    calendars: Sequence[CalendarRef],
    window: QueryWindow,
    include_description: bool = False,
    workers: int = 1,
) -> QueryResult:
    """Query every calendar and collect the occurrences inside a window.

    A calendar that cannot be queried is recorded as a failure and the
    remaining calendars are still processed. Occurrences are kept in
    calendar order, then event order, without deduplication.

    Args:
        query: Fetches the source events of one calendar, raising
            TransportError on failure
        calendars: Calendars to query, in order
        window: Query window
        include_description: Request and keep event descriptions
        workers: Number of calendars fetched concurrently

    Returns:
        QueryResult with the unsorted occurrences and all failures
    """
    properties = requested_properties(include_description)

    def fetch(calendar: CalendarRef) -> list[Component] | TransportError:
        try:
            return list(query(calendar, window, properties))
        except TransportError as e:
            return e

    if workers > 1 and len(calendars) > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            fetched = list(executor.map(fetch, calendars))
    else:
        fetched = [fetch(calendar) for calendar in calendars]

    result = QueryResult()
    for calendar, events in zip(calendars, fetched):
        if isinstance(events, TransportError):
            failure = QueryFailure(calendar, events)
            logging.warning(f"Skipped calendar: {failure}")
            result.failures.append(failure)
            continue
        expand_calendar(calendar, events, window, include_description, result)

    return result


def query_events(
    query: QueryFunc,
    calendars: Sequence[CalendarRef],
    window: QueryWindow,
    include_description: bool = False,
    workers: int = 1,
) -> QueryResult:
    """Like ``gather_occurrences`` with the occurrences sorted by start."""
    result = gather_occurrences(query, calendars, window, include_description, workers)
    result.occurrences = sort_occurrences(result.occurrences)
    return result
