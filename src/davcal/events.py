"""
Event occurrences and recurrence expansion
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from operator import attrgetter
from typing import Iterable

from dateutil import rrule, tz
from icalendar import Component, vDDDLists, vDDDTypes

from davcal.errors import RecurrenceError

LOCAL_TZ = tz.tzlocal()

# Stand-in for a missing DTSTART
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

ONE_DAY = timedelta(hours=24)


@dataclass(frozen=True)
class QueryWindow:
    """Time range of interest, both bounds inclusive."""
    start: datetime
    end: datetime

    def __contains__(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass(frozen=True)
class Occurrence:
    start: datetime
    end: datetime
    summary: str = ''
    description: str = ''
    location: str = ''

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def is_all_day(self) -> bool:
        return (
            self.duration == ONE_DAY
            and self.start.hour == 0
            and self.start.minute == 0
        )


def to_local_datetime(value: date) -> datetime:
    """Convert a date or datetime to an aware datetime in the local timezone.

    Naive datetimes are taken to be local already, dates become local
    midnight. ``ZERO_TIME`` is returned unchanged.

    Args:
        value: date or datetime object, optionally timezone-aware

    Returns:
        Aware datetime object in local timezone
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=LOCAL_TZ)
        if value.year == ZERO_TIME.year:
            return value
        return value.astimezone(LOCAL_TZ)
    return datetime(value.year, value.month, value.day, tzinfo=LOCAL_TZ)


def _first(prop):
    if isinstance(prop, list):
        return prop[0] if prop else None
    return prop


def decode_datetime(component: Component, key: str) -> datetime | None:
    """Read a DTSTART, DTEND or RECURRENCE-ID property as an aware datetime.

    Aware values keep their own timezone, naive values and dates are placed
    in the local timezone.

    Returns:
        The decoded value, or None if the property is absent or not a date
    """
    prop: vDDDTypes | None = _first(component.get(key))
    value = getattr(prop, 'dt', None)
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=LOCAL_TZ)
    if isinstance(value, date):
        return to_local_datetime(value)
    return None


def is_date_value(component: Component, key: str) -> bool:
    value = getattr(_first(component.get(key)), 'dt', None)
    return isinstance(value, date) and not isinstance(value, datetime)


def decode_duration(component: Component) -> timedelta | None:
    value = getattr(_first(component.get('DURATION')), 'dt', None)
    if isinstance(value, timedelta):
        return value
    return None


def decode_text(component: Component, key: str) -> str | None:
    value = _first(component.get(key))
    if value is None:
        return None
    return str(value)


def decode_date_list(props: list[vDDDLists] | vDDDLists | None) -> list[datetime]:
    """Flatten RDATE or EXDATE properties into aware datetimes.

    Periods contribute their start.
    """
    if props is None:
        return []
    if not isinstance(props, list):
        props = [props]
    extracted = []
    for prop in props:
        for ddd in getattr(prop, 'dts', []):
            value = ddd.dt
            if isinstance(value, tuple) and len(value) == 2:
                value = value[0]
            if isinstance(value, datetime) and value.tzinfo:
                extracted.append(value)
            elif isinstance(value, date):
                extracted.append(to_local_datetime(value))
    return extracted


def event_span(component: Component) -> tuple[datetime, datetime]:
    """Resolve the start and end of a source event.

    A missing DTEND falls back to DTSTART + DURATION, then to one day for
    date-only events, then to DTSTART itself. A missing DTSTART becomes
    ``ZERO_TIME``.
    """
    start = decode_datetime(component, 'DTSTART')
    end = decode_datetime(component, 'DTEND')

    if start is None:
        return ZERO_TIME, end if end is not None else ZERO_TIME

    if end is None:
        length = decode_duration(component)
        if length is not None:
            end = start + length
        elif is_date_value(component, 'DTSTART'):
            end = start + ONE_DAY
        else:
            end = start
    return start, end


def build_ruleset(
    component: Component,
    start: datetime,
    overridden: Iterable[datetime] = (),
) -> rrule.rruleset | None:
    """Build the recurrence set of a component anchored at ``start``.

    The set works in naive wall-clock time of the anchor's timezone, so
    recurring instances keep their time of day across DST changes.

    Args:
        component: VEVENT carrying RRULE, RDATE and EXDATE properties
        start: resolved DTSTART of the component
        overridden: instance starts replaced by RECURRENCE-ID components

    Returns:
        The rule set, or None when the component does not recur

    Raises:
        RecurrenceError: If an RRULE cannot be parsed
    """
    frame = start.tzinfo
    anchor = start.replace(tzinfo=None)

    rules = rrule.rruleset()
    recurring = False

    rrule_props = component.get('RRULE')
    if rrule_props is not None and not isinstance(rrule_props, list):
        rrule_props = [rrule_props]

    for prop in rrule_props or []:
        rrule_str = prop.to_ical().decode('utf-8')
        try:
            rule = rrule.rrulestr(
                rrule_str,
                dtstart=anchor,
                forceset=False,
                ignoretz=True,
            )
        except (ValueError, TypeError) as e:
            raise RecurrenceError(f"Invalid RRULE {rrule_str!r}: {e}") from e
        rules.rrule(rule)
        recurring = True

    for rdate in decode_date_list(component.get('RDATE')):
        rules.rdate(rdate.astimezone(frame).replace(tzinfo=None))
        recurring = True

    if not recurring:
        return None

    for exdate in [*decode_date_list(component.get('EXDATE')), *overridden]:
        rules.exdate(exdate.astimezone(frame).replace(tzinfo=None))

    return rules


def expand_event(
    component: Component,
    window: QueryWindow,
    include_description: bool = False,
    overridden: Iterable[datetime] = (),
) -> list[Occurrence]:
    """Expand one source event into the occurrences inside a window.

    A non-recurring event yields exactly one occurrence with its own start
    and end. A recurring event yields one occurrence per rule instance
    starting within the window (bounds inclusive), each lasting as long as
    the original event.

    Args:
        component: VEVENT component
        window: query window
        include_description: copy DESCRIPTION into the occurrences
        overridden: instance starts to leave out, see ``build_ruleset``

    Returns:
        List of occurrences, in rule order

    Raises:
        RecurrenceError: If the recurrence rule is malformed, or the event
            recurs without a DTSTART to anchor it
    """
    start, end = event_span(component)
    duration = end - start

    summary = decode_text(component, 'SUMMARY') or ''
    location = decode_text(component, 'LOCATION') or ''
    description = ''
    if include_description:
        description = decode_text(component, 'DESCRIPTION') or ''

    rules = build_ruleset(component, start, overridden)
    if rules is not None and decode_datetime(component, 'DTSTART') is None:
        raise RecurrenceError(f"Recurring event {summary!r} has no DTSTART")
    if rules is None:
        return [Occurrence(
            start=to_local_datetime(start),
            end=to_local_datetime(end),
            summary=summary,
            description=description,
            location=location,
        )]

    frame = start.tzinfo
    try:
        moments = rules.between(
            window.start.astimezone(frame).replace(tzinfo=None),
            window.end.astimezone(frame).replace(tzinfo=None),
            inc=True,
        )
    except (ValueError, TypeError) as e:
        raise RecurrenceError(f"Error expanding occurrences of {summary!r}: {e}") from e

    occurrences = []
    for moment in moments:
        begin = to_local_datetime(moment.replace(tzinfo=frame))
        occurrences.append(Occurrence(
            start=begin,
            end=begin + duration,
            summary=summary,
            description=description,
            location=location,
        ))
    return occurrences


def sort_occurrences(occurrences: Iterable[Occurrence]) -> list[Occurrence]:
    """Order occurrences by start time; ties keep their input order."""
    return sorted(occurrences, key=attrgetter('start'))
