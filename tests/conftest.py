"""Shared fixtures for davcal tests."""

from datetime import datetime

import pytest
from dateutil import tz
from icalendar import Event

from davcal.events import QueryWindow


def parse_event(*lines: str) -> Event:
    """Build a VEVENT from its content lines."""
    text = "\r\n".join(["BEGIN:VEVENT", *lines, "END:VEVENT"]) + "\r\n"
    return Event.from_ical(text)


def local(*args: int) -> datetime:
    return datetime(*args, tzinfo=tz.tzlocal())


@pytest.fixture
def window() -> QueryWindow:
    """Three weeks starting Monday 2024-03-04."""
    return QueryWindow(local(2024, 3, 4), local(2024, 3, 25))


@pytest.fixture
def standup() -> Event:
    return parse_event(
        "UID:standup-1",
        "SUMMARY:Standup",
        "DTSTART:20240304T090000",
        "DTEND:20240304T093000",
        "RRULE:FREQ=WEEKLY;COUNT=3",
    )


@pytest.fixture
def holiday() -> Event:
    return parse_event(
        "UID:holiday-1",
        "SUMMARY:Company holiday",
        "DTSTART:20240304T000000",
        "DTEND:20240305T000000",
        "DESCRIPTION:Office closed",
    )
