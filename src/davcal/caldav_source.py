"""
CalDAV access: calendar discovery and time-range queries
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Sequence

import caldav
from caldav.elements import cdav
from caldav.lib import error as dav_error
from icalendar import Component, Event

from davcal.errors import TransportError
from davcal.events import QueryWindow

# Raised by the HTTP layer under caldav (requests or niquests); both derive from OSError
TRANSPORT_ERRORS = (dav_error.DAVError, OSError)


@dataclass(frozen=True)
class CalendarRef:
    path: str
    name: str = ''
    description: str = ''

    @property
    def label(self) -> str:
        return self.name or self.path


def project_event(component: Component, properties: Sequence[str]) -> Event:
    """Copy only the named properties of a VEVENT into a new event."""
    event = Event()
    for name in properties:
        if name in component:
            event[name] = component[name]
    return event


class CalDAVSource:
    """Read-only view of the calendars behind one CalDAV endpoint."""

    def __init__(
        self,
        endpoint: str,
        username: str | None = None,
        password: str | None = None,
        timeout: int | None = 30,
    ):
        """
        Initialize the CalDAV client

        Args:
            endpoint: CalDAV server URL
            username: Optional user name for basic authentication
            password: Password for ``username``
            timeout: Request timeout in seconds
        """
        self.endpoint = endpoint
        self.client = caldav.DAVClient(
            url=endpoint,
            username=username or None,
            password=password or None,
            timeout=timeout,
        )

    def find_calendars(self) -> list[CalendarRef]:
        """Discover the current user's calendars.

        Returns:
            One reference per calendar in the user's calendar home set

        Raises:
            TransportError: If the principal or its calendars cannot be read
        """
        try:
            calendars = self.client.principal().calendars()
            refs = []
            for calendar in calendars:
                description = calendar.get_property(cdav.CalendarDescription())
                refs.append(CalendarRef(
                    path=str(calendar.url.path),
                    name=calendar.name or '',
                    description=description or '',
                ))
        except TRANSPORT_ERRORS as e:
            raise TransportError(f"Calendar discovery at {self.endpoint} failed: {e}") from e
        return refs

    def query(
        self,
        calendar: CalendarRef,
        window: QueryWindow,
        properties: Sequence[str],
    ) -> list[Event]:
        """Fetch the events of one calendar that intersect a window.

        The server filter is widened by one second on the right so events
        starting exactly at ``window.end`` are returned, matching the
        inclusive window used for recurrence expansion. Recurring events
        come back as unexpanded masters plus their overrides.

        The server sends whole calendar objects; ``properties`` is applied
        here, on the client, so only those properties reach the expander.
        A resource whose iCalendar text cannot be parsed is logged and
        skipped.

        Args:
            calendar: Calendar to query
            window: Query window
            properties: Names of the VEVENT properties to keep

        Returns:
            VEVENT components reduced to ``properties``

        Raises:
            TransportError: If the request fails
        """
        try:
            resources = self.client.calendar(url=calendar.path).search(
                start=window.start,
                end=window.end + timedelta(seconds=1),
                event=True,
                expand=False,
            )
            events = []
            for resource in resources:
                try:
                    components = resource.icalendar_instance.walk('VEVENT')
                except ValueError as e:
                    logging.warning(f"Skipped unreadable resource {resource.url} in {calendar.label}: {e}")
                    continue
                events.extend(project_event(component, properties) for component in components)
        except TRANSPORT_ERRORS as e:
            raise TransportError(f"Query of calendar {calendar.label} failed: {e}") from e

        logging.debug(f"Calendar {calendar.label}: {len(events)} events")
        return events
