"""
Plain-text rendering of occurrences and calendars
"""
import posixpath
from datetime import timedelta

from davcal.caldav_source import CalendarRef
from davcal.events import ONE_DAY, Occurrence

# Width of " HH:MM  0h00m" so all-day summaries line up with timed ones
ALL_DAY_PADDING = ' ' * 14


def format_duration(duration: timedelta) -> str:
    """Format an event length as a fixed-width label.

    Lengths under a day render as ``" 1h30m"`` or ``" 2h   "``; anything
    else falls back to ``str(timedelta)``.
    """
    if timedelta(0) < duration < ONE_DAY:
        hours, remainder = divmod(int(duration.total_seconds()), 3600)
        minutes = remainder // 60
        if minutes == 0:
            return f"{hours:2d}h   "
        return f"{hours:2d}h{minutes:02d}m"
    return str(duration)


def format_occurrence(occurrence: Occurrence, verbose: bool = False) -> str:
    """Render one occurrence as a display line.

    Args:
        occurrence: Occurrence to render
        verbose: Append the description, if any, on its own line

    Returns:
        The rendered text, without a trailing newline
    """
    location = f", {occurrence.location}" if occurrence.location else ''

    if occurrence.is_all_day:
        line = (
            f"{occurrence.start.strftime('%a %Y-%m-%d')}{ALL_DAY_PADDING}"
            f"{occurrence.summary}{location}"
        )
    else:
        line = (
            f"{occurrence.start.strftime('%a %Y-%m-%d %H:%M')} "
            f"{format_duration(occurrence.duration)} "
            f"{occurrence.summary}{location}"
        )

    if verbose and occurrence.description:
        line = f"{line}\n{occurrence.description}"
    return line


def format_calendar(calendar: CalendarRef, root: str, verbose: bool = False) -> str:
    """Render one entry of the calendar listing.

    Args:
        calendar: Calendar to render
        root: Path of the server endpoint; calendar paths are shown relative to it
        verbose: Append the calendar description on its own line
    """
    path = posixpath.relpath(calendar.path, root or '/')
    line = f"{path:<24} {calendar.name}"
    if verbose and calendar.description:
        line = f"{line}\n{calendar.description}"
    return line
