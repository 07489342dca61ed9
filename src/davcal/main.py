#!/usr/bin/env python
'''
@File    :   main.py
@Desc    :   List upcoming events from CalDAV calendars
'''
import argparse
import importlib
import importlib.util
import json
import logging
import os
import re
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Protocol
from urllib.parse import urlparse

from dateutil import parser as date_parser

from davcal import __version__
from davcal.caldav_source import CalDAVSource, CalendarRef
from davcal.config import load_config
from davcal.errors import ConfigurationError, TransportError
from davcal.events import Occurrence, QueryWindow, to_local_datetime
from davcal.formatter import format_calendar
from davcal.query import query_events

NAMED_DURATIONS = {
    'day': timedelta(days=1),
    'week': timedelta(days=7),
    'month': timedelta(days=31),
    'year': timedelta(days=365),
}


class BaseHandler(Protocol):
    def __call__(self, occurrences: list[Occurrence], verbose: bool = False) -> None: ...


def load_handler(handler_name: str, handler_params: dict | None = None) -> BaseHandler:
    """Load and instantiate an output handler module.

    Args:
        handler_name: Module name or path to handler script
        handler_params: Optional parameters to pass to handler constructor

    Returns:
        Callable handler instance
    """
    handler_file = Path(handler_name)
    if handler_file.is_file() and handler_file.suffix == '.py':
        spec = importlib.util.spec_from_file_location(handler_file.stem, handler_name)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot load handler from {handler_name}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
    else:
        try:
            module = importlib.import_module(f'davcal.handlers.{handler_name}')
        except ImportError:
            module = importlib.import_module(handler_name)

    handler_class = getattr(module, 'Handler')

    if handler_params:
        return handler_class(**handler_params)
    else:
        return handler_class()


def parse_duration(duration_str: str) -> timedelta:
    """Parse duration string to timedelta object.

    Args:
        duration_str: 'day', 'week', 'month', 'year', a number of days, or a
            span with unit (e.g., '30m', '12h', '7d', '2w', '1M', '1y')

    Returns:
        timedelta object representing the duration

    Raises:
        ValueError: If duration format is invalid or unit is unsupported
    """
    if duration_str in NAMED_DURATIONS:
        return NAMED_DURATIONS[duration_str]

    if duration_str.isdigit():
        return timedelta(days=int(duration_str))

    match = re.match(r'^(\d+)([mhdwMy])$', duration_str)
    if not match:
        raise ValueError(
            f"Invalid duration format: {duration_str}. "
            "Supported formats: day, week, month, year, 14, 30m, 12h, 7d, 2w, 1M, 1y"
        )

    value = int(match.group(1))
    unit = match.group(2)

    if unit == 'm':  # minutes
        return timedelta(minutes=value)
    elif unit == 'h':  # hours
        return timedelta(hours=value)
    elif unit == 'd':  # days
        return timedelta(days=value)
    elif unit == 'w':  # weeks
        return timedelta(weeks=value)
    elif unit == 'M':  # months (approximated as 31 days)
        return timedelta(days=value * 31)
    else:  # years
        return timedelta(days=value * 365)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='List upcoming events from CalDAV calendars'
    )

    parser.add_argument(
        '-c', '--config',
        type=str,
        help='configuration file (default: $XDG_CONFIG_HOME/davcal/davcal.json)'
    )

    parser.add_argument(
        '-d', '--duration',
        type=str,
        default='week',
        help='time span to query relative to the start time; used to calculate the end time if --end-time is not provided; day, week, month, year, a number of days, or 30m, 12h, 7d, 2w, 1M, 1y. (Default: week)'
    )

    parser.add_argument(
        '-s', '--start-time',
        type=str,
        help='query start time (e.g., "2000-01-01 00:00"); defaults to current local time if not provided'
    )

    parser.add_argument(
        '-e', '--end-time',
        type=str,
        help='query end time (e.g., "2000-01-07 23:59"); if not provided, calculated using start time and duration'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='display event and calendar descriptions'
    )

    parser.add_argument(
        '--list',
        action='store_true',
        help="list the user's calendars and exit"
    )

    parser.add_argument(
        '-j', '--jobs',
        type=int,
        default=1,
        help='number of calendars to query concurrently (default: 1)'
    )

    parser.add_argument(
        '-m', '--module',
        type=str,
        help='output handler module name or path (default: console)'
    )

    parser.add_argument(
        '-p', '--params',
        type=str,
        help='handler initialization parameters in JSON format'
    )

    parser.add_argument(
        '-l', '--log-level',
        type=str.upper,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        default='WARNING',
        help='set the logging level (default: WARNING)'
    )

    parser.add_argument(
        '-V', '--version',
        action='version',
        version=f'davcal {__version__}',
        help='show program version and exit'
    )

    return parser


def resolve_window(args: argparse.Namespace) -> QueryWindow:
    """Build the query window from the time arguments.

    Raises:
        ValueError: If a time or the duration cannot be parsed
    """
    if args.start_time:
        start_time = to_local_datetime(date_parser.parse(args.start_time))
    else:
        start_time = to_local_datetime(datetime.now())

    if args.end_time:
        end_time = to_local_datetime(date_parser.parse(args.end_time))
    else:
        end_time = start_time + parse_duration(args.duration)

    if end_time < start_time:
        raise ValueError(f"End time {end_time} is before start time {start_time}")
    return QueryWindow(start_time, end_time)


def list_calendars(calendars: list[CalendarRef], endpoint: str, verbose: bool) -> None:
    root = urlparse(endpoint).path
    for calendar in calendars:
        print(format_calendar(calendar, root, verbose), flush=True)


def main():
    """Main entry point for the CalDAV event lister."""
    parser = build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    if args.params:
        try:
            params = json.loads(args.params)
        except json.JSONDecodeError as e:
            logging.error(f"Invalid JSON format for handler parameters: {e}")
            sys.exit(1)
        if not isinstance(params, dict):
            logging.error("Params must be a JSON object (dict)")
            sys.exit(1)
    else:
        params = None

    if args.module:
        try:
            handler = load_handler(args.module, params)
        except (ImportError, AttributeError, TypeError) as e:
            logging.error(f"Error loading handler module: {e}")
            sys.exit(1)
    else:
        handler = load_handler('console')

    try:
        window = resolve_window(args)
    except (ValueError, OverflowError) as e:
        logging.error(f"Error parsing time range: {e}")
        sys.exit(1)

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        logging.error(str(e))
        sys.exit(1)

    source = CalDAVSource(config.endpoint, config.username, config.password)

    if args.list or not config.calendars:
        try:
            calendars = source.find_calendars()
        except TransportError as e:
            logging.error(str(e))
            sys.exit(1)
    else:
        calendars = [CalendarRef(path=path) for path in config.calendars]

    if args.list:
        list_calendars(calendars, config.endpoint, args.verbose)
        return

    logging.info(f"Time Range: {window.start} to {window.end}")

    result = query_events(
        source.query,
        calendars,
        window,
        include_description=args.verbose,
        workers=max(1, args.jobs),
    )
    if result.failures:
        logging.info(f"{len(result.failures)} calendars or events skipped")

    handler(result.occurrences, args.verbose)
    return


def cli():
    try:
        main()
    except KeyboardInterrupt:
        print(file=sys.stderr)
        sys.exit(130)
    except BrokenPipeError:
        sys.stderr = open(os.devnull, 'w')
        sys.exit(1)


if __name__ == "__main__":
    cli()
