"""Tests for configuration, handlers and the command line."""

import json
import sys
from datetime import timedelta
from pathlib import Path

import pytest

from conftest import local, parse_event
from davcal import main as davcal_main
from davcal.caldav_source import CalendarRef
from davcal.config import default_config_path, load_config
from davcal.errors import ConfigurationError, TransportError
from davcal.events import Occurrence
from davcal.main import load_handler, parse_duration


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch) -> None:
    for variable in ("CALDAV_URL", "CALDAV_USERNAME", "CALDAV_PASSWORD"):
        monkeypatch.delenv(variable, raising=False)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "davcal.json"
    path.write_text(json.dumps({
        "endpoint": "https://dav.example.com/dav/",
        "username": "alice",
        "password": "secret",
        "calendars": ["/dav/calendars/alice/work/", "/dav/calendars/alice/gone/"],
    }))
    return path


class TestParseDuration:
    """Duration argument parsing."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("day", timedelta(days=1)),
            ("week", timedelta(days=7)),
            ("month", timedelta(days=31)),
            ("year", timedelta(days=365)),
            ("14", timedelta(days=14)),
            ("30m", timedelta(minutes=30)),
            ("12h", timedelta(hours=12)),
            ("2w", timedelta(weeks=2)),
        ],
    )
    def test_valid(self, text: str, expected: timedelta) -> None:
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["fortnight", "-3", "3x", ""])
    def test_invalid(self, text: str) -> None:
        with pytest.raises(ValueError):
            parse_duration(text)


class TestLoadConfig:
    """Configuration file handling."""

    def test_reads_file(self, config_file: Path) -> None:
        config = load_config(config_file)

        assert config.endpoint == "https://dav.example.com/dav/"
        assert config.username == "alice"
        assert len(config.calendars) == 2

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError):
            load_config(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "davcal.json"
        path.write_text("{endpoint:")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_missing_endpoint(self, tmp_path: Path) -> None:
        path = tmp_path / "davcal.json"
        path.write_text(json.dumps({"username": "alice"}))

        with pytest.raises(ConfigurationError, match="no endpoint"):
            load_config(path)

    def test_environment_overrides(self, config_file: Path, monkeypatch) -> None:
        monkeypatch.setenv("CALDAV_URL", "https://other.example.com/")
        monkeypatch.setenv("CALDAV_USERNAME", "bob")

        config = load_config(config_file)

        assert config.endpoint == "https://other.example.com/"
        assert config.username == "bob"
        assert config.password == "secret"

    def test_environment_without_file(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.setenv("CALDAV_URL", "https://other.example.com/")

        config = load_config(tmp_path / "missing.json")

        assert config.endpoint == "https://other.example.com/"
        assert config.calendars == []

    def test_default_path_follows_xdg(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

        assert default_config_path() == tmp_path / "davcal" / "davcal.json"


class TestHandlers:
    """Output handler loading."""

    def test_file_handler(self, tmp_path: Path) -> None:
        output = tmp_path / "events.txt"
        handler = load_handler("file", {"output_file": str(output)})
        occurrence = Occurrence(local(2024, 3, 6, 14, 0), local(2024, 3, 6, 15, 30), summary="Workshop")

        handler([occurrence])

        assert output.read_text() == "Wed 2024-03-06 14:00  1h30m Workshop\n"

    def test_handler_from_path(self, tmp_path: Path) -> None:
        script = tmp_path / "counter.py"
        script.write_text(
            "class Handler:\n"
            "    def __call__(self, occurrences, verbose=False):\n"
            "        self.count = len(occurrences)\n"
        )

        handler = load_handler(str(script))
        handler([])

        assert handler.count == 0


class FakeSource:
    """Replaces CalDAVSource in command line runs."""

    calendars = [CalendarRef("/dav/calendars/alice/work/", "Work", "Office hours")]

    def __init__(self, endpoint, username=None, password=None):
        self.endpoint = endpoint

    def find_calendars(self) -> list[CalendarRef]:
        return self.calendars

    def query(self, calendar, window, properties):
        if calendar.path.endswith("/gone/"):
            raise TransportError("410 Gone")
        return [
            parse_event(
                "SUMMARY:Standup",
                "DTSTART:20240304T090000",
                "DTEND:20240304T093000",
                "RRULE:FREQ=WEEKLY;COUNT=3",
                "DESCRIPTION:Daily sync",
            )
        ]


class TestCommandLine:
    """End-to-end runs of main() against a fake server."""

    @pytest.fixture(autouse=True)
    def fake_source(self, monkeypatch) -> None:
        monkeypatch.setattr(davcal_main, "CalDAVSource", FakeSource)

    def run(self, monkeypatch, *args: str) -> None:
        monkeypatch.setattr(sys, "argv", ["davcal", *args])
        davcal_main.main()

    def test_lists_events(self, monkeypatch, capsys, config_file: Path) -> None:
        self.run(monkeypatch, "-c", str(config_file), "-s", "2024-03-04 00:00", "-d", "month")

        assert capsys.readouterr().out.splitlines() == [
            "Mon 2024-03-04 09:00  0h30m Standup",
            "Mon 2024-03-11 09:00  0h30m Standup",
            "Mon 2024-03-18 09:00  0h30m Standup",
        ]

    def test_verbose_prints_descriptions(self, monkeypatch, capsys, config_file: Path) -> None:
        self.run(monkeypatch, "-c", str(config_file), "-s", "2024-03-04", "-e", "2024-03-05", "-v")

        assert capsys.readouterr().out.splitlines() == [
            "Mon 2024-03-04 09:00  0h30m Standup",
            "Daily sync",
        ]

    def test_list_calendars(self, monkeypatch, capsys, config_file: Path) -> None:
        self.run(monkeypatch, "-c", str(config_file), "--list", "-v")

        assert capsys.readouterr().out.splitlines() == [
            f"{'calendars/alice/work':<24} Work",
            "Office hours",
        ]

    def test_missing_config_exits(self, monkeypatch, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            self.run(monkeypatch, "-c", str(tmp_path / "missing.json"))

        assert exc_info.value.code == 1

    def test_bad_duration_exits(self, monkeypatch, config_file: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            self.run(monkeypatch, "-c", str(config_file), "-d", "fortnight")

        assert exc_info.value.code == 1
