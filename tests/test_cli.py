"""
NTP Clock Command Line Tests
"""

import json
import threading
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from ntpclock import cli
from ntpclock.clock import SyncStats


class TestParser:
    """Tests for argument parsing and config merging."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv(cli.LOG_LEVEL_ENV, raising=False)
        config = cli.build_config(cli.build_parser().parse_args([]))
        assert config.sync_interval_sec == 10
        assert config.display_interval_sec == 1
        assert config.ntp_servers is None
        assert config.timezone_offset_hours == 0
        assert config.show_stats is False
        assert config.log.level == "INFO"

    def test_all_flags(self, monkeypatch):
        monkeypatch.delenv(cli.LOG_LEVEL_ENV, raising=False)
        args = cli.build_parser().parse_args([
            "-i", "30", "-d", "2", "-s", "a:123", "--server", "b:123",
            "-t", "-5", "-v", "--show-stats",
        ])
        config = cli.build_config(args)
        assert config.sync_interval_sec == 30
        assert config.display_interval_sec == 2
        assert config.servers == ["a:123", "b:123"]
        assert config.timezone_offset_hours == -5
        assert config.show_stats is True
        assert config.log.level == "DEBUG"

    def test_flags_override_config_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv(cli.LOG_LEVEL_ENV, raising=False)
        path = tmp_path / "clock.json"
        path.write_text(json.dumps({"servers": ["file:123"], "sync_interval_sec": 60}))
        args = cli.build_parser().parse_args(["-c", str(path), "-s", "cli:123"])
        config = cli.build_config(args)
        assert config.servers == ["cli:123"]
        assert config.sync_interval_sec == 60

    def test_env_log_level(self, monkeypatch):
        monkeypatch.setenv(cli.LOG_LEVEL_ENV, "ERROR")
        config = cli.build_config(cli.build_parser().parse_args(["-v"]))
        assert config.log.level == "ERROR"


class TestFormatting:
    """Tests for the display line."""

    def test_utc(self, sample_time):
        assert cli.format_time_line(sample_time, 0) == "Time (UTC+0): 2024-01-01 00:00:00"

    def test_negative_offset(self, sample_time):
        assert cli.format_time_line(sample_time, -5) == "Time (UTC-5): 2023-12-31 19:00:00"

    def test_positive_offset(self):
        current = datetime(2024, 6, 1, 12, 30, 15, 999999, tzinfo=timezone.utc)
        assert cli.format_time_line(current, 9) == "Time (UTC+9): 2024-06-01 21:30:15"

    def test_with_stats(self, sample_time):
        stats = SyncStats(total_attempts=10, successful_syncs=8, failed_syncs=2)
        line = cli.format_time_line(sample_time, 0, stats)
        assert line == "Time (UTC+0): 2024-01-01 00:00:00 | Syncs: 8/10 (80.0% success)"


@pytest.mark.timeout(10)
class TestMain:
    """Tests for the entry point."""

    def test_invalid_config_exits_2(self, capsys):
        assert cli.main(["-i", "0"]) == 2
        assert "sync_interval_sec" in capsys.readouterr().err

    def test_missing_config_file_exits_2(self, tmp_path):
        assert cli.main(["-c", str(tmp_path / "missing.json")]) == 2

    def test_signal_install_failure_exits_1(self, fake_fetch):
        with patch("ntpclock.cli.install_signal_handlers", side_effect=ValueError("not main thread")):
            assert cli.main([]) == 1
        fake_fetch.assert_not_called()

    def test_run_prints_until_shutdown(self, fake_fetch, capsys):
        config = cli.build_config(cli.build_parser().parse_args(["--show-stats", "-d", "1"]))
        config.display_interval_sec = 0.05
        shutdown = threading.Event()
        timer = threading.Timer(0.3, shutdown.set)
        timer.start()
        try:
            assert cli.run(config, shutdown) == 0
        finally:
            timer.cancel()

        lines = capsys.readouterr().out.strip().splitlines()
        assert lines
        assert all(line.startswith("Time (UTC+0): 2024-01-01") for line in lines)
        assert "% success)" in lines[0]

    def test_main_graceful_shutdown_exits_0(self, fake_fetch):
        def set_immediately(shutdown):
            shutdown.set()

        with patch("ntpclock.cli.install_signal_handlers", side_effect=set_immediately):
            assert cli.main(["-s", "a:123"]) == 0
        assert fake_fetch.call_args[0][0] == ("a:123",)
