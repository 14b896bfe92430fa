"""
Tests for the command line interface
"""
import json
from datetime import timedelta

import pytest

from reminder import cli


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    for key in ("REMINDER_RECURRENCE__INTERVAL", "REMINDER_DATABASE__PASSWORD"):
        monkeypatch.delenv(key, raising=False)
    cli.get_settings.cache_clear()
    yield
    cli.get_settings.cache_clear()


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 1
    assert "usage" in capsys.readouterr().out


def test_show_config_masks_passwords(capsys, monkeypatch):
    monkeypatch.setenv("REMINDER_DATABASE__PASSWORD", "hunter2")

    assert cli.main(["show-config"]) == 0

    out = capsys.readouterr().out
    config = json.loads(out)
    assert "hunter2" not in out
    assert config["database"]["password"] == "***"
    assert config["events"]["sql"]["connection"]["password"] == "***"


def test_show_config_applies_overrides(capsys):
    assert cli.main(["show-config", "--batch-size", "7", "--no-metrics"]) == 0

    config = json.loads(capsys.readouterr().out)
    assert config["recurrence"]["batch_size"] == 7
    assert config["metrics"]["enabled"] is False


def test_invalid_override_is_rejected(capsys):
    assert cli.main(["show-config", "--interval=-5m"]) == 2
    assert "cannot be negative" in capsys.readouterr().err


def test_start_passes_effective_settings(monkeypatch):
    seen = {}

    def fake_main(settings):
        seen["settings"] = settings
        return 0

    monkeypatch.setattr("reminder.main.main", fake_main)

    assert cli.main(["start", "--interval", "15m", "--min-elapsed", "2h"]) == 0
    assert seen["settings"].recurrence.interval == timedelta(minutes=15)
    assert seen["settings"].recurrence.min_elapsed == timedelta(hours=2)
