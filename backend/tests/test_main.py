"""
Tests for the process bootstrap
"""
import asyncio
import signal
from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from reminder import main as bootstrap
from reminder.core.config import (DatabaseConfig, EventsConfig,
                                  MetricsConfig, RecurrenceConfig, Settings,
                                  SQLEventConfig)
from reminder.core.errors import ReminderConfigError
from reminder.services.reminder_service import Reminder, ReminderState

from fakes import FakeStore, RecordingPublisher, make_settings


def sqlite_settings(interval: timedelta) -> Settings:
    return Settings(
        recurrence=RecurrenceConfig(interval=interval),
        metrics=MetricsConfig(enabled=False),
        database=DatabaseConfig(dsn="sqlite://"),
        events=EventsConfig(sql=SQLEventConfig(connection=DatabaseConfig(dsn="sqlite://"))),
    )


@pytest.mark.asyncio
async def test_fatal_start_error_still_closes_publisher(monkeypatch):
    created = []

    class TrackedReminder(Reminder):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            created.append(self)

    monkeypatch.setattr(bootstrap, "Reminder", TrackedReminder)
    monkeypatch.setattr(
        bootstrap,
        "create_db_engine",
        lambda config: create_engine("sqlite://", poolclass=StaticPool),
    )

    with pytest.raises(ReminderConfigError):
        await bootstrap.run(sqlite_settings(timedelta(0)))

    assert len(created) == 1
    assert created[0].state is ReminderState.STOPPED
    assert created[0]._publisher.closed


@pytest.mark.asyncio
async def test_signal_stop_task_is_kept_until_done():
    publisher = RecordingPublisher()
    reminder = Reminder(FakeStore(), make_settings(), publisher=publisher)
    pending = set()

    bootstrap._request_stop(reminder, signal.SIGTERM, pending)
    assert len(pending) == 1

    await asyncio.gather(*pending)
    await asyncio.sleep(0)

    assert pending == set()
    assert reminder.state is ReminderState.STOPPED
    assert publisher.close_calls == 1
