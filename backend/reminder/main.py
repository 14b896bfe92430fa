"""
Process bootstrap for the reminder service
"""
import asyncio
import signal
from typing import Optional, Set

from reminder.core.config import Settings, get_settings
from reminder.core.database import (create_db_engine, create_session_factory,
                                    dispose_engine)
from reminder.core.errors import ReminderError
from reminder.core.logging_config import LoggingConfig
from reminder.core.tracing import configure_tracing, shutdown_tracing
from reminder.services.reminder_service import Reminder
from reminder.services.store import SQLAlchemyStore

logger = LoggingConfig.get_logger(__name__)


async def run(settings: Settings):
    """Run a reminder until SIGINT/SIGTERM"""
    engine = create_db_engine(settings.database)
    loop = asyncio.get_running_loop()
    reminder = None
    # Stop tasks started from signal handlers, kept until they finish
    pending: Set[asyncio.Task] = set()
    try:
        store = SQLAlchemyStore(create_session_factory(engine))
        reminder = Reminder(store, settings)

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _request_stop, reminder, sig, pending)

        await reminder.start()
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        if reminder is not None:
            await reminder.stop()
        dispose_engine(engine)


def _request_stop(reminder: Reminder, sig: signal.Signals, pending: Set[asyncio.Task]):
    logger.info(f"received {sig.name}, stopping reminder")
    task = asyncio.get_running_loop().create_task(reminder.stop())
    pending.add(task)
    task.add_done_callback(pending.discard)


def main(settings: Optional[Settings] = None) -> int:
    """Configure logging and tracing, then run the reminder; returns the exit code"""
    settings = settings or get_settings()
    LoggingConfig.configure(settings.logging, force=True)
    configure_tracing(settings)

    try:
        asyncio.run(run(settings))
    except ReminderError as e:
        logger.error(f"reminder failed: {e}")
        return 1
    finally:
        shutdown_tracing()
    return 0
