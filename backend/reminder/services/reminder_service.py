"""
Reminder service: sends reminders for stale repositories at a fixed interval
"""
import asyncio
from enum import Enum
from typing import Optional, Set
from uuid import UUID

from reminder.core.config import Settings, format_duration
from reminder.core.errors import (PublishError, ReminderConfigError,
                                  ReminderError, ReminderStoppedError)
from reminder.core.logging_config import LoggingConfig
from reminder.core.metrics import (MetricsProvider, get_metrics_provider,
                                   init_metrics_provider,
                                   shutdown_metrics_provider)
from reminder.core.metrics_server import SHUTDOWN_TIMEOUT_SECONDS, MetricsServer
from reminder.core.tracing import add_span_attributes, get_tracer
from reminder.services.batch_fetcher import Batch, BatchFetcher
from reminder.services.cursor import Cursor
from reminder.services.freshness import Clock, utc_now
from reminder.services.messages import (REPO_REMINDER_TOPIC,
                                        new_repo_reminder_message)
from reminder.services.publisher import Publisher, SQLPublisher
from reminder.services.store import Store
from reminder.services.ticker import Ticker

logger = LoggingConfig.get_logger(__name__)
tracer = get_tracer(__name__)


class ReminderState(str, Enum):
    """Lifecycle of a reminder instance"""
    NEW = "new"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class Reminder:
    """
    Periodically publishes reminders for repositories whose evaluations are stale

    The reminder keeps no durable state. Its cursor starts at a random id and
    is lost on restart, so several replicas can run side by side; consumers
    must tolerate the duplicate reminders that follow.

    Lifecycle:
        start() runs the tick loop until stop() is called or the task running
        it is cancelled. Either way the publisher is closed and the metrics
        server shut down exactly once. A stopped reminder cannot be started
        again.
    """

    def __init__(
        self,
        store: Store,
        config: Settings,
        publisher: Optional[Publisher] = None,
        clock: Clock = utc_now
    ):
        self.store = store
        self.config = config
        self.clock = clock

        recurrence = config.recurrence
        self._cursor = Cursor.random()
        self._fetcher = BatchFetcher(
            store,
            self._cursor,
            batch_size=recurrence.batch_size,
            min_elapsed=recurrence.min_elapsed,
            clock=clock,
        )
        self._publisher = publisher if publisher is not None else SQLPublisher.from_config(config.events.sql)

        self._stop_requested = asyncio.Event()
        self._metrics_done = asyncio.Event()
        self._shutdown_complete = asyncio.Event()
        self._stopping = False

        self._ticker = None
        self._metrics: Optional[MetricsProvider] = None
        self._metrics_server: Optional[MetricsServer] = None
        self._reminded: Set[UUID] = set()
        self._ticks = 0
        self.state = ReminderState.NEW

    @property
    def cursor(self) -> Cursor:
        return self._cursor

    @property
    def metrics(self) -> Optional[MetricsProvider]:
        return self._metrics

    async def start(self) -> None:
        """
        Send reminders at regular intervals until stopped

        Raises:
            ReminderStoppedError: the reminder was already stopped
            ReminderConfigError: the interval is not positive
            MetricsError: metrics are enabled but could not be set up
        """
        if self._stop_requested.is_set():
            raise ReminderStoppedError()
        if self.state is not ReminderState.NEW:
            raise ReminderError(f"reminder is already {self.state.value}")

        interval = self.config.recurrence.interval
        if interval.total_seconds() <= 0:
            raise ReminderConfigError(f"invalid interval: {format_duration(interval)}")

        await self._start_metrics()

        self._ticker = Ticker(interval.total_seconds(), stopped=self._stop_requested)
        self.state = ReminderState.RUNNING
        logger.info(
            f"reminder started: interval={format_duration(interval)} "
            f"batch_size={self.config.recurrence.batch_size} "
            f"min_elapsed={format_duration(self.config.recurrence.min_elapsed)}"
        )

        try:
            # Ticks missed while a slow tick runs are coalesced by the ticker.
            while await self._ticker.tick():
                await self._run_tick()
            logger.info("reminder stopped")
        finally:
            await self.stop()

    async def stop(self) -> None:
        """
        Stop the reminder and wait until it is fully shut down

        Safe to call any number of times, and before start().
        """
        if self._stopping:
            await self._shutdown_complete.wait()
            return
        self._stopping = True

        self._stop_requested.set()
        if self.state is ReminderState.RUNNING:
            self.state = ReminderState.DRAINING

        try:
            try:
                self._publisher.close()
            except Exception as e:
                logger.error(f"error closing event publisher: {e}", exc_info=True)

            await self._shutdown_metrics()
            await self._metrics_done.wait()
        finally:
            # Interrupted teardown still counts as stopped, so later stop() calls return
            self.state = ReminderState.STOPPED
            self._shutdown_complete.set()
            logger.info("reminder shut down")

    async def send_reminders(self) -> int:
        """
        Fetch the next batch and publish reminders for its eligible repositories

        Returns:
            Number of reminders published

        Raises:
            StoreError: a store read failed; nothing was published
            PublishError: the batch could not be enqueued
        """
        with tracer.start_as_current_span("reminder.send_reminders") as span:
            add_span_attributes(span, **{"reminder.cursor": str(self._cursor.position)})

            batch = await self._fetcher.next_batch()
            add_span_attributes(span, **{
                "reminder.fetched": len(batch.entities),
                "reminder.eligible": len(batch.eligible),
            })
            logger.info(
                f"fetched {len(batch.entities)} repositories, "
                f"{len(batch.eligible)} eligible for reminders"
            )

            if not batch.eligible:
                return 0

            messages = [new_repo_reminder_message(entity) for entity in batch.eligible]

            if self._metrics is not None:
                self._metrics.record_batch_size(len(messages))

            try:
                await self._publisher.publish(REPO_REMINDER_TOPIC, *messages)
            except PublishError:
                raise
            except Exception as e:
                raise PublishError(f"error publishing messages: {e}") from e

            logger.info(f"sent {len(messages)} reminders")
            self._record_send_delays(batch)
            return len(messages)

    async def _run_tick(self):
        self._ticks += 1
        LoggingConfig.set_context(tick=self._ticks)
        try:
            await self.send_reminders()
        except ReminderError as e:
            logger.error(f"reconciliation request unsuccessful: {e}")
        except Exception as e:
            logger.error(f"unexpected error sending reminders: {e}", exc_info=True)
        finally:
            LoggingConfig.clear_context()

    def _record_send_delays(self, batch: Batch):
        if self._metrics is None:
            return

        now = self.clock()
        min_elapsed = self.config.recurrence.min_elapsed
        track_new = self.config.metrics.track_new_entities
        for entity in batch.eligible:
            last_updated = batch.last_updated.get(entity.id)
            if last_updated is None:
                continue
            delay = (now - last_updated - min_elapsed).total_seconds()
            new_entity = False
            if track_new and entity.id not in self._reminded:
                self._reminded.add(entity.id)
                new_entity = True
            self._metrics.record_send_delay(delay, new_entity=new_entity)

    async def _start_metrics(self):
        metrics_config = self.config.metrics
        if not metrics_config.enabled:
            self._metrics_done.set()
            return

        self._metrics = init_metrics_provider(track_new_entities=metrics_config.track_new_entities)
        server = MetricsServer(self._metrics, metrics_config.address)
        try:
            await server.start()
        except ReminderError:
            self._release_metrics_provider()
            self._metrics = None
            raise
        self._metrics_server = server

    async def _shutdown_metrics(self):
        server, self._metrics_server = self._metrics_server, None
        try:
            if server is not None:
                await server.shutdown(timeout=SHUTDOWN_TIMEOUT_SECONDS)
        finally:
            if self._metrics is not None:
                self._release_metrics_provider()
            self._metrics_done.set()

    def _release_metrics_provider(self):
        if get_metrics_provider() is self._metrics:
            shutdown_metrics_provider()
        else:
            self._metrics.shutdown()
