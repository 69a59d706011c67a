"""Consumer Group Runner – join, consume, drain.

High-level flow per message:
    poll -> decode envelope -> resolve schema -> decode payload -> map -> sink -> store offset

Offsets are stored for every message, including the ones that failed; a bad
message is logged with enough context to replay it and never stalls the
partition. Stored offsets are committed by the client in the background and
flushed on close.
"""
from __future__ import annotations

import logging
import signal
import threading
from enum import Enum
from time import monotonic
from typing import Callable, Optional

from confluent_kafka import Consumer, KafkaError, KafkaException

from event_pipeline.domain.errors import (
    DecodingError,
    MalformedEnvelopeError,
    MissingFieldsError,
    RegistryUnavailableError,
    UnknownSchemaError,
)
from event_pipeline.domain.events import DomainEvent
from event_pipeline.ports.event_sink import EventSink
from event_pipeline.ports.schema_resolver import SchemaResolver
from event_pipeline.adapters.kafka.serializers import AvroWireCodec
from event_pipeline.services.mapper import EventMapper

logger = logging.getLogger(__name__)

_SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class RunnerState(str, Enum):
    IDLE = "idle"
    JOINING = "joining"
    CONSUMING = "consuming"
    DRAINING = "draining"
    CLOSED = "closed"


class ConsumerGroupRunner:
    """One membership thread per runner; the sink is called synchronously on it.

    A slow sink throttles consumption, which keeps per-partition order.
    """

    def __init__(
        self,
        consumer_factory: Callable[[], Consumer],
        topic: str,
        resolver: SchemaResolver,
        sink: EventSink,
        *,
        codec: Optional[AvroWireCodec] = None,
        mapper: Optional[EventMapper] = None,
        poll_timeout: float = 1.0,
        rejoin_cooldown: float = 2.0,
        watch_interval: float = 0.1,
        install_signal_handlers: bool = True,
    ) -> None:
        self._consumer_factory = consumer_factory
        self._topic = topic
        self._resolver = resolver
        self._sink = sink
        self._codec = codec or AvroWireCodec()
        self._mapper = mapper or EventMapper()
        self._poll_timeout = poll_timeout
        self._rejoin_cooldown = rejoin_cooldown
        self._watch_interval = watch_interval
        self._install_signal_handlers = install_signal_handlers

        self._consumer: Optional[Consumer] = None
        self._state = RunnerState.IDLE
        self._state_lock = threading.Lock()
        self._trigger = threading.Event()
        self._trigger_lock = threading.Lock()
        self._closed = False
        self._close_lock = threading.Lock()
        self.stop_reason: Optional[str] = None
        self.sessions = 0

    @property
    def state(self) -> RunnerState:
        return self._state

    def _set_state(self, state: RunnerState) -> None:
        with self._state_lock:
            # never leave the shutdown path once it has begun
            if self._state in (RunnerState.DRAINING, RunnerState.CLOSED) and state in (
                RunnerState.JOINING,
                RunnerState.CONSUMING,
            ):
                return
            self._state = state

    # -- lifecycle ---------------------------------------------------------

    def start(self, cancel_event: Optional[threading.Event] = None) -> None:
        """Block until cancelled, signalled or stopped; return once closed."""
        if self._state is not RunnerState.IDLE:
            raise RuntimeError(f"runner already started (state={self._state.value})")
        cancel_event = cancel_event or threading.Event()
        if cancel_event.is_set():
            logger.info("Context cancelled before start; not joining group for %s", self._topic)
            self.stop_reason = "context cancelled"
            self._set_state(RunnerState.CLOSED)
            return

        try:
            self._consumer = self._consumer_factory()
        except Exception:
            self._set_state(RunnerState.CLOSED)
            raise

        previous = self._install_signals()
        worker = threading.Thread(
            target=self._membership_loop, name=f"consumer-group-{self._topic}", daemon=True
        )
        worker.start()
        try:
            while not self._trigger.is_set():
                if cancel_event.wait(self._watch_interval):
                    self._fire("context cancelled")
        finally:
            self._drain(worker)
            self._restore_signals(previous)

    def stop(self) -> None:
        self._fire("stop requested")

    def _fire(self, reason: str) -> None:
        with self._trigger_lock:
            self._claim(reason)

    def _claim(self, reason: str) -> None:
        # also entered from the signal handler, which may interrupt _fire on the
        # main thread; it must not take _trigger_lock
        if self._trigger.is_set():
            return
        self._trigger.set()
        if self.stop_reason is None:
            self.stop_reason = reason
            logger.info("Shutting down consumer for %s: %s", self._topic, reason)

    def _drain(self, worker: threading.Thread) -> None:
        self._fire("shutdown")
        self._set_state(RunnerState.DRAINING)
        worker.join()
        self._close()
        self._set_state(RunnerState.CLOSED)
        logger.info("Consumer group closed topic=%s", self._topic)

    def _close(self) -> None:
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
            consumer, self._consumer = self._consumer, None
        self._close_consumer(consumer)

    def _close_consumer(self, consumer: Optional[Consumer]) -> None:
        if consumer is None:
            return
        try:
            consumer.close()
        except Exception:
            logger.exception("Error closing consumer group for %s", self._topic)

    def _discard_consumer(self) -> None:
        """Close a client that failed its session; the next session builds a new one."""
        with self._close_lock:
            consumer, self._consumer = self._consumer, None
        self._close_consumer(consumer)

    def _current_consumer(self) -> Consumer:
        with self._close_lock:
            if self._consumer is not None:
                return self._consumer
        consumer = self._consumer_factory()
        with self._close_lock:
            if not self._closed:
                self._consumer = consumer
                return consumer
        self._close_consumer(consumer)
        raise RuntimeError("runner closed while rebuilding the consumer")

    def _install_signals(self):
        if not self._install_signal_handlers:
            return None
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread; signal handlers not installed")
            return None

        def _on_signal(signum, _frame) -> None:
            self._claim(f"termination signal received ({signal.Signals(signum).name})")

        previous = {}
        for sig in _SHUTDOWN_SIGNALS:
            previous[sig] = signal.getsignal(sig)
            signal.signal(sig, _on_signal)
        return previous

    @staticmethod
    def _restore_signals(previous) -> None:
        if not previous:
            return
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    # -- membership --------------------------------------------------------

    def _membership_loop(self) -> None:
        while not self._trigger.is_set():
            self._set_state(RunnerState.JOINING)
            self.sessions += 1
            started = monotonic()
            try:
                consumer = self._current_consumer()
                consumer.subscribe(
                    [self._topic], on_assign=self._on_assign, on_revoke=self._on_revoke
                )
                self._consume_session(consumer)
            except Exception:
                logger.exception("Error during consuming topic=%s; rejoining", self._topic)
                self._discard_consumer()
            if self._trigger.is_set():
                break
            if monotonic() - started < self._rejoin_cooldown:
                self._trigger.wait(self._rejoin_cooldown)

    def _consume_session(self, consumer: Consumer) -> None:
        while not self._trigger.is_set():
            msg = consumer.poll(self._poll_timeout)
            if msg is None:
                continue
            err = msg.error()
            if err is not None:
                if err.code() == KafkaError._PARTITION_EOF:
                    continue
                if err.fatal():
                    raise KafkaException(err)
                logger.warning("Kafka error on %s: %s", self._topic, err)
                continue
            self.handle_message(msg)

    def _on_assign(self, _consumer, partitions) -> None:
        logger.info(
            "Partitions assigned: %s", ", ".join(f"{p.topic}[{p.partition}]" for p in partitions)
        )
        self._set_state(RunnerState.CONSUMING)

    def _on_revoke(self, _consumer, partitions) -> None:
        logger.info(
            "Partitions revoked: %s", ", ".join(f"{p.topic}[{p.partition}]" for p in partitions)
        )
        self._set_state(RunnerState.JOINING)

    # -- per message -------------------------------------------------------

    def handle_message(self, msg) -> Optional[DomainEvent]:
        """Decode, map and dispatch one message. Always stores its offset."""
        value = msg.value()
        where = (msg.topic(), msg.partition(), msg.offset(), len(value) if value is not None else 0)
        try:
            try:
                schema_id, record = self._codec.decode_message(value, self._resolver)
            except MalformedEnvelopeError as exc:
                logger.warning(
                    "Skipping malformed message topic=%s partition=%s offset=%s bytes=%s: %s",
                    *where,
                    exc,
                )
                return None
            except (UnknownSchemaError, RegistryUnavailableError, DecodingError) as exc:
                logger.error(
                    "Skipping undecodable message topic=%s partition=%s offset=%s bytes=%s: %s",
                    *where,
                    exc,
                )
                return None

            try:
                event = self._mapper.to_domain_event(record)
            except MissingFieldsError as exc:
                logger.warning(
                    "Skipping unmappable message topic=%s partition=%s offset=%s bytes=%s schema_id=%s: %s",
                    *where,
                    schema_id,
                    exc,
                )
                return None

            try:
                self._sink.publish(event)
            except Exception:
                logger.exception(
                    "Sink failed for id=%s topic=%s partition=%s offset=%s bytes=%s",
                    event.entity_id,
                    *where,
                )
            return event
        finally:
            self._mark(msg)

    def _mark(self, msg) -> None:
        try:
            self._consumer.store_offsets(message=msg)
        except KafkaException as exc:
            logger.warning(
                "Could not store offset topic=%s partition=%s offset=%s: %s",
                msg.topic(),
                msg.partition(),
                msg.offset(),
                exc,
            )
