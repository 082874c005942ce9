# pathway/triggers/gateway.py
from __future__ import annotations

import logging
import queue
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

import requests

from pathway.config import get_settings
from pathway.errors import ExternalServiceUnavailable, TransientStorageError
from pathway.triggers.events import TriggerEvent
from pathway.triggers.segments import match_segment, render_message

logger = logging.getLogger(__name__)


class NotificationGateway(ABC):
    """
    External notification system. Implementations raise
    ExternalServiceUnavailable when an event could not be handed over.
    """

    @abstractmethod
    def dispatch(self, event: TriggerEvent) -> None:
        ...


class LoggingGateway(NotificationGateway):
    """
    Used when no notification provider is configured.
    """

    def dispatch(self, event: TriggerEvent) -> None:
        segment = match_segment(event)
        logger.info(
            "Notification event: user=%s type=%s priority=%s segment=%s message=%r",
            event.user_id,
            event.event_type.value,
            event.priority.value,
            segment.name if segment else None,
            render_message(event),
        )


class CustomerIOGateway(NotificationGateway):
    """
    Sends trigger events to the Customer.io Track API.
    """

    def __init__(
        self,
        site_id: Optional[str] = None,
        api_key: Optional[str] = None,
        track_url: Optional[str] = None,
        timeout: float = 10.0,
        http: Optional[requests.Session] = None,
    ):
        settings = get_settings()
        self.site_id = site_id or settings.customerio_site_id
        self.api_key = api_key or settings.customerio_api_key
        if not self.site_id or not self.api_key:
            raise RuntimeError(
                "CUSTOMERIO_SITE_ID / CUSTOMERIO_API_KEY are not set in environment (.env)."
            )
        self.track_url = (track_url or settings.customerio_track_url).rstrip("/")
        self.timeout = timeout
        self.http = http or requests.Session()

    def dispatch(self, event: TriggerEvent) -> None:
        segment = match_segment(event)
        body = {
            "name": event.event_type.value,
            "data": {
                **event.payload,
                "priority": event.priority.value,
                "segment": segment.name if segment else None,
                "message": render_message(event),
            },
        }
        url = f"{self.track_url}/customers/{event.user_id}/events"
        try:
            resp = self.http.post(
                url,
                json=body,
                auth=(self.site_id, self.api_key),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ExternalServiceUnavailable(f"Customer.io unreachable: {e}") from e

        if resp.status_code >= 400:
            raise ExternalServiceUnavailable(
                f"Customer.io rejected event ({resp.status_code}): {resp.text[:200]}"
            )


_STOP = object()


class OutboundDispatcher:
    """
    Bounded outbound queue in front of a NotificationGateway.

    `submit` never blocks the conversational turn: a full queue sends the
    event straight to the dead-letter table. A worker thread (or `drain()`
    when no thread is running) delivers with exponential backoff and
    dead-letters events that exhaust their attempts.
    """

    def __init__(
        self,
        gateway: NotificationGateway,
        log=None,
        maxsize: int = 256,
        max_attempts: int = 4,
        backoff_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.gateway = gateway
        self.log = log
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self.sleep = sleep
        self._queue: "queue.Queue" = queue.Queue(maxsize=maxsize)
        self._worker: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def submit(self, event: TriggerEvent) -> bool:
        """
        Returns False when the event could not be queued (it is dead-lettered).
        """
        try:
            self._queue.put_nowait(event)
            return True
        except queue.Full:
            logger.warning("Outbound queue full, dead-lettering %s", event.event_type.value)
            self._dead_letter(event, "outbound queue full", attempts=0)
            return False

    def pending(self) -> int:
        return self._queue.qsize()

    def join(self) -> None:
        """Block until every queued event has been handled."""
        self._queue.join()

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    def deliver(self, event: TriggerEvent) -> bool:
        last_error: Optional[str] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                self.gateway.dispatch(event)
                return True
            except ExternalServiceUnavailable as e:
                last_error = str(e)
                logger.warning(
                    "Dispatch attempt %d/%d failed for %s: %s",
                    attempt, self.max_attempts, event.user_id, e,
                )
                if attempt < self.max_attempts:
                    self.sleep(self.backoff_seconds * (2 ** (attempt - 1)))

        self._dead_letter(event, last_error, attempts=self.max_attempts)
        return False

    def drain(self) -> int:
        """
        Deliver everything currently queued on the calling thread.
        Returns how many events were delivered.
        """
        delivered = 0
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                return delivered
            try:
                if event is not _STOP and self.deliver(event):
                    delivered += 1
            finally:
                self._queue.task_done()

    def start(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            return
        self._worker = threading.Thread(
            target=self._run, name="outbound-dispatcher", daemon=True
        )
        self._worker.start()

    def stop(self, timeout: float = 5.0) -> None:
        if self._worker is None:
            return
        self._queue.put(_STOP)
        self._worker.join(timeout)
        self._worker = None

    def _run(self) -> None:
        while True:
            event = self._queue.get()
            try:
                if event is _STOP:
                    return
                self.deliver(event)
            except Exception:
                logger.exception("Outbound dispatcher crashed on an event")
            finally:
                self._queue.task_done()

    def _dead_letter(self, event: TriggerEvent, error: Optional[str], attempts: int) -> None:
        logger.error(
            "Dead-lettering %s event for %s after %d attempt(s): %s",
            event.event_type.value, event.user_id, attempts, error,
        )
        if self.log is None:
            return
        try:
            self.log.append_dead_letter(
                user_id=event.user_id,
                event_type=event.event_type.value,
                priority=event.priority.value,
                payload=dict(event.payload),
                error=error,
                attempts=attempts,
            )
        except TransientStorageError as e:
            logger.error("Could not store dead letter for %s: %s", event.user_id, e)


def build_gateway() -> NotificationGateway:
    settings = get_settings()
    if settings.customerio_site_id and settings.customerio_api_key:
        return CustomerIOGateway()
    return LoggingGateway()
