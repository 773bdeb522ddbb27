"""
Notification Dispatcher.

Append-only queue between the booking engine and the mail collaborator.
Events leave the queue only after the handler acknowledges them, so
delivery is at-least-once. Failed deliveries are retried with bounded
exponential backoff; nothing is dropped silently.
"""

import logging
import threading
from collections import deque
from enum import Enum
from typing import Callable, Deque, Dict, List, Optional, Set, Tuple

from models import NotificationEvent, NotificationKind
from .config import DispatcherConfig

logger = logging.getLogger(__name__)

# Returns True once the event has been delivered
MailHandler = Callable[[NotificationEvent], bool]
# Returns True when it has taken ownership of an undeliverable event
DeadLetterHandler = Callable[[NotificationEvent], bool]

EventKey = Tuple[str, NotificationKind]


class _Outcome(Enum):
    DELIVERED = "delivered"
    EXHAUSTED = "exhausted"
    INTERRUPTED = "interrupted"


class NotificationDispatcher:
    """
    Ordered at-least-once queue keyed by appointment id.
    """

    def __init__(
        self,
        config: Optional[DispatcherConfig] = None,
        dead_letter: Optional[DeadLetterHandler] = None
    ):
        self.config = config or DispatcherConfig()
        self.dead_letter = dead_letter

        self._queue: Deque[NotificationEvent] = deque()
        self._keys: Set[EventKey] = set()
        self._attempts: Dict[EventKey, int] = {}
        self._cond = threading.Condition()
        self._drain_lock = threading.Lock()

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # --- Producer Side ---

    def enqueue(self, event: NotificationEvent) -> bool:
        """Append an event. Returns False if the same event is already queued."""
        with self._cond:
            if event.key in self._keys:
                logger.debug(f"Ignoring duplicate {event.kind.value} event for {event.appointment_id}")
                return False
            self._queue.append(event)
            self._keys.add(event.key)
            self._cond.notify_all()
        logger.info(f"Queued {event.kind.value} notification for appointment {event.appointment_id}")
        return True

    def pending(self) -> List[NotificationEvent]:
        with self._cond:
            return list(self._queue)

    def attempts_for(self, event: NotificationEvent) -> int:
        with self._cond:
            return self._attempts.get(event.key, 0)

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    # --- Consumer Side ---

    def drain(self, handler: MailHandler, stop_event: Optional[threading.Event] = None) -> int:
        """
        Hand queued events to `handler` one at a time, oldest first.

        Stops when the queue is empty, when `stop_event` is set, or when the
        head event exhausts its retries and no dead-letter handler takes it.
        Returns the number of events delivered.
        """
        # Only the background worker shares self._stop; a direct call runs to completion
        stop = stop_event if stop_event is not None else threading.Event()
        if not self._drain_lock.acquire(blocking=False):
            logger.debug("Drain already in progress; skipping")
            return 0

        delivered = 0
        try:
            while not stop.is_set():
                with self._cond:
                    if not self._queue:
                        break
                    event = self._queue[0]

                outcome = self._deliver(event, handler, stop)

                if outcome is _Outcome.DELIVERED:
                    self._acknowledge(event)
                    delivered += 1
                elif outcome is _Outcome.INTERRUPTED:
                    break
                elif self._hand_to_dead_letter(event):
                    self._acknowledge(event)
                else:
                    logger.error(
                        f"Notification {event.kind.value} for appointment {event.appointment_id} "
                        f"undeliverable after {self.attempts_for(event)} attempts; kept in queue"
                    )
                    break
        finally:
            self._drain_lock.release()

        if delivered:
            logger.info(f"Drained {delivered} notification(s), {len(self)} remaining")
        return delivered

    def _deliver(self, event: NotificationEvent, handler: MailHandler, stop: threading.Event) -> _Outcome:
        for attempt in range(self.config.max_attempts):
            with self._cond:
                self._attempts[event.key] = self._attempts.get(event.key, 0) + 1
            try:
                if handler(event):
                    return _Outcome.DELIVERED
                logger.warning(f"Mail handler refused {event.kind.value} for {event.appointment_id}")
            except Exception:
                logger.exception(f"Mail handler failed on {event.kind.value} for {event.appointment_id}")

            if attempt + 1 < self.config.max_attempts:
                delay = self.config.backoff(attempt)
                if stop.wait(delay):
                    return _Outcome.INTERRUPTED
        return _Outcome.EXHAUSTED

    def _hand_to_dead_letter(self, event: NotificationEvent) -> bool:
        if self.dead_letter is None:
            return False
        try:
            return bool(self.dead_letter(event))
        except Exception:
            logger.exception(f"Dead-letter handler failed on {event.appointment_id}")
            return False

    def _acknowledge(self, event: NotificationEvent) -> None:
        with self._cond:
            # Producers only append, so the acknowledged event is still at the head
            if self._queue and self._queue[0] is event:
                self._queue.popleft()
            else:
                self._queue.remove(event)
            self._keys.discard(event.key)
            self._attempts.pop(event.key, None)

    # --- Background Activity ---

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, handler: MailHandler) -> None:
        """Run drain cycles on a daemon thread until stop() is called."""
        if self.is_running:
            raise RuntimeError("Dispatcher already running")
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, args=(handler,), name="notification-dispatcher", daemon=True
        )
        self._thread.start()
        logger.info("Notification dispatcher started")

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop dequeuing. Unacknowledged events stay queued for the next run."""
        self._stop.set()
        with self._cond:
            self._cond.notify_all()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Notification dispatcher did not stop within timeout")
            else:
                self._thread = None
        logger.info(f"Notification dispatcher stopped with {len(self)} event(s) pending")

    def _run(self, handler: MailHandler) -> None:
        while not self._stop.is_set():
            self.drain(handler, self._stop)
            with self._cond:
                if not self._stop.is_set():
                    self._cond.wait(timeout=self.config.poll_interval_seconds)
