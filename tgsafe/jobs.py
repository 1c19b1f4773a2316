"""Background delivery on named in-process queues."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

Deliver = Callable[..., Any]
_Job = Tuple[str, Dict[str, Any]]


class DeliveryQueue:
    """One worker thread draining messages in FIFO order.

    ``deliver`` is called as ``deliver(message, **options)``; anything it
    raises is logged and the worker moves on to the next message.
    """

    def __init__(self, name: str, deliver: Deliver, *, poll_interval: float = 0.1) -> None:
        self.name = name
        self._deliver = deliver
        self._poll_interval = poll_interval
        self._queue: "queue.Queue[_Job]" = queue.Queue()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._worker,
                name=f"tgsafe-delivery-{self.name}",
                daemon=True,
            )
            self._thread.start()

    def enqueue(self, message: str, **options: Any) -> None:
        self.start()
        self._queue.put((message, options))
        logger.debug("Queued message on %s (pending=%s)", self.name, self._queue.qsize())

    def join(self) -> None:
        """Block until every queued message has been processed."""

        self._queue.join()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        self._thread = None

    def _worker(self) -> None:
        while not self._stop_event.is_set():
            try:
                message, options = self._queue.get(timeout=self._poll_interval)
            except queue.Empty:
                continue
            try:
                self._deliver(message, **options)
            except Exception:
                logger.exception("Queued delivery failed on %s", self.name)
            finally:
                self._queue.task_done()


_queues: Dict[str, DeliveryQueue] = {}
_registry_lock = threading.Lock()


def get_queue(name: str, deliver: Deliver) -> DeliveryQueue:
    """Return the queue called ``name``, creating it around ``deliver``."""

    with _registry_lock:
        dq = _queues.get(name)
        if dq is None:
            dq = DeliveryQueue(name, deliver)
            _queues[name] = dq
        return dq


def shutdown(timeout: Optional[float] = None) -> None:
    """Stop every worker and forget the registered queues."""

    with _registry_lock:
        queues = list(_queues.values())
        _queues.clear()
    for dq in queues:
        dq.stop(timeout)


def shutdown_when_drained(timeout: Optional[float] = None) -> None:
    """Wait for every queue to empty, then stop the workers."""

    with _registry_lock:
        queues = list(_queues.values())
    for dq in queues:
        dq.join()
    shutdown(timeout)


__all__ = ["DeliveryQueue", "get_queue", "shutdown", "shutdown_when_drained"]
