"""
Write Queue Module

Serializes writes into a store on a single worker thread.

Producers call `add` and get a `Future` back immediately. The worker commits
one record at a time in FIFO order; a failed commit is retried (with capped
exponential backoff) until it succeeds, so nothing is dropped while the
queue is running. A write whose future is cancelled before the worker
reaches it is skipped.
"""
import logging
import queue
import threading
from concurrent.futures import Future, InvalidStateError
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from activity_tracker import config

logger = logging.getLogger(__name__)

_STOP = object()


@dataclass
class PendingWrite:
    record: Mapping[str, Any]
    description: str
    future: Future = field(default_factory=Future)


class WriteQueue:
    """
    Single-consumer write queue with unbounded retry.

    Usage:
        write_queue = WriteQueue(store.save)
        write_queue.start()
        future = write_queue.add(record, "edit (main.py) 5s")
        ...
        leftovers = write_queue.stop(timeout=10)
    """

    def __init__(
        self,
        commit: Callable[[Mapping[str, Any]], Any],
        backoff_base: float = config.RETRY_BACKOFF_BASE_SECONDS,
        backoff_cap: float = config.RETRY_BACKOFF_CAP_SECONDS,
        depth_warning: int = config.QUEUE_DEPTH_WARNING,
    ):
        """
        Args:
            commit: Callable that durably stores one record or raises
            backoff_base: Delay before the first retry, in seconds
            backoff_cap: Upper bound for the retry delay, in seconds
            depth_warning: Log a warning each time the backlog reaches a
                multiple of this size (0 disables it)
        """
        self._commit = commit
        self._backoff_base = backoff_base
        self._backoff_cap = backoff_cap
        self._depth_warning = depth_warning

        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._thread = None
        self._lock = threading.Lock()
        self._closed = False
        self._abandon = threading.Event()
        self._undelivered: List[PendingWrite] = []
        self._in_flight: Optional[PendingWrite] = None
        self._stopped = False

        self._depth = 0
        self._stats = {"committed": 0, "failed_attempts": 0}

    @property
    def depth(self) -> int:
        """Writes accepted but not yet committed, including the one in flight."""
        with self._lock:
            return self._depth

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """Start the worker thread."""
        with self._lock:
            if self._closed:
                raise RuntimeError("Cannot start a stopped WriteQueue")
            if self._thread is not None:
                return
            self._thread = threading.Thread(
                target=self._run, name="write-queue", daemon=True
            )
            self._thread.start()
        logger.info("Write queue started")

    def add(self, record: Mapping[str, Any], description: str) -> Future:
        """
        Enqueue a record for writing.

        Args:
            record: Record handed to the commit callable as is
            description: Short text used in logs in place of the record

        Returns:
            Future resolved with the commit result once the record is stored

        Raises:
            RuntimeError: if the queue has been stopped
        """
        item = PendingWrite(record, description)
        with self._lock:
            if self._closed:
                raise RuntimeError("Cannot add to a stopped WriteQueue")
            self._queue.put(item)
            self._depth += 1
            depth = self._depth
        if self._depth_warning and depth % self._depth_warning == 0:
            logger.warning(f"Write queue backlog reached {depth} pending writes")
        return item.future

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            stats = dict(self._stats)
            stats["depth"] = self._depth
        stats["running"] = self.is_running
        return stats

    def stop(self, timeout: float = None) -> List[Mapping[str, Any]]:
        """
        Stop accepting writes and drain the backlog.

        Waits up to `timeout` seconds (forever when None) for every pending
        write to commit. Whatever is still pending after that is abandoned:
        its future is cancelled and the record is returned to the caller.
        If a commit is still blocked after another `timeout`, its record is
        returned as well and the worker thread is left behind.

        Returns:
            Undelivered records in the order they were added
        """
        with self._lock:
            if self._closed:
                return []
            self._closed = True
            self._queue.put(_STOP)

        stuck = None
        thread = self._thread
        if thread is None:
            self._abandon.set()
        else:
            thread.join(timeout)
            if thread.is_alive():
                logger.warning(
                    f"Write queue not drained after {timeout}s, "
                    f"abandoning {self.depth} pending writes"
                )
                self._abandon.set()
                thread.join(timeout)
            if thread.is_alive():
                with self._lock:
                    stuck = self._in_flight
                logger.error(
                    f"Write queue worker blocked in a commit after {timeout}s, leaving it"
                )

        leftovers = list(self._undelivered)
        if stuck is not None and all(item is not stuck for item in leftovers):
            leftovers.insert(0, stuck)
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            if item is not _STOP:
                leftovers.append(item)

        for item in leftovers:
            item.future.cancel()
        with self._lock:
            self._stopped = True
            self._depth = 0
            committed = self._stats["committed"]

        logger.info(
            f"Write queue stopped: {committed} committed, {len(leftovers)} undelivered"
        )
        return [item.record for item in leftovers]

    def _run(self):
        while not self._abandon.is_set():
            item = self._queue.get()
            if item is _STOP:
                break
            if item.future.cancelled():
                with self._lock:
                    self._depth -= 1
                logger.debug(f"Skipping cancelled write: {item.description}")
                continue

            with self._lock:
                self._in_flight = item
            delivered = not self._abandon.is_set() and self._deliver(item)
            with self._lock:
                self._in_flight = None
            if not delivered:
                self._undelivered.append(item)
                break

    def _deliver(self, item: PendingWrite) -> bool:
        """Commit one item, retrying until success. False if abandoned meanwhile."""
        attempt = 0
        while True:
            try:
                result = self._commit(item.record)
            except Exception as e:
                attempt += 1
                with self._lock:
                    self._stats["failed_attempts"] += 1
                logger.error(
                    f"Storage failed: {e} => {item.description} (attempt {attempt})"
                )
                if self._abandon.wait(self._backoff_delay(attempt)):
                    return False
                continue

            with self._lock:
                if not self._stopped:
                    self._depth -= 1
                self._stats["committed"] += 1
            try:
                item.future.set_result(result)
                logger.debug(f"Storage success: {item.description}")
            except InvalidStateError:
                # Cancelled by the caller while the commit was in flight
                logger.debug(f"Storage success after cancel: {item.description}")
            return True

    def _backoff_delay(self, attempt: int) -> float:
        # Exponent bounded so long outages cannot overflow the float
        return min(self._backoff_cap, self._backoff_base * 2 ** min(attempt - 1, 32))
