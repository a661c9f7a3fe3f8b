"""
Storage Module

Selects the storage backend once at startup and gives the rest of the
application one write/read interface regardless of which backend is active.

A `StorageAdapter` is created by the process entry point and passed to
whatever needs to write or read; there is no module level backend state.
"""
import logging
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Mapping, Optional

from activity_tracker import config
from activity_tracker.database import PrimaryStore
from activity_tracker.errors import InitializationError, StoreUnavailableError
from activity_tracker.fallback import LocalFallbackStore
from activity_tracker.query import ActivityQueryEngine
from activity_tracker.records import build_record, describe
from activity_tracker.write_queue import WriteQueue

logger = logging.getLogger(__name__)


class StorageAdapter:
    """
    Facade over the primary store and the local fallback store.

    Usage:
        storage = StorageAdapter()
        storage.init(config.FALLBACK_DIR)
        storage.write({"kind": "edit", "timestamp": ..., "duration": 5000})
        storage.query_engine.statistics()
        storage.disconnect()
    """

    def __init__(
        self,
        database_url: str = config.DATABASE_URL,
        use_primary: bool = not config.USE_FILE_STORAGE_FALLBACK,
        backoff_base: float = config.RETRY_BACKOFF_BASE_SECONDS,
        backoff_cap: float = config.RETRY_BACKOFF_CAP_SECONDS,
        drain_timeout: Optional[float] = config.SHUTDOWN_DRAIN_TIMEOUT_SECONDS,
    ):
        self.database_url = database_url
        self.use_primary = use_primary
        self.drain_timeout = drain_timeout
        self._backoff_base = backoff_base
        self._backoff_cap = backoff_cap

        self._location: Optional[Path] = None
        self._primary: Optional[PrimaryStore] = None
        self._backend = None
        self._queue: Optional[WriteQueue] = None

    @property
    def is_initialized(self) -> bool:
        return self._backend is not None

    def is_using_primary(self) -> bool:
        return self._backend is not None and self._backend is self._primary

    @property
    def backend_name(self) -> Optional[str]:
        if self._backend is None:
            return None
        return "primary" if self.is_using_primary() else "fallback"

    @property
    def queue_depth(self) -> int:
        return self._queue.depth if self._queue else 0

    def queue_stats(self) -> dict:
        return self._queue.stats() if self._queue else {}

    def init(self, location):
        """
        Pick the backend and start the write queue.

        Args:
            location: Directory for the local fallback store

        Raises:
            InitializationError: if even the fallback store cannot be used
        """
        if self._backend is not None:
            logger.warning("Storage already initialized, ignoring init")
            return

        self._location = Path(location)
        if self.use_primary:
            primary = PrimaryStore(self.database_url)
            try:
                primary.initialize()
            except InitializationError as e:
                logger.error(f"Error initializing primary store, falling back to files: {e}")
            else:
                self._primary = primary
                self._backend = primary
                logger.info("Using primary database storage")

        if self._backend is None:
            fallback = LocalFallbackStore(self._location)
            fallback.initialize()
            self._backend = fallback
            logger.info("Using local file storage")

        self._queue = WriteQueue(
            self._backend.save,
            backoff_base=self._backoff_base,
            backoff_cap=self._backoff_cap,
        )
        self._queue.start()

    def write(self, data: Mapping[str, Any]) -> Optional[Future]:
        """
        Queue a record for the active backend.

        Returns:
            Future resolved once the record is stored, or None when storage
            was never initialized

        Raises:
            ValidationError: if the record is malformed
        """
        if self._queue is None:
            logger.error("Storage was not initialized")
            return None
        record = build_record(data)
        return self._queue.add(record, describe(record))

    @property
    def query_engine(self) -> ActivityQueryEngine:
        """Read access; only the primary store can answer queries."""
        if not self.is_using_primary():
            raise StoreUnavailableError("Queries need the primary database storage")
        return ActivityQueryEngine(self._primary.engine)

    def disconnect(self):
        """Drain pending writes and release the active backend."""
        if self._backend is None:
            return
        try:
            leftovers = self._queue.stop(self.drain_timeout)
            if leftovers:
                self._spill(leftovers)
        finally:
            self._backend.disconnect()
            self._backend = None
            self._primary = None
            self._queue = None
            logger.info("Storage disconnected")

    def _spill(self, records):
        """Keep undelivered records on local disk so they can be imported later."""
        sink = LocalFallbackStore(self._location)
        saved = 0
        try:
            sink.initialize()
            for record in records:
                sink.save(record)
                saved += 1
        except (InitializationError, OSError) as e:
            logger.error(
                f"Lost {len(records) - saved} undelivered writes on shutdown: {e}"
            )
        else:
            logger.warning(
                f"Saved {saved} undelivered writes to {self._location} for later import"
            )
