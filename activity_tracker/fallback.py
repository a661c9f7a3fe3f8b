"""
Local Fallback Store

Append-only file sink used when the primary database is unavailable.
Records are written in the legacy 4.0 line format, one file per UTC day, so
the files can later be loaded into the primary store with the importer.
"""
import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

from activity_tracker import legacy
from activity_tracker.errors import InitializationError

logger = logging.getLogger(__name__)


class LocalFallbackStore:
    """Write-only store backed by day files in a local directory."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self._lock = threading.Lock()

    def initialize(self):
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InitializationError(
                f"Cannot create fallback directory {self.directory}: {e}"
            ) from e
        if not os.access(self.directory, os.W_OK):
            raise InitializationError(
                f"Fallback directory {self.directory} is not writable"
            )
        logger.info(f"Local fallback store initialized at {self.directory}")

    def file_for(self, timestamp_ms: int) -> Path:
        day = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
        return self.directory / f"{day:%Y-%m-%d}.db"

    def save(self, record: Mapping[str, Any]) -> Path:
        """Append one record and return the file it went to."""
        path = self.file_for(record["timestamp"])
        line = legacy.encode_line(record)
        with self._lock:
            is_new = not path.exists() or path.stat().st_size == 0
            with open(path, "a", encoding="utf-8") as f:
                if is_new:
                    f.write(f"{legacy.CURRENT_VERSION}\n")
                f.write(f"{line}\n")
        return path

    def disconnect(self):
        # Nothing held open between writes
        pass
