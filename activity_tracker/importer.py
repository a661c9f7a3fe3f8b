"""
Legacy Importer Module

One-shot loader of legacy flat files (see `activity_tracker.legacy`) into the
primary store. Records go straight to the store, not through the write queue.

Usage:
    activity-import ./database
    python -m activity_tracker.importer ./database
"""
import argparse
import logging
import re
import sys
from dataclasses import dataclass
from pathlib import Path

from activity_tracker import config, legacy
from activity_tracker.database import PrimaryStore
from activity_tracker.errors import InitializationError, ValidationError

logger = logging.getLogger(__name__)

LINE_SPLIT = re.compile(r"[\r\n]+")


@dataclass
class ImportResult:
    processed_count: int = 0
    error_count: int = 0

    def __add__(self, other: "ImportResult") -> "ImportResult":
        return ImportResult(
            self.processed_count + other.processed_count,
            self.error_count + other.error_count,
        )


class LegacyImporter:
    """Parses legacy files and saves every valid line to the store."""

    def __init__(self, store: PrimaryStore):
        self.store = store

    def import_file(self, path) -> ImportResult:
        """
        Import one legacy file.

        An unreadable file or an unsupported version counts as a single error
        and no line is processed. Otherwise each bad line counts one error and
        the rest of the file is still imported.
        """
        path = Path(path)
        logger.info(f"Processing file: {path.name}")
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Cannot read {path.name}: {e}")
            return ImportResult(error_count=1)

        lines = LINE_SPLIT.split(content)
        version = lines[0].strip()
        if not version and len(lines) == 1:
            logger.info(f"Empty file: {path.name}")
            return ImportResult()
        if version not in legacy.SUPPORTED_VERSIONS:
            logger.error(f"Unsupported version in {path.name}: {version}")
            return ImportResult(error_count=1)

        result = ImportResult()
        for number, raw in enumerate(lines[1:], start=2):
            line = raw.strip()
            if not line:
                continue
            try:
                record = legacy.parse_line(line, version)
            except ValidationError as e:
                logger.error(f"Error processing line {number} of {path.name}: {e}")
                result.error_count += 1
                continue
            try:
                self.store.save(record)
            except Exception as e:
                # Drivers may raise unwrapped errors; any failed save is one line error
                logger.error(f"Error saving line {number} of {path.name}: {e}")
                result.error_count += 1
                continue
            result.processed_count += 1

        logger.info(
            f"File {path.name}: {result.processed_count} records processed, "
            f"{result.error_count} errors"
        )
        return result

    def import_directory(self, directory, pattern: str = "*.db") -> ImportResult:
        """
        Import every matching file of a directory, each independently.

        Raises:
            NotADirectoryError: if `directory` is not an existing directory
        """
        directory = Path(directory)
        if not directory.is_dir():
            raise NotADirectoryError(f"Database folder not found: {directory}")

        files = sorted(p for p in directory.glob(pattern) if p.is_file())
        if not files:
            logger.info(f"No {pattern} files found in {directory}")
            return ImportResult()

        logger.info(f"Found {len(files)} files to import")
        total = ImportResult()
        for path in files:
            total += self.import_file(path)
        return total


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Import legacy activity files into the primary database."
    )
    parser.add_argument("folder", help="Folder holding the legacy .db files")
    parser.add_argument(
        "--pattern", default="*.db", help="Glob for files to import (default: *.db)"
    )
    parser.add_argument(
        "--database-url", default=config.DATABASE_URL, help="SQLAlchemy database URL"
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    folder = Path(args.folder)
    if not folder.is_dir():
        logger.error(f"Database folder not found: {folder}")
        return 1

    store = PrimaryStore(args.database_url)
    try:
        store.initialize()
        total = LegacyImporter(store).import_directory(folder, args.pattern)
        logger.info(
            f"Import finished: {total.processed_count} records processed, "
            f"{total.error_count} errors"
        )
    except InitializationError as e:
        logger.error(f"Import aborted: {e}")
        return 1
    finally:
        store.disconnect()
    return 0


if __name__ == "__main__":
    sys.exit(main())
