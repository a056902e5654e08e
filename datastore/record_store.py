from __future__ import annotations

import csv
import io
import logging
import os
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import BinaryIO, Iterable, Optional

from models.records import CSV_HEADER, Record
from settings import get_settings

logger = logging.getLogger(__name__)


class StoreInitializationError(RuntimeError):
    """The store file could not be created or its header written."""


def _encode_row(values: Iterable[str]) -> str:
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="\n").writerow(values)
    return buffer.getvalue()


def _write_all(handle: BinaryIO, data: bytes) -> None:
    view = memoryview(data)
    while view:
        written = handle.write(view)
        view = view[written:]


class CsvRecordStore:
    """Append-only CSV file shared by every session in the process.

    A single lock covers both header creation and every ``encode -> write ->
    flush -> fsync`` sequence, so rows from concurrent sessions never
    interleave and the header is written once, before any data row.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = Lock()

    def ensure_initialized(self) -> None:
        """Create the file with its header row if it does not exist yet."""
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                created = self._create_with_header()
                if not created and not self.path.is_file():
                    raise StoreInitializationError(
                        f"Record store path {self.path} is not a regular file."
                    )
            except OSError as exc:
                raise StoreInitializationError(
                    f"Failed to initialize record store at {self.path}: {exc}"
                ) from exc
        if created:
            logger.info("Initialized record store", extra={"store_path": str(self.path)})
        else:
            logger.info("Using existing record store", extra={"store_path": str(self.path)})

    def _create_with_header(self) -> bool:
        # "x" keeps the header single even if another process races us
        try:
            handle = self.path.open("x", encoding="utf-8", newline="")
        except FileExistsError:
            return False
        with handle:
            handle.write(_encode_row(CSV_HEADER))
            handle.flush()
            os.fsync(handle.fileno())
        return True

    def append(self, record: Record) -> bool:
        """Durably append one record; return ``False`` on any I/O failure.

        A failed write is cut back to the previous end of file, so a partial
        row never prefixes the next append.
        """
        with self._lock:
            try:
                row = _encode_row(record.to_row()).encode("utf-8")
                # unbuffered, so truncate() never flushes a stale fragment
                with self.path.open("ab", buffering=0) as handle:
                    offset = handle.tell()
                    try:
                        _write_all(handle, row)
                        os.fsync(handle.fileno())
                    except OSError:
                        handle.truncate(offset)
                        os.fsync(handle.fileno())
                        raise
            except OSError as exc:
                logger.error(
                    "Failed to append record",
                    extra={
                        "store_path": str(self.path),
                        "user_id": record.user_id,
                        "reason": str(exc),
                    },
                )
                return False
        logger.info(
            "Record appended",
            extra={"store_path": str(self.path), "user_id": record.user_id},
        )
        return True


def build_default_store(path: Optional[str] = None) -> CsvRecordStore:
    """Return the process-wide store for ``path`` (defaults to settings).

    Spellings of the same file share one instance and therefore one lock.
    """
    store_path = get_settings().store_path if path is None else path
    return _store_for_path(Path(store_path).resolve())


@lru_cache
def _store_for_path(path: Path) -> CsvRecordStore:
    return CsvRecordStore(path=path)
