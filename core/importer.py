"""Import boundary: normalize decoded spreadsheet rows and commit them.

Normalization is pure and never raises; the failures below are raised only
here, where the session is checked and rows are written.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Iterable, Optional, Sequence, Union

from core.auth import SessionGate
from core.data import MetricRow, RawRecord, normalize_records
from core.settings import CHUNK_SIZE
from core.store import MetricsStore, StorageError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class ImportFailure(Exception):
    default_message = "Import failed."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class EmptyInput(ImportFailure):
    default_message = "The Excel file is empty."


class NoRecognizedRows(ImportFailure):
    default_message = (
        "No importable rows found. Check that the column headers include "
        "ID, Product Name and the Day 1/2/3 Qty/Price fields."
    )


class NotAuthenticated(ImportFailure):
    default_message = "Please sign in before importing."


class BatchWriteFailure(ImportFailure):
    def __init__(self, offset: int, error: str, inserted: int = 0) -> None:
        self.offset = offset
        self.error = error
        self.inserted = inserted
        super().__init__(f"Batch starting at row {offset} failed: {error}")


@dataclass(frozen=True)
class ImportOutcome:
    inserted: int
    total: int
    skipped: int = 0

    @property
    def message(self) -> str:
        msg = f"Import succeeded: inserted {self.inserted} rows. Open the dashboard to view the Day 1-3 charts."
        if self.skipped:
            msg += f" Skipped {self.skipped} record(s) without ID or product name."
        return msg


def insert_in_chunks(
    store: MetricsStore,
    rows: Sequence[MetricRow],
    chunk_size: int = CHUNK_SIZE,
    on_progress: Optional[ProgressCallback] = None,
) -> int:
    """Write `rows` in sequential chunks; stop at the first failing chunk.

    Chunks already written stay committed. The failure reports the 1-indexed
    row offset where the failing chunk starts.
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")

    total = len(rows)
    inserted = 0
    for start in range(0, total, chunk_size):
        batch = list(rows[start : start + chunk_size])
        try:
            store.insert(batch)
        except StorageError as exc:
            logger.error("Chunk starting at row %d failed after %d/%d rows: %s", start + 1, inserted, total, exc)
            raise BatchWriteFailure(start + 1, str(exc), inserted=inserted) from exc
        inserted += len(batch)
        logger.info("Inserted %d/%d rows", inserted, total)
        if on_progress is not None:
            on_progress(inserted, total)
    return inserted


def run_import(
    records: Iterable[RawRecord],
    store: MetricsStore,
    gate: SessionGate,
    now: Union[date, datetime],
    *,
    chunk_size: int = CHUNK_SIZE,
    on_progress: Optional[ProgressCallback] = None,
) -> ImportOutcome:
    records = list(records)
    if not records:
        raise EmptyInput()

    result = normalize_records(records, now)
    if result.empty:
        raise NoRecognizedRows()

    if gate.current_user() is None:
        raise NotAuthenticated()

    logger.info("Importing %d rows from %d records (%d skipped)", len(result.rows), len(records), result.skipped)
    inserted = insert_in_chunks(store, result.rows, chunk_size=chunk_size, on_progress=on_progress)
    return ImportOutcome(inserted=inserted, total=len(result.rows), skipped=result.skipped)
