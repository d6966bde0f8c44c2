"""
Bounded scan driver.

Reads a planned, finite list of splits through one `ReaderFunction` and
concatenates their records in split order. The end of the input is the end of
the last split.

Two ways to consume a scan:

- iterate it: sequential and lazy, one open file at a time;
- `collect()`: splits are read on a thread pool (one reader per split) and
  materialized, then returned in planning order. Splits failing with a
  `ResourceError` are retried with exponential backoff; other failures are
  either raised (strict) or recorded next to the successful splits (tolerant).

Retrying happens here and nowhere in the reader itself.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Literal, Optional, Tuple

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from tablescan.config import get_settings
from tablescan.domain.record import Record
from tablescan.domain.split import FileSplit
from tablescan.errors import ResourceError, TableScanError
from tablescan.reader import ReaderFunction
from tablescan.utils.logging import get_logger

log = get_logger(__name__)

FailurePolicy = Literal["strict", "tolerant"]


@dataclass(frozen=True)
class SplitFailure:
    """A split that could not be read, with the error that stopped it."""

    split: FileSplit
    error: TableScanError
    attempts: int


@dataclass
class ScanResult:
    records: List[Record] = field(default_factory=list)
    splits_read: int = 0
    failures: List[SplitFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class BoundedScan:
    """
    Scan over a fixed list of splits.

    Parameters
    ----------
    reader : ReaderFunction
        Reader configured with the table schema, projection and filters.
    splits : iterable[FileSplit]
        Splits in planning order.
    parallelism : int, optional
        Worker threads used by `collect`; defaults to `TABLESCAN_PARALLELISM`.
    max_attempts : int, optional
        Attempts per split on `ResourceError`; defaults to `TABLESCAN_SPLIT_MAX_ATTEMPTS`.
    failure_policy : {"strict", "tolerant"}
        Whether `collect` raises on the first failed split or records it.
    retry_wait_max : float
        Upper bound in seconds for the backoff between attempts.
    """

    def __init__(
        self,
        reader: ReaderFunction,
        splits: Iterable[FileSplit],
        parallelism: Optional[int] = None,
        max_attempts: Optional[int] = None,
        failure_policy: FailurePolicy = "strict",
        retry_wait_max: float = 10.0,
    ) -> None:
        if failure_policy not in ("strict", "tolerant"):
            raise ValueError(f"Unknown failure policy: {failure_policy!r}")
        settings = get_settings()
        self.reader = reader
        self.splits: Tuple[FileSplit, ...] = tuple(splits)
        self.parallelism = parallelism or settings.scan_parallelism
        self.max_attempts = max_attempts or settings.split_max_attempts
        self.failure_policy = failure_policy
        self.retry_wait_max = retry_wait_max

    def __iter__(self) -> Iterator[Record]:
        for split in self.splits:
            with self.reader.read(split) as split_reader:
                yield from split_reader

    def _read_once(self, split: FileSplit) -> List[Record]:
        with self.reader.read(split) as split_reader:
            return list(split_reader)

    def _read_split(self, index: int, split: FileSplit) -> Tuple[List[Record], int]:
        """Materialize one split, retrying resource failures. Returns (records, attempts)."""
        extra = {"split": index, "path": split.path, "format": str(split.file_format)}
        log.info("Reading split", extra=extra)
        started = time.perf_counter()
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=0.1, min=0.1, max=self.retry_wait_max),
            retry=retry_if_exception_type(ResourceError),
            before_sleep=lambda state: log.warning(
                "Retrying split after resource error",
                extra={**extra, "attempt": state.attempt_number, "error": str(state.outcome.exception())},
            ),
            reraise=True,
        )
        attempts = 0
        for attempt in retrying:
            with attempt:
                attempts = attempt.retry_state.attempt_number
                records = self._read_once(split)
        log.info(
            "Split read",
            extra={**extra, "rows": len(records), "attempt": attempts, "seconds": round(time.perf_counter() - started, 4)},
        )
        return records, attempts

    def _run(self, index: int, split: FileSplit):
        try:
            records, _ = self._read_split(index, split)
            return records, None
        except TableScanError as exc:
            attempts = self.max_attempts if isinstance(exc, ResourceError) else 1
            log.warning(
                "Split failed",
                extra={"split": index, "path": split.path, "error": type(exc).__name__, "attempt": attempts},
            )
            return None, SplitFailure(split=split, error=exc, attempts=attempts)

    def collect(self) -> ScanResult:
        """
        Read every split and return the records in split order.

        Raises
        ------
        TableScanError
            With the "strict" policy, the error of the first failed split (in split order).
        """
        result = ScanResult()
        if not self.splits:
            return result
        workers = min(self.parallelism, len(self.splits))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="tablescan") as executor:
            futures = [executor.submit(self._run, index, split) for index, split in enumerate(self.splits)]
            for future in futures:
                records, failure = future.result()
                if failure is not None:
                    if self.failure_policy == "strict":
                        for pending in futures:
                            pending.cancel()
                        raise failure.error
                    result.failures.append(failure)
                    continue
                result.records.extend(records)
                result.splits_read += 1
        log.info(
            "Scan finished",
            extra={"splits": len(self.splits), "splits_read": result.splits_read, "rows": len(result.records)},
        )
        return result

    def __repr__(self) -> str:
        return f"BoundedScan(splits={len(self.splits)}, parallelism={self.parallelism}, policy={self.failure_policy})"


__all__ = ["BoundedScan", "ScanResult", "SplitFailure", "FailurePolicy"]
