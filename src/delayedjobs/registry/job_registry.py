"""Job registry — keyed store from fingerprint to open job record.

The registry is written only by the lifecycle engines: submit opens a
record, bids mutate auction records, execute and cancel clear them.
A missing key means "not submitted".
"""

from __future__ import annotations

from typing import Dict, Iterator, Optional, Type, TypeVar

from delayedjobs.errors import JobAlreadySubmitted, NotFound
from delayedjobs.models.job import AuctionJob, JobRecord, SimpleJob

_R = TypeVar("_R", SimpleJob, AuctionJob)


class JobRegistry:
    """In-memory registry of open jobs.

    Usage:
        registry = JobRegistry()
        registry.open(record)
        record = registry.require(fingerprint, SimpleJob, "executeJob")
        registry.clear(fingerprint)
    """

    def __init__(self) -> None:
        self._records: Dict[str, JobRecord] = {}

    def open(self, record: JobRecord, operation: str = "submitJob") -> None:
        """Create a record. Fails if the fingerprint is already open."""
        if record.fingerprint in self._records:
            raise JobAlreadySubmitted(
                f"DelayedJobs::{operation}: Job {record.fingerprint} is already submitted."
            )
        self._records[record.fingerprint] = record

    def get(self, fingerprint: str) -> Optional[JobRecord]:
        return self._records.get(fingerprint)

    def require(self, fingerprint: str, kind: Type[_R], operation: str) -> _R:
        """Return the open record of the given kind or raise NotFound."""
        record = self._records.get(fingerprint)
        if not isinstance(record, kind):
            raise NotFound(
                f"DelayedJobs::{operation}: Transaction has not been submitted."
            )
        return record

    def is_submitted(self, fingerprint: str) -> bool:
        return fingerprint in self._records

    def clear(self, fingerprint: str) -> JobRecord:
        """Remove and return an open record."""
        record = self._records.pop(fingerprint, None)
        if record is None:
            raise NotFound(f"Unknown fingerprint: {fingerprint}")
        return record

    def restore(self, record: JobRecord) -> None:
        """Put back a record cleared earlier in the same operation."""
        self._records[record.fingerprint] = record

    def __iter__(self) -> Iterator[JobRecord]:
        return iter(list(self._records.values()))

    def __len__(self) -> int:
        return len(self._records)
