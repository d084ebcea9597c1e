"""State store — JSON snapshot of the persisted state surface.

Only four things are durable: the Submitter, the Executor, the current
delay and the open job records. Escrow balances are not stored; they
are rebuilt from the records on load (EscrowLedger.rebuild_from).

Writes go to a temporary file and are renamed into place, so a crash
mid-write never leaves a truncated snapshot.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional

from eth_utils import decode_hex, encode_hex

from delayedjobs.models.job import AuctionJob, CallDescriptor, JobRecord, SimpleJob

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


@dataclass
class PersistedState:
    submitter: str
    executor: str
    delay: int
    jobs: list[JobRecord] = field(default_factory=list)


def record_to_dict(record: JobRecord) -> dict[str, Any]:
    data: dict[str, Any] = {
        "kind": record.kind.value,
        "fingerprint": record.fingerprint,
        "target": record.descriptor.target,
        "value": str(record.descriptor.value),
        "signature": record.descriptor.signature,
        "payload": encode_hex(record.descriptor.payload),
        "submitted_at": record.submitted_at.isoformat(),
    }
    if isinstance(record, AuctionJob):
        data["timeout"] = record.timeout
        data["best_bid"] = str(record.best_bid)
        data["best_bidder"] = record.best_bidder
    return data


def record_from_dict(data: dict[str, Any]) -> JobRecord:
    descriptor = CallDescriptor(
        target=data["target"],
        value=int(data["value"]),
        signature=data["signature"],
        payload=decode_hex(data["payload"]),
    )
    submitted_at = datetime.fromisoformat(data["submitted_at"])
    if data["kind"] == "auction":
        return AuctionJob(
            fingerprint=data["fingerprint"],
            descriptor=descriptor,
            submitted_at=submitted_at,
            timeout=int(data["timeout"]),
            best_bid=int(data["best_bid"]),
            best_bidder=data.get("best_bidder"),
        )
    if data["kind"] == "simple":
        return SimpleJob(
            fingerprint=data["fingerprint"],
            descriptor=descriptor,
            submitted_at=submitted_at,
        )
    raise ValueError(f"Unknown job kind in state file: {data['kind']!r}")


class StateStore:
    """Durable JSON snapshot of identities, delay and open jobs."""

    def __init__(self, storage_path: Path) -> None:
        self._path = storage_path

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def save(self, submitter: str, executor: str, delay: int, jobs: Iterable[JobRecord]) -> None:
        snapshot = {
            "schema_version": SCHEMA_VERSION,
            "submitter": submitter,
            "executor": executor,
            "delay": delay,
            # Amounts are strings: wei values overflow JSON doubles.
            "jobs": [record_to_dict(r) for r in jobs],
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(snapshot, indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(self._path)
        logger.debug("Saved %d open jobs to %s", len(snapshot["jobs"]), self._path)

    def load(self) -> Optional[PersistedState]:
        if not self._path.exists():
            return None
        data = json.loads(self._path.read_text(encoding="utf-8"))
        version = data.get("schema_version")
        if version != SCHEMA_VERSION:
            raise ValueError(
                f"Unsupported state schema version {version!r} in {self._path}"
            )
        return PersistedState(
            submitter=data["submitter"],
            executor=data["executor"],
            delay=int(data["delay"]),
            jobs=[record_from_dict(j) for j in data["jobs"]],
        )
