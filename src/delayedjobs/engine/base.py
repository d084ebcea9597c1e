"""Shared machinery for the simple and auction lifecycle engines.

Ordering discipline for every mutating operation:
    1. Evaluate every check. The first failure raises; nothing has changed.
    2. Mutate the registry and the escrow ledger.
    3. Dispatch the call (execution paths only).
    4. Settle payouts through the payout rail.
Any failure in steps 2-4 restores the registry record and the ledger to
their pre-operation state before the error propagates. A failed
execution is therefore fully retryable.

The engines do not emit audit events or persist anything; the service
layer does that once an operation has committed.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterator, Optional, Sequence

from delayedjobs.access import AccessControl
from delayedjobs.clock import Clock
from delayedjobs.dispatch.dispatcher import CallDispatcher
from delayedjobs.errors import DispatchFailed, EscrowError, InvalidParameter, TransferFailed
from delayedjobs.escrow.ledger import EscrowLedger
from delayedjobs.escrow.payout_rail import Payout, PayoutRail
from delayedjobs.models.job import AuctionJob, JobRecord
from delayedjobs.registry.job_registry import JobRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionOutcome:
    """A committed execution: the cleared record, call output and payouts."""
    record: JobRecord
    output: bytes
    payouts: list[Payout] = field(default_factory=list)


@dataclass(frozen=True)
class BidOutcome:
    """A committed bid and the refund paid to the outbid bidder, if any."""
    record: AuctionJob
    refund: Optional[Payout] = None


@dataclass(frozen=True)
class CancelOutcome:
    """A committed cancellation and its refunds."""
    record: AuctionJob
    payouts: list[Payout] = field(default_factory=list)


class JobEngine:
    """Base class holding the collaborators both lifecycles share."""

    def __init__(
        self,
        access: AccessControl,
        registry: JobRegistry,
        ledger: EscrowLedger,
        dispatcher: CallDispatcher,
        rail: PayoutRail,
        clock: Clock,
    ) -> None:
        self._access = access
        self._registry = registry
        self._ledger = ledger
        self._dispatcher = dispatcher
        self._rail = rail
        self._clock = clock

    def _now(self) -> datetime:
        return self._clock.now()

    def _delay_ends(self, record: JobRecord) -> datetime:
        """First instant at which the delay has fully elapsed."""
        return record.submitted_at + timedelta(seconds=self._access.delay)

    @staticmethod
    def _call_parts(signature: str, payload: bytes, operation: str) -> tuple[str, bytes]:
        if not isinstance(signature, str):
            raise InvalidParameter(
                f"DelayedJobs::{operation}: Signature must be a string, got {signature!r}."
            )
        if not isinstance(payload, (bytes, bytearray, memoryview)):
            raise InvalidParameter(
                f"DelayedJobs::{operation}: Payload must be bytes, got {type(payload).__name__}."
            )
        return signature, bytes(payload)

    @contextmanager
    def _rollback_on_failure(
        self,
        saved_record: JobRecord,
        saved_ledger: Dict[str, int],
        operation: str,
    ) -> Iterator[None]:
        """Restore the record and ledger if the wrapped block raises."""
        try:
            yield
        except Exception as e:
            self._registry.restore(saved_record)
            self._ledger.restore(saved_ledger)
            logger.warning(
                "%s rolled back for %s: %s", operation, saved_record.fingerprint, e
            )
            raise

    def _dispatch(self, target: str, value: int, data: bytes, operation: str) -> bytes:
        try:
            result = self._dispatcher.dispatch(target, value, data)
        except Exception as e:
            raise DispatchFailed(
                f"DelayedJobs::{operation}: Transaction execution reverted.",
                cause=str(e),
            ) from e
        if not result.success:
            raise DispatchFailed(
                f"DelayedJobs::{operation}: Transaction execution reverted.",
                cause=result.error,
            )
        return result.output

    def _disburse(self, fingerprint: str, payouts: Sequence[Payout], operation: str) -> None:
        """Draw payouts from one fingerprint's escrow and settle them."""
        for payout in payouts:
            self._ledger.withdraw(fingerprint, payout.amount)
        try:
            settled = self._rail.settle(list(payouts))
        except Exception as e:
            raise TransferFailed(
                f"DelayedJobs::{operation}: Transfer failed: {e}"
            ) from e
        if not settled:
            raise TransferFailed(f"DelayedJobs::{operation}: Transfer failed.")

    def _require_drained(self, fingerprint: str, operation: str) -> None:
        """A cleared fingerprint must hold nothing once its payouts are drawn."""
        remaining = self._ledger.held(fingerprint)
        if remaining:
            raise EscrowError(
                f"DelayedJobs::{operation}: {remaining} left in escrow for cleared "
                f"job {fingerprint}."
            )
