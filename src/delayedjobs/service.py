"""Delayed-jobs service — unified facade over the job lifecycle.

This is the primary interface for programmatic access. It wires:
- Access & delay configuration (identities, bounded delay)
- Job registry and per-fingerprint escrow ledger
- Simple-job and auction lifecycle engines
- Call dispatcher and payout rail (external collaborators)
- Event log (notifications) and state store (persistence)

Every mutating operation runs under one lock and completes atomically.
Failures raise a DelayedJobsError subclass and leave no trace: no state
change, no event. A committed operation appends exactly one event and
then persists the state snapshot. If persistence fails at that point
the operation is not rolled back (funds have already moved); the
service is flagged as persistence-degraded instead.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from delayedjobs import __version__
from delayedjobs.access import AccessControl
from delayedjobs.clock import Clock, MonotonicGuard, SystemClock
from delayedjobs.config import DelayBounds
from delayedjobs.dispatch.dispatcher import CallDispatcher, RecordingDispatcher
from delayedjobs.engine.auction import AuctionEngine
from delayedjobs.engine.base import ExecutionOutcome
from delayedjobs.engine.simple_jobs import SimpleJobEngine
from delayedjobs.escrow.ledger import EscrowLedger
from delayedjobs.escrow.payout_rail import BalanceBook, Payout, PayoutRail
from delayedjobs.models.job import AuctionJob, JobKind, JobRecord, SimpleJob
from delayedjobs.persistence.event_log import EventKind, EventLog, EventRecord
from delayedjobs.persistence.state_store import StateStore
from delayedjobs.registry.job_registry import JobRegistry

logger = logging.getLogger(__name__)


def _payouts_payload(payouts: list[Payout]) -> list[dict[str, Any]]:
    return [
        {"recipient": p.recipient, "amount": p.amount, "reason": p.reason}
        for p in payouts
    ]


class DelayedJobsService:
    """Facade for delayed jobs.

    Usage:
        service = DelayedJobsService(submitter, executor, delay=86400)

        # Simple path
        job = service.submit_job(submitter, target, "ping()", b"", value=10**18)
        # ... delay elapses ...
        output = service.execute_job(executor, target, 10**18, "ping()", b"")

        # Auction path
        job = service.submit_job_auction(submitter, target, "ping()", b"", 7200, value=C)
        service.place_job_bid(bidder, target, C, bid, "ping()", b"", 7200, value=C - bid)
        # ... delay elapses ...
        output = service.execute_job_bid(bidder, target, C, "ping()", b"", 7200)

    Persistence (optional):
        service = DelayedJobsService.from_state_store(store, event_log=log)
    """

    def __init__(
        self,
        submitter: str,
        executor: str,
        delay: int,
        *,
        bounds: Optional[DelayBounds] = None,
        clock: Optional[Clock] = None,
        dispatcher: Optional[CallDispatcher] = None,
        rail: Optional[PayoutRail] = None,
        event_log: Optional[EventLog] = None,
        state_store: Optional[StateStore] = None,
        jobs: Optional[list[JobRecord]] = None,
    ) -> None:
        self._access = AccessControl(submitter, executor, delay, bounds)
        self._clock = MonotonicGuard(clock or SystemClock())
        self._dispatcher = dispatcher or RecordingDispatcher()
        self._rail = rail or BalanceBook()
        self._event_log = event_log or EventLog()
        self._state_store = state_store

        self._registry = JobRegistry()
        for record in jobs or []:
            self._registry.open(record, "load")
        self._ledger = EscrowLedger.rebuild_from(self._registry)

        engine_args = (
            self._access, self._registry, self._ledger,
            self._dispatcher, self._rail, self._clock,
        )
        self._simple = SimpleJobEngine(*engine_args)
        self._auction = AuctionEngine(*engine_args)

        self._lock = threading.RLock()
        self._event_counter = self._event_log.count
        self._persistence_degraded = False

    @classmethod
    def from_state_store(
        cls,
        state_store: StateStore,
        **kwargs: Any,
    ) -> DelayedJobsService:
        """Rebuild a service from a saved snapshot (escrow is recomputed)."""
        state = state_store.load()
        if state is None:
            raise ValueError(f"No saved state at {state_store.path}")
        return cls(
            state.submitter,
            state.executor,
            state.delay,
            state_store=state_store,
            jobs=state.jobs,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def submitter(self) -> str:
        return self._access.submitter

    @property
    def executor(self) -> str:
        return self._access.executor

    @property
    def delay(self) -> int:
        return self._access.delay

    @property
    def bounds(self) -> DelayBounds:
        return self._access.bounds

    @property
    def event_log(self) -> EventLog:
        return self._event_log

    def update_delay(self, caller: str, new_delay: int) -> int:
        with self._lock:
            delay = self._access.update_delay(caller, new_delay)
            self._commit(EventKind.DELAY_UPDATED, self.submitter, {"new_delay": delay})
            logger.info("Delay updated to %ds", delay)
            return delay

    # ------------------------------------------------------------------
    # Simple jobs
    # ------------------------------------------------------------------

    def submit_job(
        self,
        caller: str,
        target: str,
        signature: str,
        payload: bytes,
        value: int,
    ) -> SimpleJob:
        with self._lock:
            record = self._simple.submit(caller, target, signature, payload, value)
            self._commit(EventKind.JOB_SUBMITTED, self.submitter, self._job_payload(record))
            logger.info("Simple job %s submitted (value=%d)", record.fingerprint, value)
            return record

    def resubmit_job(
        self,
        caller: str,
        target: str,
        value: int,
        signature: str,
        payload: bytes,
    ) -> SimpleJob:
        with self._lock:
            record = self._simple.resubmit(caller, target, value, signature, payload)
            self._commit(
                EventKind.JOB_RESUBMITTED,
                self.submitter,
                {
                    "fingerprint": record.fingerprint,
                    "submitted_at": record.submitted_at.isoformat(),
                },
            )
            logger.info("Simple job %s resubmitted", record.fingerprint)
            return record

    def execute_job(
        self,
        caller: str,
        target: str,
        reward: int,
        signature: str,
        payload: bytes,
    ) -> bytes:
        with self._lock:
            outcome = self._simple.execute(caller, target, reward, signature, payload)
            self._commit_execution(outcome)
            return outcome.output

    # ------------------------------------------------------------------
    # Auction jobs
    # ------------------------------------------------------------------

    def submit_job_auction(
        self,
        caller: str,
        target: str,
        signature: str,
        payload: bytes,
        timeout: int,
        value: int,
    ) -> AuctionJob:
        with self._lock:
            record = self._auction.submit(caller, target, signature, payload, timeout, value)
            self._commit(EventKind.JOB_SUBMITTED, self.submitter, self._job_payload(record))
            logger.info(
                "Auction job %s submitted (ceiling=%d, timeout=%ds)",
                record.fingerprint, value, timeout,
            )
            return record

    def place_job_bid(
        self,
        caller: str,
        target: str,
        ceiling: int,
        bid: int,
        signature: str,
        payload: bytes,
        timeout: int,
        value: int,
    ) -> AuctionJob:
        with self._lock:
            outcome = self._auction.place_bid(
                caller, target, ceiling, bid, signature, payload, timeout, value
            )
            record = outcome.record
            self._commit(
                EventKind.BID_PLACED,
                record.best_bidder or "",
                {
                    "fingerprint": record.fingerprint,
                    "bid": record.best_bid,
                    "bidder": record.best_bidder,
                    "collateral": record.collateral,
                    "refund": _payouts_payload([outcome.refund]) if outcome.refund else [],
                },
            )
            logger.info(
                "Bid %d placed on %s by %s", record.best_bid, record.fingerprint, record.best_bidder
            )
            return record

    def execute_job_bid(
        self,
        caller: str,
        target: str,
        ceiling: int,
        signature: str,
        payload: bytes,
        timeout: int,
    ) -> bytes:
        with self._lock:
            outcome = self._auction.execute(caller, target, ceiling, signature, payload, timeout)
            self._commit_execution(outcome)
            return outcome.output

    def cancel_job_auction(
        self,
        caller: str,
        target: str,
        ceiling: int,
        signature: str,
        payload: bytes,
        timeout: int,
    ) -> list[Payout]:
        with self._lock:
            outcome = self._auction.cancel(caller, target, ceiling, signature, payload, timeout)
            payload_data = self._job_payload(outcome.record)
            payload_data["payouts"] = _payouts_payload(outcome.payouts)
            self._commit(EventKind.JOB_CANCELLED, self.submitter, payload_data)
            logger.info("Auction job %s cancelled", outcome.record.fingerprint)
            return outcome.payouts

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_job(self, fingerprint: str) -> Optional[JobRecord]:
        return self._registry.get(fingerprint)

    def is_submitted(self, fingerprint: str) -> bool:
        return self._registry.is_submitted(fingerprint)

    def open_jobs(self, kind: Optional[JobKind] = None) -> list[JobRecord]:
        return [r for r in self._registry if kind is None or r.kind == kind]

    def escrow_held(self, fingerprint: str) -> int:
        return self._ledger.held(fingerprint)

    @property
    def escrow_total(self) -> int:
        return self._ledger.total_held

    def check_escrow_invariants(self) -> list[str]:
        """Reconcile the ledger with the open records. Empty = consistent."""
        with self._lock:
            return self._ledger.reconcile(self._registry)

    def status(self) -> dict[str, Any]:
        """Return a summary of configuration, open jobs and escrow."""
        with self._lock:
            jobs = list(self._registry)
            return {
                "version": __version__,
                "submitter": self.submitter,
                "executor": self.executor,
                "delay": self.delay,
                "delay_bounds": {
                    "min": self.bounds.min_delay,
                    "max": self.bounds.max_delay,
                },
                "jobs": {
                    "open": len(jobs),
                    "simple": sum(1 for r in jobs if r.kind == JobKind.SIMPLE),
                    "auction": sum(1 for r in jobs if r.kind == JobKind.AUCTION),
                },
                "escrow_total": self.escrow_total,
                "escrow_errors": self._ledger.reconcile(jobs),
                "events": self._event_log.count,
                "persistence_degraded": self._persistence_degraded,
            }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _job_payload(record: JobRecord) -> dict[str, Any]:
        data: dict[str, Any] = {
            "fingerprint": record.fingerprint,
            "kind": record.kind.value,
            **record.descriptor.to_event_payload(),
        }
        if isinstance(record, AuctionJob):
            data["timeout"] = record.timeout
        return data

    def _commit_execution(self, outcome: ExecutionOutcome) -> None:
        record = outcome.record
        payload_data = self._job_payload(record)
        payload_data["payouts"] = _payouts_payload(outcome.payouts)
        actor = outcome.payouts[0].recipient if outcome.payouts else ""
        self._commit(EventKind.JOB_EXECUTED, actor, payload_data)
        logger.info("Job %s executed by %s", record.fingerprint, actor)

    def _next_event_id(self) -> str:
        """Generate a monotonically increasing unique event ID."""
        self._event_counter += 1
        return f"EVT-{self._event_counter:08d}"

    def _commit(self, kind: EventKind, actor_id: str, payload: dict[str, Any]) -> None:
        """Emit the event for a committed operation, then persist.

        Runs after the operation can no longer be undone, so I/O failures
        degrade persistence rather than raising.
        """
        event = EventRecord.create(
            event_id=self._next_event_id(),
            event_kind=kind,
            actor_id=actor_id,
            payload=payload,
            timestamp_utc=self._clock.now(),
        )
        try:
            self._event_log.append(event)
        except OSError as e:
            self._persistence_degraded = True
            logger.error("Event log write failed for %s: %s", event.event_id, e)

        if self._state_store is None:
            return
        try:
            self._state_store.save(self.submitter, self.executor, self.delay, self._registry)
        except OSError as e:
            self._persistence_degraded = True
            logger.error(
                "Persistence degraded: %s (state committed in event log, snapshot stale)", e
            )
