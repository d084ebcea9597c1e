"""Auction lifecycle — a reverse auction for the right to execute.

    submit_job_auction
         │  (before delay ends)
         ├── place_job_bid*      lower bid wins, outbid collateral refunded
         │  [delay, delay + timeout)
         ├── execute_job_bid     best bidder only
         │  at/after delay + timeout
         └── cancel_job_auction  submitter only

Money flow for ceiling C and winning bid b:
    submit:   Submitter escrows C.
    bid:      bidder escrows collateral C - b.
    execute:  winner receives C, Submitter receives C - b.
    cancel:   Submitter receives C, live bidder receives C - b.
Every exit drains exactly what the fingerprint holds (C + collateral).
"""

from __future__ import annotations

import dataclasses
from datetime import timedelta

from delayedjobs.engine.base import BidOutcome, CancelOutcome, ExecutionOutcome, JobEngine
from delayedjobs.errors import BidRejected, InvalidParameter, Unauthorized, WindowViolation
from delayedjobs.escrow.payout_rail import Payout
from delayedjobs.models.job import AuctionJob, CallDescriptor, require_amount, to_identity
from delayedjobs.registry.fingerprint import build_call_data, fingerprint_auction


class AuctionEngine(JobEngine):
    """Submit, bid on, execute and cancel auction jobs."""

    def submit(
        self,
        caller: str,
        target: str,
        signature: str,
        payload: bytes,
        timeout: int,
        value: int,
    ) -> AuctionJob:
        operation = "submitJobAuction"
        self._access.require_submitter(caller, operation)
        target = to_identity(target, "target", operation)
        signature, payload = self._call_parts(signature, payload, operation)
        ceiling = require_amount(value, "value", operation)
        if ceiling == 0:
            raise InvalidParameter(f"DelayedJobs::{operation}: Reward must be positive.")
        timeout = require_amount(timeout, "timeout", operation)
        if timeout <= self._access.bounds.min_delay:
            raise InvalidParameter(
                f"DelayedJobs::{operation}: Timeout must be greater than "
                f"{self._access.bounds.min_delay}s."
            )
        submitted_at = self._now()
        # The cancel deadline must stay representable under any allowed delay.
        try:
            submitted_at + timedelta(seconds=self._access.bounds.max_delay + timeout)
        except OverflowError as e:
            raise InvalidParameter(
                f"DelayedJobs::{operation}: Timeout too large: {timeout}s."
            ) from e

        fingerprint = fingerprint_auction(target, ceiling, signature, payload, timeout)
        record = AuctionJob(
            fingerprint=fingerprint,
            descriptor=CallDescriptor(target, ceiling, signature, payload),
            submitted_at=submitted_at,
            timeout=timeout,
            best_bid=ceiling,
        )
        self._registry.open(record, operation)
        self._ledger.deposit(fingerprint, ceiling)
        return record

    def place_bid(
        self,
        caller: str,
        target: str,
        ceiling: int,
        bid: int,
        signature: str,
        payload: bytes,
        timeout: int,
        value: int,
    ) -> BidOutcome:
        operation = "placeJobBid"
        bidder = self._access.require_not_submitter(caller, operation)
        record = self._find(target, ceiling, signature, payload, timeout, operation)

        if self._now() >= self._delay_ends(record):
            raise WindowViolation(
                f"DelayedJobs::{operation}: Transaction cannot surpass delay time."
            )
        if isinstance(bid, bool) or not isinstance(bid, int):
            raise InvalidParameter(
                f"DelayedJobs::{operation}: Bid must be an integer, got {bid!r}."
            )
        if bid < 0 or bid >= record.best_bid:
            raise BidRejected(
                f"DelayedJobs::{operation}: Bid must be positive and smaller than best bid."
            )
        collateral = require_amount(value, "value", operation)
        if collateral != record.ceiling - bid:
            raise InvalidParameter(
                f"DelayedJobs::{operation}: Collateral must equal ceiling minus bid "
                f"({record.ceiling - bid}), got {collateral}."
            )

        updated = dataclasses.replace(record, best_bid=bid, best_bidder=bidder)
        saved_ledger = self._ledger.snapshot()
        refund = None
        if record.best_bidder is not None:
            refund = Payout(record.best_bidder, record.collateral, "bid_collateral_refund")
        with self._rollback_on_failure(record, saved_ledger, operation):
            self._ledger.deposit(record.fingerprint, collateral)
            self._registry.restore(updated)
            if refund is not None:
                self._disburse(record.fingerprint, [refund], operation)
        return BidOutcome(record=updated, refund=refund)

    def execute(
        self,
        caller: str,
        target: str,
        ceiling: int,
        signature: str,
        payload: bytes,
        timeout: int,
    ) -> ExecutionOutcome:
        operation = "executeJobBid"
        winner = self._access.require_not_submitter(caller, operation)
        record = self._find(target, ceiling, signature, payload, timeout, operation)
        if record.best_bidder != winner:
            raise Unauthorized(f"DelayedJobs::{operation}: Call must come from best bidder.")

        now = self._now()
        delay_ends = self._delay_ends(record)
        if now >= delay_ends + timedelta(seconds=record.timeout):
            raise WindowViolation(
                f"DelayedJobs::{operation}: Transaction has surpassed delay+timeout time."
            )
        if now < delay_ends:
            raise WindowViolation(
                f"DelayedJobs::{operation}: Transaction has not surpassed delay time."
            )

        saved_ledger = self._ledger.snapshot()
        payouts = [Payout(winner, record.ceiling, "winning_bid")]
        savings = record.ceiling - record.best_bid
        if savings:
            payouts.append(Payout(self._access.submitter, savings, "submitter_savings"))
        with self._rollback_on_failure(record, saved_ledger, operation):
            self._registry.clear(record.fingerprint)
            output = self._dispatch(
                record.descriptor.target,
                0,
                build_call_data(record.descriptor.signature, record.descriptor.payload),
                operation,
            )
            self._disburse(record.fingerprint, payouts, operation)
            self._require_drained(record.fingerprint, operation)
        return ExecutionOutcome(record=record, output=output, payouts=payouts)

    def cancel(
        self,
        caller: str,
        target: str,
        ceiling: int,
        signature: str,
        payload: bytes,
        timeout: int,
    ) -> CancelOutcome:
        operation = "cancelJobAuction"
        submitter = self._access.require_submitter(caller, operation)
        record = self._find(target, ceiling, signature, payload, timeout, operation)
        window_ends = self._delay_ends(record) + timedelta(seconds=record.timeout)
        if self._now() < window_ends:
            raise WindowViolation(
                f"DelayedJobs::{operation}: Cancelling only after delay+timeout."
            )

        saved_ledger = self._ledger.snapshot()
        payouts = [Payout(submitter, record.ceiling, "ceiling_refund")]
        if record.best_bidder is not None:
            payouts.append(
                Payout(record.best_bidder, record.collateral, "bid_collateral_refund")
            )
        with self._rollback_on_failure(record, saved_ledger, operation):
            self._registry.clear(record.fingerprint)
            self._disburse(record.fingerprint, payouts, operation)
            self._require_drained(record.fingerprint, operation)
        return CancelOutcome(record=record, payouts=payouts)

    def _find(
        self,
        target: str,
        ceiling: int,
        signature: str,
        payload: bytes,
        timeout: int,
        operation: str,
    ) -> AuctionJob:
        target = to_identity(target, "target", operation)
        signature, payload = self._call_parts(signature, payload, operation)
        ceiling = require_amount(ceiling, "ceiling", operation)
        timeout = require_amount(timeout, "timeout", operation)
        fingerprint = fingerprint_auction(target, ceiling, signature, payload, timeout)
        return self._registry.require(fingerprint, AuctionJob, operation)
