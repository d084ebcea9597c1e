"""Simple-job lifecycle — direct Submitter → Executor authorization.

    submit_job ──(delay elapses)──▶ execute_job
         │
         └── resubmit_job (explicit timestamp refresh)

The committed value is the Executor's reward. The call itself is
dispatched with zero value, and the reward is paid from the job's own
escrow only after the call succeeds. execute_job recomputes the
fingerprint with the caller-supplied reward, so a reward that differs
from the committed value simply finds no job.
"""

from __future__ import annotations

from delayedjobs.engine.base import ExecutionOutcome, JobEngine
from delayedjobs.errors import InvalidParameter, WindowViolation
from delayedjobs.escrow.payout_rail import Payout
from delayedjobs.models.job import CallDescriptor, SimpleJob, require_amount, to_identity
from delayedjobs.registry.fingerprint import build_call_data, fingerprint_simple


class SimpleJobEngine(JobEngine):
    """Submit and execute simple jobs."""

    def submit(
        self,
        caller: str,
        target: str,
        signature: str,
        payload: bytes,
        value: int,
    ) -> SimpleJob:
        operation = "submitJob"
        self._access.require_submitter(caller, operation)
        target = to_identity(target, "target", operation)
        signature, payload = self._call_parts(signature, payload, operation)
        value = require_amount(value, "value", operation)
        if value == 0:
            raise InvalidParameter(f"DelayedJobs::{operation}: Reward must be positive.")

        fingerprint = fingerprint_simple(target, value, signature, payload)
        record = SimpleJob(
            fingerprint=fingerprint,
            descriptor=CallDescriptor(target, value, signature, payload),
            submitted_at=self._now(),
        )
        self._registry.open(record, operation)
        self._ledger.deposit(fingerprint, value)
        return record

    def resubmit(
        self,
        caller: str,
        target: str,
        value: int,
        signature: str,
        payload: bytes,
    ) -> SimpleJob:
        """Restart the delay of an open job. No value is attached."""
        operation = "resubmitJob"
        self._access.require_submitter(caller, operation)
        target = to_identity(target, "target", operation)
        signature, payload = self._call_parts(signature, payload, operation)
        value = require_amount(value, "value", operation)

        fingerprint = fingerprint_simple(target, value, signature, payload)
        record = self._registry.require(fingerprint, SimpleJob, operation)
        record.submitted_at = self._now()
        return record

    def execute(
        self,
        caller: str,
        target: str,
        reward: int,
        signature: str,
        payload: bytes,
    ) -> ExecutionOutcome:
        operation = "executeJob"
        executor = self._access.require_executor(caller, operation)
        target = to_identity(target, "target", operation)
        signature, payload = self._call_parts(signature, payload, operation)
        reward = require_amount(reward, "reward", operation)

        fingerprint = fingerprint_simple(target, reward, signature, payload)
        record = self._registry.require(fingerprint, SimpleJob, operation)
        if self._now() < self._delay_ends(record):
            raise WindowViolation(
                f"DelayedJobs::{operation}: Transaction has not surpassed delay time."
            )

        saved_ledger = self._ledger.snapshot()
        payouts = [Payout(executor, record.descriptor.value, "executor_reward")]
        with self._rollback_on_failure(record, saved_ledger, operation):
            self._registry.clear(fingerprint)
            output = self._dispatch(
                target, 0, build_call_data(signature, payload), operation
            )
            self._disburse(fingerprint, payouts, operation)
            self._require_drained(fingerprint, operation)
        return ExecutionOutcome(record=record, output=output, payouts=payouts)
