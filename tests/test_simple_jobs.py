"""Tests for the simple-job lifecycle — submit, delay, execute exactly once."""

from datetime import datetime, timezone

import pytest
from web3 import Web3

from delayedjobs.clock import ManualClock
from delayedjobs.dispatch.dispatcher import DispatchResult, RecordingDispatcher
from delayedjobs.errors import (
    DispatchFailed,
    InvalidParameter,
    JobAlreadySubmitted,
    NotFound,
    TransferFailed,
    Unauthorized,
    WindowViolation,
)
from delayedjobs.escrow.payout_rail import BalanceBook
from delayedjobs.registry.fingerprint import build_call_data, fingerprint_simple
from delayedjobs.service import DelayedJobsService

SUBMITTER = Web3.to_checksum_address("0x" + "11" * 20)
EXECUTOR = Web3.to_checksum_address("0x" + "22" * 20)
OUTSIDER = Web3.to_checksum_address("0x" + "33" * 20)
TARGET = Web3.to_checksum_address("0x" + "55" * 20)
DELAY = 3600
REWARD = 10**18


def _now() -> datetime:
    return datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(_now())


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def rail() -> BalanceBook:
    return BalanceBook()


@pytest.fixture
def service(
    clock: ManualClock, dispatcher: RecordingDispatcher, rail: BalanceBook
) -> DelayedJobsService:
    return DelayedJobsService(
        SUBMITTER, EXECUTOR, DELAY, clock=clock, dispatcher=dispatcher, rail=rail
    )


def _submit(service: DelayedJobsService, payload: bytes = b"\x01\x02") -> str:
    return service.submit_job(SUBMITTER, TARGET, "ping(bytes)", payload, REWARD).fingerprint


def _execute(service: DelayedJobsService, reward: int = REWARD) -> bytes:
    return service.execute_job(EXECUTOR, TARGET, reward, "ping(bytes)", b"\x01\x02")


class TestSubmit:
    def test_submit_opens_job_and_escrows_value(self, service: DelayedJobsService) -> None:
        fingerprint = _submit(service)
        assert fingerprint == fingerprint_simple(TARGET, REWARD, "ping(bytes)", b"\x01\x02")
        assert service.is_submitted(fingerprint)
        assert service.escrow_held(fingerprint) == REWARD

    def test_only_submitter(self, service: DelayedJobsService) -> None:
        with pytest.raises(Unauthorized):
            service.submit_job(EXECUTOR, TARGET, "ping()", b"", REWARD)
        assert service.open_jobs() == []

    def test_zero_reward_rejected(self, service: DelayedJobsService) -> None:
        with pytest.raises(InvalidParameter, match="positive"):
            service.submit_job(SUBMITTER, TARGET, "ping()", b"", 0)

    def test_duplicate_rejected_without_double_escrow(self, service: DelayedJobsService) -> None:
        fingerprint = _submit(service)
        with pytest.raises(JobAlreadySubmitted):
            _submit(service)
        assert service.escrow_held(fingerprint) == REWARD

    def test_invalid_target_rejected(self, service: DelayedJobsService) -> None:
        with pytest.raises(InvalidParameter):
            service.submit_job(SUBMITTER, "0xnope", "ping()", b"", REWARD)


class TestExecute:
    def test_too_early_then_on_time(
        self,
        service: DelayedJobsService,
        clock: ManualClock,
        dispatcher: RecordingDispatcher,
        rail: BalanceBook,
    ) -> None:
        fingerprint = _submit(service)
        clock.advance(DELAY - 1)
        with pytest.raises(WindowViolation, match="not surpassed"):
            _execute(service)

        clock.advance(1)
        dispatcher.queue(DispatchResult.ok(b"\xca\xfe"))
        assert _execute(service) == b"\xca\xfe"

        call = dispatcher.calls[0]
        assert call.target == TARGET
        assert call.value == 0
        assert call.data == build_call_data("ping(bytes)", b"\x01\x02")
        assert rail.balance_of(EXECUTOR) == REWARD
        assert not service.is_submitted(fingerprint)
        assert service.escrow_total == 0

    def test_executes_exactly_once(self, service: DelayedJobsService, clock: ManualClock) -> None:
        _submit(service)
        clock.advance(DELAY)
        _execute(service)
        with pytest.raises(NotFound, match="has not been submitted"):
            _execute(service)

    def test_reward_mismatch_finds_nothing(
        self, service: DelayedJobsService, clock: ManualClock
    ) -> None:
        _submit(service)
        clock.advance(DELAY)
        with pytest.raises(NotFound):
            _execute(service, reward=REWARD + 1)

    def test_only_executor(self, service: DelayedJobsService, clock: ManualClock) -> None:
        _submit(service)
        clock.advance(DELAY)
        for caller in (SUBMITTER, OUTSIDER):
            with pytest.raises(Unauthorized, match="executor"):
                service.execute_job(caller, TARGET, REWARD, "ping(bytes)", b"\x01\x02")

    def test_window_uses_current_delay(
        self, service: DelayedJobsService, clock: ManualClock
    ) -> None:
        _submit(service)
        service.update_delay(SUBMITTER, 7200)
        clock.advance(DELAY)
        with pytest.raises(WindowViolation):
            _execute(service)
        clock.advance(DELAY)
        _execute(service)


class TestRollback:
    def test_dispatch_failure_leaves_job_retryable(
        self,
        service: DelayedJobsService,
        clock: ManualClock,
        dispatcher: RecordingDispatcher,
        rail: BalanceBook,
    ) -> None:
        fingerprint = _submit(service)
        clock.advance(DELAY)
        dispatcher.queue(DispatchResult.failed("out of gas"))
        with pytest.raises(DispatchFailed, match="reverted") as exc_info:
            _execute(service)
        assert exc_info.value.cause == "out of gas"
        assert service.is_submitted(fingerprint)
        assert service.escrow_held(fingerprint) == REWARD
        assert rail.total_paid == 0

        _execute(service)
        assert rail.balance_of(EXECUTOR) == REWARD

    def test_dispatcher_exception_is_dispatch_failure(
        self, service: DelayedJobsService, clock: ManualClock, dispatcher: RecordingDispatcher
    ) -> None:
        def explode(target: str, value: int, data: bytes) -> DispatchResult:
            raise ConnectionError("rpc down")

        dispatcher.dispatch = explode  # type: ignore[method-assign]
        fingerprint = _submit(service)
        clock.advance(DELAY)
        with pytest.raises(DispatchFailed):
            _execute(service)
        assert service.is_submitted(fingerprint)

    def test_transfer_failure_restores_escrow(
        self, service: DelayedJobsService, clock: ManualClock, rail: BalanceBook
    ) -> None:
        fingerprint = _submit(service)
        clock.advance(DELAY)
        rail.fail_settlements = True
        with pytest.raises(TransferFailed):
            _execute(service)
        assert service.is_submitted(fingerprint)
        assert service.escrow_held(fingerprint) == REWARD
        assert service.check_escrow_invariants() == []


class TestResubmit:
    def test_resubmit_restarts_delay(
        self, service: DelayedJobsService, clock: ManualClock
    ) -> None:
        fingerprint = _submit(service)
        clock.advance(3000)
        record = service.resubmit_job(SUBMITTER, TARGET, REWARD, "ping(bytes)", b"\x01\x02")
        assert record.submitted_at == clock.now()
        assert service.escrow_held(fingerprint) == REWARD

        clock.advance(1000)
        with pytest.raises(WindowViolation):
            _execute(service)
        clock.advance(DELAY - 1000)
        _execute(service)

    def test_resubmit_unknown_job(self, service: DelayedJobsService) -> None:
        with pytest.raises(NotFound):
            service.resubmit_job(SUBMITTER, TARGET, REWARD, "ping()", b"")

    def test_resubmit_only_submitter(self, service: DelayedJobsService) -> None:
        _submit(service)
        with pytest.raises(Unauthorized):
            service.resubmit_job(EXECUTOR, TARGET, REWARD, "ping(bytes)", b"\x01\x02")


class TestResubmitAfterClear:
    def test_executed_job_can_be_submitted_fresh(
        self, service: DelayedJobsService, clock: ManualClock, rail: BalanceBook
    ) -> None:
        first = _submit(service)
        clock.advance(DELAY)
        _execute(service)

        fresh = service.submit_job(SUBMITTER, TARGET, "ping(bytes)", b"\x01\x02", REWARD)
        assert fresh.fingerprint == first
        assert fresh.submitted_at == clock.now()
        assert service.escrow_held(first) == REWARD

        with pytest.raises(WindowViolation):
            _execute(service)
        clock.advance(DELAY)
        _execute(service)
        assert rail.balance_of(EXECUTOR) == 2 * REWARD


class TestAmountLimits:
    def test_reward_beyond_uint256_rejected(self, service: DelayedJobsService) -> None:
        with pytest.raises(InvalidParameter, match="DelayedJobs::submitJob: value must fit"):
            service.submit_job(SUBMITTER, TARGET, "ping()", b"", 2**256)
        assert service.open_jobs() == []

    def test_largest_uint256_accepted(self, service: DelayedJobsService) -> None:
        record = service.submit_job(SUBMITTER, TARGET, "ping()", b"", 2**256 - 1)
        assert service.escrow_held(record.fingerprint) == 2**256 - 1

    def test_execute_with_oversized_reward(
        self, service: DelayedJobsService, clock: ManualClock
    ) -> None:
        _submit(service)
        clock.advance(DELAY)
        with pytest.raises(InvalidParameter, match="DelayedJobs::executeJob"):
            _execute(service, reward=2**256)

    def test_bad_target_names_operation(self, service: DelayedJobsService) -> None:
        with pytest.raises(InvalidParameter, match="DelayedJobs::submitJob: Invalid target"):
            service.submit_job(SUBMITTER, "0xnope", "ping()", b"", REWARD)
