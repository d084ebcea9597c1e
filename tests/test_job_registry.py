"""Tests for the job registry — one open record per fingerprint."""

from datetime import datetime, timezone

import pytest
from web3 import Web3

from delayedjobs.errors import JobAlreadySubmitted, NotFound
from delayedjobs.models.job import AuctionJob, CallDescriptor, SimpleJob
from delayedjobs.registry.job_registry import JobRegistry

TARGET = Web3.to_checksum_address("0x" + "55" * 20)


def _now() -> datetime:
    return datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _simple(fingerprint: str = "0xaa") -> SimpleJob:
    return SimpleJob(fingerprint, CallDescriptor(TARGET, 1000, "ping()", b""), _now())


def _auction(fingerprint: str = "0xbb") -> AuctionJob:
    return AuctionJob(
        fingerprint, CallDescriptor(TARGET, 1000, "ping()", b""), _now(),
        timeout=7200, best_bid=1000,
    )


class TestJobRegistry:
    def test_open_and_get(self) -> None:
        registry = JobRegistry()
        registry.open(_simple())
        assert registry.is_submitted("0xaa")
        assert registry.get("0xaa") is not None
        assert len(registry) == 1

    def test_duplicate_open_rejected(self) -> None:
        registry = JobRegistry()
        registry.open(_simple())
        with pytest.raises(JobAlreadySubmitted):
            registry.open(_simple())

    def test_require_checks_kind(self) -> None:
        registry = JobRegistry()
        registry.open(_auction())
        assert registry.require("0xbb", AuctionJob, "placeJobBid").timeout == 7200
        with pytest.raises(NotFound, match="has not been submitted"):
            registry.require("0xbb", SimpleJob, "executeJob")

    def test_require_missing(self) -> None:
        with pytest.raises(NotFound):
            JobRegistry().require("0xcc", SimpleJob, "executeJob")

    def test_clear_removes_record(self) -> None:
        registry = JobRegistry()
        registry.open(_simple())
        record = registry.clear("0xaa")
        assert record.fingerprint == "0xaa"
        assert not registry.is_submitted("0xaa")
        assert registry.get("0xaa") is None
        with pytest.raises(NotFound):
            registry.clear("0xaa")

    def test_restore_after_clear(self) -> None:
        registry = JobRegistry()
        record = _simple()
        registry.open(record)
        registry.clear(record.fingerprint)
        registry.restore(record)
        assert registry.is_submitted(record.fingerprint)

    def test_iteration_is_a_snapshot(self) -> None:
        registry = JobRegistry()
        registry.open(_simple())
        registry.open(_auction())
        for record in registry:
            registry.clear(record.fingerprint)
        assert len(registry) == 0
