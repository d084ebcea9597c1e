"""Tests for the web3 dispatcher against a stubbed Web3 instance."""

from types import SimpleNamespace

import pytest
from web3 import Web3

from delayedjobs.dispatch.dispatcher import CallDispatcher
from delayedjobs.dispatch.web3_dispatcher import Web3Dispatcher

PRIVATE_KEY = "0x" + "4c" * 32
TARGET = Web3.to_checksum_address("0x" + "55" * 20)


class _StubEth:
    def __init__(self, status: int = 1, revert: bool = False) -> None:
        self.status = status
        self.revert = revert
        self.sent: list[bytes] = []
        self.gas_price = 10**9

    def call(self, tx: dict) -> bytes:
        if self.revert:
            raise RuntimeError("execution reverted")
        return b"\x00\x2a"

    def get_transaction_count(self, address: str) -> int:
        return 7

    def send_raw_transaction(self, raw: bytes) -> bytes:
        self.sent.append(raw)
        return b"\xab" * 32

    def wait_for_transaction_receipt(self, tx_hash: bytes, timeout: int) -> dict:
        return {"status": self.status, "blockNumber": 123}


def _dispatcher(eth: _StubEth) -> Web3Dispatcher:
    return Web3Dispatcher(None, PRIVATE_KEY, w3=SimpleNamespace(eth=eth))


class TestWeb3Dispatcher:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(_dispatcher(_StubEth()), CallDispatcher)

    def test_successful_call_returns_simulated_output(self) -> None:
        eth = _StubEth()
        result = _dispatcher(eth).dispatch(TARGET, 0, b"\x01\x02\x03\x04")
        assert result.success
        assert result.output == b"\x00\x2a"
        assert len(eth.sent) == 1

    def test_simulation_revert_sends_nothing(self) -> None:
        eth = _StubEth(revert=True)
        result = _dispatcher(eth).dispatch(TARGET, 0, b"")
        assert not result.success
        assert "reverted" in result.error
        assert eth.sent == []

    def test_failed_receipt(self) -> None:
        result = _dispatcher(_StubEth(status=0)).dispatch(TARGET, 0, b"")
        assert not result.success

    def test_rpc_url_required_without_instance(self) -> None:
        with pytest.raises(ValueError, match="rpc_url"):
            Web3Dispatcher(None, PRIVATE_KEY)
