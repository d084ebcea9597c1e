"""Job records — the values held in the job registry.

A record is a tagged variant: SimpleJob for the direct Submitter→Executor
path, AuctionJob for the reverse auction. A fingerprint is "submitted"
exactly while the registry holds a record for it. Clearing a record
removes it outright; nothing residual is kept under the fingerprint.

Amounts are integers in the smallest unit (wei). Identities are
checksummed 20-byte addresses.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Union

from eth_utils import encode_hex
from web3 import Web3

from delayedjobs.errors import InvalidParameter


class JobKind(str, enum.Enum):
    """Which lifecycle a record belongs to."""
    SIMPLE = "simple"
    AUCTION = "auction"


UINT256_MAX = 2**256 - 1


def _prefixed(operation: Optional[str], reason: str) -> str:
    return f"DelayedJobs::{operation}: {reason}" if operation else reason


def to_identity(value: Any, label: str = "identity", operation: Optional[str] = None) -> str:
    """Validate an address and return its checksum form."""
    if not isinstance(value, str) or not Web3.is_address(value):
        raise InvalidParameter(_prefixed(operation, f"Invalid {label}: {value!r}."))
    return Web3.to_checksum_address(value)


def require_amount(value: Any, label: str = "amount", operation: Optional[str] = None) -> int:
    """Validate an integer amount that fits in a uint256."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameter(
            _prefixed(operation, f"{label} must be an integer, got {value!r}.")
        )
    if value < 0:
        raise InvalidParameter(
            _prefixed(operation, f"{label} must not be negative, got {value}.")
        )
    if value > UINT256_MAX:
        raise InvalidParameter(
            _prefixed(operation, f"{label} must fit in uint256, got {value}.")
        )
    return value


@dataclass(frozen=True)
class CallDescriptor:
    """The call a job commits to: target, committed value, signature, payload.

    For auction jobs `value` is the ceiling reward.
    """
    target: str
    value: int
    signature: str
    payload: bytes

    def to_event_payload(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "value": self.value,
            "signature": self.signature,
            "payload": encode_hex(self.payload),
        }


@dataclass
class SimpleJob:
    """An open simple job. Holds exactly the committed value in escrow."""
    fingerprint: str
    descriptor: CallDescriptor
    submitted_at: datetime

    @property
    def kind(self) -> JobKind:
        return JobKind.SIMPLE

    @property
    def held_value(self) -> int:
        return self.descriptor.value


@dataclass
class AuctionJob:
    """An open auction job.

    Holds the ceiling reward plus the collateral of the live bidder, if any.
    best_bid starts at the ceiling and only ever decreases.
    """
    fingerprint: str
    descriptor: CallDescriptor
    submitted_at: datetime
    timeout: int
    best_bid: int
    best_bidder: Optional[str] = None

    @property
    def kind(self) -> JobKind:
        return JobKind.AUCTION

    @property
    def ceiling(self) -> int:
        return self.descriptor.value

    @property
    def collateral(self) -> int:
        """Collateral deposited by the live bidder (0 when nobody has bid)."""
        if self.best_bidder is None:
            return 0
        return self.ceiling - self.best_bid

    @property
    def held_value(self) -> int:
        return self.ceiling + self.collateral


JobRecord = Union[SimpleJob, AuctionJob]
