"""Payout rail — moves escrowed value out to identities.

The lifecycle engines never move value directly. They hand a batch of
payouts to a rail, which must settle all of them or none. A rail that
returns False (or raises) causes the whole operation to roll back.

BalanceBook is the in-memory rail: it credits identities and keeps a
settlement history. It is what the CLI and the tests use.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Protocol, Sequence, runtime_checkable


@dataclass(frozen=True)
class Payout:
    """A single transfer of escrowed value."""
    recipient: str
    amount: int
    reason: str


@runtime_checkable
class PayoutRail(Protocol):
    """Contract every payout rail satisfies."""

    def settle(self, payouts: Sequence[Payout]) -> bool:
        """Transfer every payout, atomically. Returns True on success."""
        ...


class BalanceBook:
    """In-memory payout rail crediting identity balances.

    Set `fail_settlements` to make every settlement fail (for rollback
    testing).
    """

    def __init__(self) -> None:
        self._balances: Dict[str, int] = {}
        self._history: List[Payout] = []
        self.fail_settlements = False

    def settle(self, payouts: Sequence[Payout]) -> bool:
        if self.fail_settlements:
            return False
        for payout in payouts:
            self._balances[payout.recipient] = (
                self._balances.get(payout.recipient, 0) + payout.amount
            )
            self._history.append(payout)
        return True

    def balance_of(self, identity: str) -> int:
        return self._balances.get(identity, 0)

    @property
    def history(self) -> list[Payout]:
        return list(self._history)

    @property
    def total_paid(self) -> int:
        return sum(p.amount for p in self._history)
