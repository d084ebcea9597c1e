"""Escrow ledger — value held on behalf of open jobs, keyed by fingerprint.

Each fingerprint holds its own balance: the committed value of the job
plus, for auctions, the live bidder's collateral. A payout is always
drawn from one specific fingerprint and can never exceed what that
fingerprint holds, so one job's funds never cover another's shortfall.

The ledger holds no state of its own beyond what the open records imply;
it can be rebuilt from the registry at any time (see rebuild_from).
"""

from __future__ import annotations

from typing import Dict, Iterable

from delayedjobs.errors import EscrowError
from delayedjobs.models.job import JobRecord


class EscrowLedger:
    """Per-fingerprint escrow balances.

    Usage:
        ledger = EscrowLedger()
        ledger.deposit(fingerprint, 10**18)
        ledger.withdraw(fingerprint, 10**18)
    """

    def __init__(self) -> None:
        self._held: Dict[str, int] = {}

    def deposit(self, fingerprint: str, amount: int) -> None:
        if amount < 0:
            raise EscrowError(f"Cannot deposit negative amount: {amount}")
        if amount == 0:
            return
        self._held[fingerprint] = self._held.get(fingerprint, 0) + amount

    def withdraw(self, fingerprint: str, amount: int) -> None:
        """Release value from one fingerprint's holding."""
        held = self._held.get(fingerprint, 0)
        if amount < 0:
            raise EscrowError(f"Cannot withdraw negative amount: {amount}")
        if amount > held:
            raise EscrowError(
                f"Payout of {amount} exceeds escrow held by {fingerprint} ({held})"
            )
        remaining = held - amount
        if remaining:
            self._held[fingerprint] = remaining
        else:
            self._held.pop(fingerprint, None)

    def held(self, fingerprint: str) -> int:
        return self._held.get(fingerprint, 0)

    @property
    def total_held(self) -> int:
        return sum(self._held.values())

    def snapshot(self) -> Dict[str, int]:
        return dict(self._held)

    def restore(self, snapshot: Dict[str, int]) -> None:
        self._held = dict(snapshot)

    def reconcile(self, records: Iterable[JobRecord]) -> list[str]:
        """Check every holding against the open records. Empty = consistent."""
        errors: list[str] = []
        expected: Dict[str, int] = {r.fingerprint: r.held_value for r in records}
        for fingerprint, amount in expected.items():
            held = self._held.get(fingerprint, 0)
            if held != amount:
                errors.append(
                    f"Escrow mismatch for {fingerprint}: held {held}, expected {amount}"
                )
        for fingerprint, held in self._held.items():
            if fingerprint not in expected:
                errors.append(
                    f"Escrow held for cleared fingerprint {fingerprint}: {held}"
                )
        return errors

    @classmethod
    def rebuild_from(cls, records: Iterable[JobRecord]) -> EscrowLedger:
        """Reconstruct balances from open records (used on state load)."""
        ledger = cls()
        for record in records:
            ledger.deposit(record.fingerprint, record.held_value)
        return ledger
