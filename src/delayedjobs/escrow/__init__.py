"""Escrow subsystem — per-fingerprint ledger and payout rails."""

from delayedjobs.escrow.ledger import EscrowLedger
from delayedjobs.escrow.payout_rail import BalanceBook, Payout, PayoutRail

__all__ = [
    "BalanceBook",
    "EscrowLedger",
    "Payout",
    "PayoutRail",
]
