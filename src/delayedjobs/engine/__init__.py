"""Lifecycle engines — simple jobs and the reverse auction."""

from delayedjobs.engine.auction import AuctionEngine
from delayedjobs.engine.base import BidOutcome, CancelOutcome, ExecutionOutcome
from delayedjobs.engine.simple_jobs import SimpleJobEngine

__all__ = [
    "AuctionEngine",
    "BidOutcome",
    "CancelOutcome",
    "ExecutionOutcome",
    "SimpleJobEngine",
]
