"""Core data models for delayed jobs."""

from delayedjobs.models.job import (
    AuctionJob,
    CallDescriptor,
    JobKind,
    JobRecord,
    SimpleJob,
    require_amount,
    to_identity,
)

__all__ = [
    "AuctionJob",
    "CallDescriptor",
    "JobKind",
    "JobRecord",
    "SimpleJob",
    "require_amount",
    "to_identity",
]
