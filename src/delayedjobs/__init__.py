"""Delayed jobs — escrowed, time-locked call execution with a reverse auction.

A Submitter escrows value for a pre-declared call. After a mandatory
delay, either the fixed Executor performs the call and collects the
reward, or (auction variant) the lowest bidder does.
"""

__version__ = "0.1.0"

from delayedjobs.errors import (
    BidRejected,
    ClockError,
    DelayedJobsError,
    DispatchFailed,
    EscrowError,
    InvalidParameter,
    JobAlreadySubmitted,
    NotFound,
    TransferFailed,
    Unauthorized,
    WindowViolation,
)
from delayedjobs.service import DelayedJobsService

__all__ = [
    "__version__",
    "BidRejected",
    "ClockError",
    "DelayedJobsError",
    "DelayedJobsService",
    "DispatchFailed",
    "EscrowError",
    "InvalidParameter",
    "JobAlreadySubmitted",
    "NotFound",
    "TransferFailed",
    "Unauthorized",
    "WindowViolation",
]
