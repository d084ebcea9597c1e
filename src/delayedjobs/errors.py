"""Error taxonomy for the delayed-jobs core.

Every failure raised by a lifecycle operation is a DelayedJobsError
subclass, so callers can tell the kinds apart without parsing messages.
Messages follow the ``DelayedJobs::<operation>: <reason>`` convention.

All failures are scoped to the single operation that raised them. The
operation leaves no partial state behind and nothing is retried.
"""

from __future__ import annotations

from typing import Optional


class DelayedJobsError(Exception):
    """Base class for all lifecycle failures."""


class Unauthorized(DelayedJobsError):
    """Caller identity failed an equality or inequality check."""


class InvalidParameter(DelayedJobsError):
    """Delay, timeout, reward, identity or collateral amount is invalid."""


class JobAlreadySubmitted(InvalidParameter):
    """The fingerprint already has an open record."""


class NotFound(DelayedJobsError):
    """The fingerprint has no open record."""


class WindowViolation(DelayedJobsError):
    """Current time is outside the interval required by the operation."""


class BidRejected(DelayedJobsError):
    """Proposed bid does not strictly improve on the current best bid."""


class DispatchFailed(DelayedJobsError):
    """The call dispatcher reported failure."""

    def __init__(self, message: str, cause: Optional[str] = None) -> None:
        super().__init__(message)
        self.cause = cause


class TransferFailed(DelayedJobsError):
    """A payout to an identity did not complete."""


class EscrowError(DelayedJobsError):
    """A payout would exceed what a fingerprint holds in escrow."""


class ClockError(DelayedJobsError):
    """The clock moved backwards."""
