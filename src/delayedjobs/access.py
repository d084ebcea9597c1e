"""Access & delay configuration — the two fixed identities and the delay.

Submitter and Executor are fixed at construction and must differ. The
delay is mutable, but only by the Submitter, and every write (including
the initial one) is checked against the configured bounds.
"""

from __future__ import annotations

from typing import Optional

from delayedjobs.config import DelayBounds
from delayedjobs.errors import InvalidParameter, Unauthorized
from delayedjobs.models.job import to_identity


class AccessControl:
    """Identity checks and the current delay.

    Usage:
        access = AccessControl(submitter, executor, delay=86400)
        access.require_submitter(caller, "submitJob")
        access.update_delay(submitter, 7200)
    """

    def __init__(
        self,
        submitter: str,
        executor: str,
        delay: int,
        bounds: Optional[DelayBounds] = None,
    ) -> None:
        self._bounds = bounds or DelayBounds()
        self._submitter = to_identity(submitter, "submitter", "constructor")
        self._executor = to_identity(executor, "executor", "constructor")
        if self._submitter == self._executor:
            raise InvalidParameter(
                "DelayedJobs::constructor: Submitter and executor must differ."
            )
        self._check_delay(delay, "constructor")
        self._delay = delay

    @property
    def submitter(self) -> str:
        return self._submitter

    @property
    def executor(self) -> str:
        return self._executor

    @property
    def delay(self) -> int:
        return self._delay

    @property
    def bounds(self) -> DelayBounds:
        return self._bounds

    def update_delay(self, caller: str, new_delay: int) -> int:
        """Replace the delay. Submitter only; bounds checked."""
        self.require_submitter(caller, "updateDelay")
        self._check_delay(new_delay, "updateDelay")
        self._delay = new_delay
        return new_delay

    def require_submitter(self, caller: str, operation: str) -> str:
        identity = self.caller_identity(caller, operation)
        if identity != self._submitter:
            raise Unauthorized(f"DelayedJobs::{operation}: Call must come from submitter.")
        return identity

    def require_executor(self, caller: str, operation: str) -> str:
        identity = self.caller_identity(caller, operation)
        if identity != self._executor:
            raise Unauthorized(f"DelayedJobs::{operation}: Call must come from executor.")
        return identity

    def require_not_submitter(self, caller: str, operation: str) -> str:
        identity = self.caller_identity(caller, operation)
        if identity == self._submitter:
            raise Unauthorized(
                f"DelayedJobs::{operation}: Call must not come from submitter."
            )
        return identity

    @staticmethod
    def caller_identity(caller: str, operation: str) -> str:
        try:
            return to_identity(caller, "caller")
        except InvalidParameter as e:
            raise Unauthorized(f"DelayedJobs::{operation}: {e}") from e

    def _check_delay(self, delay: int, operation: str) -> None:
        if isinstance(delay, bool) or not isinstance(delay, int):
            raise InvalidParameter(
                f"DelayedJobs::{operation}: Delay must be whole seconds, got {delay!r}."
            )
        if delay < self._bounds.min_delay:
            raise InvalidParameter(
                f"DelayedJobs::{operation}: Delay must exceed minimum delay "
                f"({self._bounds.min_delay}s)."
            )
        if delay > self._bounds.max_delay:
            raise InvalidParameter(
                f"DelayedJobs::{operation}: Delay must not exceed maximum delay "
                f"({self._bounds.max_delay}s)."
            )
