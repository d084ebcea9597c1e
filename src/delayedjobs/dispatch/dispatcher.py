"""Call dispatcher contract and the in-memory recording dispatcher.

The core hands a dispatcher a target, a value and fully built call data,
and gets back success or failure plus output bytes. It never looks at
why a call failed. Dispatchers may also raise; the engines treat an
exception the same as a failed result.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of a single dispatch attempt."""
    success: bool
    output: bytes = b""
    error: Optional[str] = None

    @staticmethod
    def ok(output: bytes = b"") -> DispatchResult:
        return DispatchResult(success=True, output=output)

    @staticmethod
    def failed(error: str) -> DispatchResult:
        return DispatchResult(success=False, error=error)


@runtime_checkable
class CallDispatcher(Protocol):
    """Performs the call against a target identity."""

    def dispatch(self, target: str, value: int, data: bytes) -> DispatchResult:
        ...


@dataclass(frozen=True)
class DispatchedCall:
    target: str
    value: int
    data: bytes


class RecordingDispatcher:
    """Records every call and answers from a queue of scripted results.

    With an empty queue every call succeeds with empty output.

    Usage:
        dispatcher = RecordingDispatcher()
        dispatcher.queue(DispatchResult.failed("out of gas"))
    """

    def __init__(self) -> None:
        self._scripted: Deque[DispatchResult] = deque()
        self._calls: List[DispatchedCall] = []

    def queue(self, *results: DispatchResult) -> None:
        self._scripted.extend(results)

    def dispatch(self, target: str, value: int, data: bytes) -> DispatchResult:
        self._calls.append(DispatchedCall(target=target, value=value, data=data))
        result = self._scripted.popleft() if self._scripted else DispatchResult.ok()
        logger.debug(
            "Recorded call to %s (value=%d, %d bytes): success=%s",
            target, value, len(data), result.success,
        )
        return result

    @property
    def calls(self) -> list[DispatchedCall]:
        return list(self._calls)
