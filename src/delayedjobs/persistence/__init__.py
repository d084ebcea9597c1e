"""Persistence — audit event log and state snapshot."""

from delayedjobs.persistence.event_log import EventKind, EventLog, EventRecord
from delayedjobs.persistence.state_store import PersistedState, StateStore

__all__ = [
    "EventKind",
    "EventLog",
    "EventRecord",
    "PersistedState",
    "StateStore",
]
