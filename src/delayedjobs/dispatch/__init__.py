"""Call dispatchers — the external collaborator that performs job calls."""

from delayedjobs.dispatch.dispatcher import (
    CallDispatcher,
    DispatchedCall,
    DispatchResult,
    RecordingDispatcher,
)
from delayedjobs.dispatch.web3_dispatcher import Web3Dispatcher

__all__ = [
    "CallDispatcher",
    "DispatchedCall",
    "DispatchResult",
    "RecordingDispatcher",
    "Web3Dispatcher",
]
