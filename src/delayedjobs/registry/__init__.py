"""Job registry and fingerprinting."""

from delayedjobs.registry.fingerprint import (
    build_call_data,
    call_selector,
    fingerprint_auction,
    fingerprint_descriptor,
    fingerprint_simple,
)
from delayedjobs.registry.job_registry import JobRegistry

__all__ = [
    "JobRegistry",
    "build_call_data",
    "call_selector",
    "fingerprint_auction",
    "fingerprint_descriptor",
    "fingerprint_simple",
]
