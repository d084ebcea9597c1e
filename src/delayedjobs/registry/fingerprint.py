"""Fingerprinting and call-data construction.

A fingerprint is keccak-256 over the ABI encoding of the ordered call
descriptor. It is the registry's primary key: two calls with identical
descriptors share one record. The encoding is type- and order-sensitive,
and simple and auction descriptors use different type tuples, so the two
kinds never alias.

    simple:  (address target, uint256 value, string signature, bytes payload)
    auction: (address target, uint256 ceiling, string signature, bytes payload,
              uint256 timeout)
"""

from __future__ import annotations

from typing import Optional

from eth_abi import encode
from eth_utils import encode_hex, keccak

from delayedjobs.models.job import CallDescriptor

SIMPLE_DESCRIPTOR_TYPES = ["address", "uint256", "string", "bytes"]
AUCTION_DESCRIPTOR_TYPES = SIMPLE_DESCRIPTOR_TYPES + ["uint256"]


def fingerprint_simple(target: str, value: int, signature: str, payload: bytes) -> str:
    """Fingerprint of a simple job descriptor, as 0x-prefixed hex."""
    encoded = encode(SIMPLE_DESCRIPTOR_TYPES, [target, value, signature, payload])
    return encode_hex(keccak(encoded))


def fingerprint_auction(
    target: str,
    ceiling: int,
    signature: str,
    payload: bytes,
    timeout: int,
) -> str:
    """Fingerprint of an auction job descriptor, as 0x-prefixed hex."""
    encoded = encode(
        AUCTION_DESCRIPTOR_TYPES, [target, ceiling, signature, payload, timeout]
    )
    return encode_hex(keccak(encoded))


def fingerprint_descriptor(descriptor: CallDescriptor, timeout: Optional[int] = None) -> str:
    """Fingerprint a descriptor; a timeout makes it an auction fingerprint."""
    if timeout is None:
        return fingerprint_simple(
            descriptor.target, descriptor.value, descriptor.signature, descriptor.payload
        )
    return fingerprint_auction(
        descriptor.target,
        descriptor.value,
        descriptor.signature,
        descriptor.payload,
        timeout,
    )


def call_selector(signature: str) -> bytes:
    """First four bytes of keccak-256 of the function signature."""
    return keccak(text=signature)[:4]


def build_call_data(signature: str, payload: bytes) -> bytes:
    """Payload verbatim for an empty signature, else selector ++ payload."""
    if not signature:
        return bytes(payload)
    return call_selector(signature) + bytes(payload)
