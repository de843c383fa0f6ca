"""Integrity checks run once the peer has sent every declared byte."""

from __future__ import annotations

import hmac  # compare_digest 做常量时间比较

from ..errors import IntegrityError, UploadOverflowError
from .receiver import ChunkReceiver


def verify_upload(receiver: ChunkReceiver, length: int, expected_sha384: bytes) -> None:
    """Check length and digest, then close the staging file.

    Raises
    ------
    UploadOverflowError
        More bytes were received than ``length`` declared.
    IntegrityError
        The SHA-384 of the staged bytes differs from ``expected_sha384``.
    """

    if receiver.written > length:
        raise UploadOverflowError(
            f"uploaded file {receiver.name!r}: received {receiver.written} bytes, expected {length}"
        )
    if not hmac.compare_digest(receiver.digest(), bytes(expected_sha384)):
        raise IntegrityError(f"uploaded file {receiver.name!r}: SHA-384 did not match")
    receiver.close()
