"""Transfer components for the fsim-upload owner module."""

from .committer import SecureCommitter
from .receiver import ChunkReceiver
from .verifier import verify_upload

__all__ = ["ChunkReceiver", "SecureCommitter", "verify_upload"]
