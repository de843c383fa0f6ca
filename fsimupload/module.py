"""Owner-side ``fdo.upload`` service info module.

The module asks the device to upload one file and then consumes the
device's messages until the file can be verified and committed::

    owner  -> device   active=true, need-sha=true, name="logs/boot.log"
    device -> owner    active=true
    device -> owner    length=1048576
    device -> owner    data=[b"...", b"..."]      (repeated)
    device -> owner    sha-384=b"<48 bytes>"

Message values arrive already decoded; the surrounding dispatch loop owns
the wire encoding and calls :meth:`UploadRequest.handle_info` and
:meth:`UploadRequest.produce_info` one at a time.
"""

from __future__ import annotations

import abc  # 抽象接口
import enum  # 会话阶段
import logging  # 日志记录
import time  # time.perf_counter 统计耗时
from collections.abc import Iterable
from pathlib import Path  # Path 处理路径
from typing import Any, List, Optional, Tuple

from .constants import (
    INT64_MAX,
    INT64_MIN,
    MODULE_NAME,
    MSG_ACTIVE,
    MSG_DATA,
    MSG_LENGTH,
    MSG_NAME,
    MSG_NEED_SHA,
    MSG_SHA384,
    SHA384_SIZE,
)
from .errors import ProtocolViolation, SessionClosedError
from .transfer.committer import SecureCommitter, effective_name
from .transfer.receiver import ChunkReceiver, StagingFactory
from .transfer.verifier import verify_upload

LOGGER = logging.getLogger("fsimupload.module")


class Producer:
    """Outbound sink collecting ``(name, value)`` messages in order."""

    def __init__(self) -> None:
        self.messages: List[Tuple[str, Any]] = []

    def write_message(self, name: str, value: Any) -> None:
        self.messages.append((name, value))


class MessageConsumer(abc.ABC):
    """Consumes inbound messages addressed to one module."""

    @abc.abstractmethod
    def handle_info(self, message_name: str, value: Any) -> None:
        """Handle one decoded inbound message."""


class MessageProducer(abc.ABC):
    """Produces outbound messages and reports progress."""

    @abc.abstractmethod
    def produce_info(self, producer: Producer) -> Tuple[bool, bool]:
        """Write pending messages; return ``(block_peer, module_done)``."""


class OwnerModule(MessageConsumer, MessageProducer):
    """An owner module speaks both directions."""


class UploadPhase(enum.Enum):
    NOT_REQUESTED = "not_requested"
    REQUESTED = "requested"
    FINALIZED = "finalized"
    ABORTED = "aborted"


class UploadRequest(OwnerModule):
    """Request, verify and commit one file upload from the device.

    Parameters
    ----------
    directory:
        Directory confining the committed file.
    name:
        Name of the file as known to the device. Never empty.
    rename:
        Optional name to use below ``directory``. Defaults to the last
        component of ``name``.
    create_temp:
        Optional factory returning a writable binary file with a ``name``
        attribute; used once to create the staging file.
    """

    def __init__(
        self,
        directory: Path | str,
        name: str,
        *,
        rename: str | None = None,
        create_temp: Optional[StagingFactory] = None,
        committer: Optional[SecureCommitter] = None,
    ) -> None:
        if not name:
            raise ValueError("upload name cannot be empty")
        self.directory = Path(directory)
        self.name = name
        self.rename = rename
        self.length = 0
        self.sha384: bytes | None = None
        self.phase = UploadPhase.NOT_REQUESTED
        self.committed_path: Path | None = None
        self.receiver = ChunkReceiver(name, create_temp)
        self.committer = committer or SecureCommitter(self.directory)
        self._committing = False
        self._started_at: float | None = None
        self._finished_at: float | None = None

    @property
    def written(self) -> int:
        return self.receiver.written

    @property
    def elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        return (self._finished_at or time.perf_counter()) - self._started_at

    def handle_info(self, message_name: str, value: Any) -> None:
        if self.phase in (UploadPhase.FINALIZED, UploadPhase.ABORTED):
            raise SessionClosedError(f"upload of {self.name!r} is {self.phase.value}")
        try:
            self._dispatch(message_name, value)
        except Exception as exc:
            self._abort(exc)
            raise

    def _dispatch(self, message_name: str, value: Any) -> None:
        if message_name == MSG_ACTIVE:
            if not isinstance(value, bool):
                raise ProtocolViolation(f"error decoding message {message_name}: expected bool")
            if not value:
                raise ProtocolViolation("device service info module is not active")
            return
        if message_name == MSG_LENGTH:
            if isinstance(value, bool) or not isinstance(value, int):
                raise ProtocolViolation(f"error decoding message {message_name}: expected int")
            if not INT64_MIN <= value <= INT64_MAX:
                raise ProtocolViolation(f"error decoding message {message_name}: {value} out of int64 range")
            self.length = value
            return
        if message_name == MSG_DATA:
            if isinstance(value, (bytes, bytearray, memoryview)):
                value = [value]
            if not isinstance(value, Iterable) or isinstance(value, (str, dict)):
                raise ProtocolViolation(f"error decoding message {message_name}: expected byte chunks")
            accepted = self.receiver.receive(value)
            LOGGER.debug("upload %r: +%d bytes (%d total)", self.name, accepted, self.receiver.written)
            return
        if message_name == MSG_SHA384:
            if not isinstance(value, (bytes, bytearray)) or len(value) != SHA384_SIZE:
                raise ProtocolViolation(f"error decoding message {message_name}: expected {SHA384_SIZE} bytes")
            digest = bytes(value)
            if self.sha384 is not None and self.sha384 != digest:
                raise ProtocolViolation(f"conflicting {message_name} for upload of {self.name!r}")
            self.sha384 = digest
            return
        raise ProtocolViolation(f"unsupported message {message_name!r}")

    def produce_info(self, producer: Producer) -> Tuple[bool, bool]:
        if self.phase is UploadPhase.FINALIZED:
            return False, True
        if self.phase is UploadPhase.ABORTED:
            raise SessionClosedError(f"upload of {self.name!r} is aborted")
        try:
            if self.phase is UploadPhase.NOT_REQUESTED:
                return self._request(producer)
            if self.sha384 is not None and self.length > 0 and self.receiver.written >= self.length:
                return self._finalize()
        except Exception as exc:
            self._abort(exc)
            raise
        return False, False

    def _request(self, producer: Producer) -> Tuple[bool, bool]:
        producer.write_message(MSG_ACTIVE, True)
        producer.write_message(MSG_NEED_SHA, True)
        producer.write_message(MSG_NAME, self.name)
        self.phase = UploadPhase.REQUESTED
        self._started_at = time.perf_counter()
        LOGGER.info("%s: requested upload of %r into %s", MODULE_NAME, self.name, self.directory)
        return False, False

    def _finalize(self) -> Tuple[bool, bool]:
        verify_upload(self.receiver, self.length, self.sha384)
        self._committing = True
        target = effective_name(self.name, self.rename)
        try:
            self.committed_path = self.committer.commit(self.receiver.staging_path, target)
        finally:
            self._committing = False
            self.receiver.discard()
        self.phase = UploadPhase.FINALIZED
        self._finished_at = time.perf_counter()
        LOGGER.info(
            "upload of %r committed to %s (%d bytes, %.2fs)",
            self.name,
            self.committed_path,
            self.receiver.written,
            self.elapsed,
        )
        return False, True

    def cancel(self) -> bool:
        """Abort the upload unless it is already committing or finished."""

        if self._committing or self.phase in (UploadPhase.FINALIZED, UploadPhase.ABORTED):
            return False
        self._abort(None)
        return True

    def _abort(self, exc: Exception | None) -> None:
        self.phase = UploadPhase.ABORTED
        self.receiver.discard()
        if exc is None:
            LOGGER.warning("upload of %r cancelled", self.name)
        else:
            LOGGER.warning("upload of %r aborted: %s", self.name, exc)
