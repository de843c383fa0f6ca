"""Chunk receiver that streams upload data into a staging file.

Every chunk is written to the staging file and fed to a running SHA-384 in
the same order, so the digest always covers exactly the staged bytes.
"""

from __future__ import annotations

import contextlib  # 安全删除暂存文件
import hashlib  # hashlib 提供 SHA-384
import logging  # 日志记录
import os  # 删除暂存文件
import tempfile  # 默认暂存文件工厂
from pathlib import Path  # Path 处理路径
from typing import IO, Callable, Iterable, Optional

from ..constants import DEFAULT_STAGING_PREFIX
from ..errors import ProtocolViolation, UploadIOError

StagingFactory = Callable[[], IO[bytes]]

LOGGER = logging.getLogger("fsimupload.transfer")


def default_staging_factory(
    staging_dir: Path | str | None = None,
    prefix: str = DEFAULT_STAGING_PREFIX,
) -> StagingFactory:
    """Return a factory creating named temporary files that outlive ``close()``."""

    def create_temp() -> IO[bytes]:
        return tempfile.NamedTemporaryFile(
            mode="w+b",
            prefix=prefix,
            dir=None if staging_dir is None else str(staging_dir),
            delete=False,
        )

    return create_temp


class ChunkReceiver:
    """Accumulate upload chunks into a staging file with a running digest."""

    def __init__(self, name: str, create_temp: Optional[StagingFactory] = None) -> None:
        self.name = name
        self.create_temp = create_temp or default_staging_factory()
        self.written = 0
        self.started = False
        self.staging: Optional[IO[bytes]] = None
        self._hash = None

    @property
    def staging_path(self) -> Path | None:
        if self.staging is None:
            return None
        return Path(self.staging.name)

    def _start(self) -> None:
        # 只允许初始化一次，无论收到多少条 data 消息
        if self.started:
            if self.staging is None:
                raise UploadIOError(f"no temp file available for upload of {self.name!r}")
            return
        self.started = True
        try:
            self.staging = self.create_temp()
        except OSError as exc:
            raise UploadIOError(f"error creating temp file for upload of {self.name!r}: {exc}") from exc
        if not isinstance(getattr(self.staging, "name", None), (str, os.PathLike)):
            raise UploadIOError(f"temp file for upload of {self.name!r} has no filesystem path")
        self._hash = hashlib.sha384()
        LOGGER.debug("staging upload of %r in %s", self.name, self.staging.name)

    def receive(self, chunks: Iterable[bytes]) -> int:
        """Write every chunk from ``chunks`` and return the bytes accepted."""

        self._start()
        accepted = 0
        iterator = iter(chunks)
        while True:
            try:
                chunk = next(iterator)
            except StopIteration:
                break
            except Exception as exc:
                raise ProtocolViolation(f"error decoding message data: {exc}") from exc
            if not isinstance(chunk, (bytes, bytearray, memoryview)):
                raise ProtocolViolation(
                    f"error decoding message data: expected bytes chunk, got {type(chunk).__name__}"
                )
            data = bytes(chunk)
            try:
                self.staging.write(data)
            except OSError as exc:
                raise UploadIOError(f"error writing upload data chunk of {self.name!r}: {exc}") from exc
            self._hash.update(data)
            self.written += len(data)
            accepted += len(data)
        return accepted

    def digest(self) -> bytes:
        """返回当前累计哈希，未收到数据时为 SHA-384 空串摘要。"""

        if self._hash is None:
            return hashlib.sha384().digest()
        return self._hash.copy().digest()

    def close(self) -> None:
        """Flush and close the staging file; no further writes are possible."""

        if self.staging is None or self.staging.closed:
            return
        try:
            self.staging.flush()
            os.fsync(self.staging.fileno())
            self.staging.close()
        except OSError as exc:
            raise UploadIOError(f"error closing temp file for upload {self.name!r}: {exc}") from exc

    def discard(self) -> None:
        """关闭并删除暂存文件，可重复调用。"""

        path = self.staging_path
        if self.staging is not None and not self.staging.closed:
            with contextlib.suppress(OSError):
                self.staging.close()
        if path is not None:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(path)
