"""Commit verified staging files into a confined destination directory.

The destination directory is opened once as a :class:`ConfinedRoot` and all
later work (backup of an existing file, the final rename, the cross-volume
copy) happens relative to that directory descriptor. A name is checked
syntactically before anything on disk is touched.

Example layout after two uploads of ``report.txt``::

    uploads/
        report.txt                            # newest bytes
        report.20241016093012.123456.txt      # previous report.txt
"""

from __future__ import annotations

import contextlib  # 清理临时文件
import logging  # 日志记录
import os  # 底层文件系统调用
import secrets  # 生成临时文件名后缀
import shutil  # copyfileobj 用于跨卷复制
from datetime import datetime  # 格式化备份时间戳
from pathlib import Path, PurePosixPath  # 路径处理
from typing import Optional

from ..constants import BACKUP_TIMESTAMP_FORMAT, DEFAULT_COPY_CHUNK_KB
from ..errors import UploadIOError
from ..utils.pathing import ConfinedRoot, create_exclusive_at, lstat_at, split_local_name, unlink_at

LOGGER = logging.getLogger("fsimupload.commit")


def effective_name(name: str, rename: str | None = None) -> str:
    """Return ``rename`` if set, otherwise the last component of ``name``."""

    if rename:
        return rename
    return PurePosixPath(name.rstrip("/")).name


def backup_name(leaf: str, mtime_ns: int) -> str:
    """构造带修改时间戳的备份文件名，例如 ``report.20240101120000.000001.txt``。"""

    seconds, remainder = divmod(mtime_ns, 1_000_000_000)
    stamp = datetime.fromtimestamp(seconds).replace(microsecond=remainder // 1000)
    timestamp = stamp.strftime(BACKUP_TIMESTAMP_FORMAT)
    dot = leaf.rfind(".")
    if dot < 0:
        return f"{leaf}.{timestamp}"
    return f"{leaf[:dot]}.{timestamp}{leaf[dot:]}"


def same_volume(path: Path, root: ConfinedRoot) -> bool:
    """判断暂存文件与目标目录是否位于同一设备。"""

    try:
        return os.stat(path).st_dev == os.fstat(root.fileno()).st_dev
    except OSError as exc:
        raise UploadIOError(f"error checking filesystem for temp file and destination: {exc}") from exc


def backup_existing(parent_fd: int, leaf: str) -> Optional[str]:
    """Rename an existing entry named ``leaf`` aside; return the backup name."""

    info = lstat_at(parent_fd, leaf)
    if info is None:
        return None
    target = backup_name(leaf, info.st_mtime_ns)
    # 不覆盖已有备份
    if lstat_at(parent_fd, target) is not None:
        raise UploadIOError(f"error renaming existing file {leaf!r}: backup {target!r} already exists")
    try:
        os.rename(leaf, target, src_dir_fd=parent_fd, dst_dir_fd=parent_fd)
    except OSError as exc:
        raise UploadIOError(f"error renaming existing file {leaf!r} to {target!r}: {exc}") from exc
    LOGGER.info("backed up existing %s to %s", leaf, target)
    return target


class SecureCommitter:
    """Place verified staging files inside ``directory`` and nowhere else."""

    def __init__(self, directory: Path | str, *, copy_chunk_size: int = DEFAULT_COPY_CHUNK_KB * 1024) -> None:
        self.directory = Path(directory)
        self.copy_chunk_size = int(copy_chunk_size)

    def commit(self, staging_path: Path | str, name: str) -> Path:
        """Move ``staging_path`` to ``name`` below the directory.

        The staging file is removed whatever the outcome. Returns the path
        of the committed file.

        Raises
        ------
        SecurityError
            ``name`` is absolute, contains ``..`` or crosses a symlink.
        UploadIOError
            Any filesystem step failed.
        """

        staging = Path(staging_path)
        try:
            parts = split_local_name(name)
            with ConfinedRoot(self.directory) as root, root.parent(parts) as (parent_fd, leaf):
                if same_volume(staging, root):
                    backup_existing(parent_fd, leaf)
                    try:
                        os.rename(staging, leaf, dst_dir_fd=parent_fd)
                    except OSError as exc:
                        raise UploadIOError(f"error renaming temp file to {name!r}: {exc}") from exc
                    LOGGER.debug("renamed %s to %s", staging, name)
                else:
                    partial = self._copy_in(staging, parent_fd, leaf)
                    try:
                        backup_existing(parent_fd, leaf)
                        os.rename(partial, leaf, src_dir_fd=parent_fd, dst_dir_fd=parent_fd)
                    except UploadIOError:
                        unlink_at(parent_fd, partial)
                        raise
                    except OSError as exc:
                        unlink_at(parent_fd, partial)
                        raise UploadIOError(f"error renaming copied file to {name!r}: {exc}") from exc
                    LOGGER.debug("copied %s to %s across volumes", staging, name)
        finally:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(staging)
        return self.directory.joinpath(*parts)

    def _copy_in(self, staging: Path, parent_fd: int, leaf: str) -> str:
        # 先复制到隐藏的临时文件，完整写入后再改名，目标名下不会出现半截文件
        # 临时名与目标名长度无关，避免长文件名超出 NAME_MAX
        partial = f".fdo.upload-{secrets.token_hex(8)}.partial"
        try:
            src = staging.open("rb")
        except OSError as exc:
            raise UploadIOError(f"error opening temp file {str(staging)!r}: {exc}") from exc
        with src:
            dst = create_exclusive_at(parent_fd, partial)
            try:
                with dst:
                    shutil.copyfileobj(src, dst, self.copy_chunk_size)
                    dst.flush()
                    os.fsync(dst.fileno())
            except OSError as exc:
                unlink_at(parent_fd, partial)
                raise UploadIOError(f"error copying to destination file {leaf!r}: {exc}") from exc
        return partial
