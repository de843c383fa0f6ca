"""Path normalization and confinement utilities for fsim-upload."""

from __future__ import annotations

import contextlib  # contextmanager 管理目录描述符
import errno  # errno 区分符号链接错误
import os  # os 提供 dir_fd 相关系统调用
import stat  # S_ISLNK 识别符号链接
from pathlib import Path, PureWindowsPath  # Path 提供跨平台路径操作
from typing import IO, Iterator, List, Tuple

from ..errors import SecurityError, UploadIOError

_DIR_FLAGS = os.O_RDONLY | getattr(os, "O_DIRECTORY", 0)
_NOFOLLOW = getattr(os, "O_NOFOLLOW", 0)


def normalize_path(base: Path | str, p: Path | str) -> Path:
    """将输入路径规范化并转换为绝对路径。"""
    base_path = Path(base).expanduser().resolve()  # 展开用户目录并转换为绝对路径
    candidate = Path(p).expanduser()  # 先展开用户目录以处理 ~
    if candidate.is_absolute():  # 如果用户提供绝对路径
        return candidate.resolve()  # 直接返回规范化后的绝对路径
    return (base_path / candidate).resolve()  # 对相对路径拼接后再解析


def split_local_name(name: str) -> List[str]:
    """Split ``name`` into path components that cannot leave their root.

    The check is purely syntactic and touches no filesystem state. Absolute
    names, drive-qualified names, ``..`` segments and NUL bytes raise
    :class:`SecurityError`. ``.`` segments and repeated separators are
    dropped, so ``./report.txt`` resolves to ``report.txt``.
    """

    if not name:
        raise SecurityError("empty destination name")
    if "\x00" in name:
        raise SecurityError(f"destination name contains NUL byte: {name!r}")
    separators = [os.sep] + ([os.altsep] if os.altsep else [])
    if name[0] in separators or name[0] == "\\" or PureWindowsPath(name).drive:
        raise SecurityError(f"path traversal detected in rename: {name!r}")
    normalized = name
    for sep in separators[1:]:
        normalized = normalized.replace(sep, os.sep)
    parts = [part for part in normalized.split(os.sep) if part not in ("", ".")]
    if not parts or ".." in parts:
        raise SecurityError(f"path traversal detected in rename: {name!r}")
    return parts


class ConfinedRoot:
    """A directory opened as a root for all later path resolution.

    Every operation resolves names relative to a directory file descriptor.
    Intermediate components are opened with ``O_NOFOLLOW`` so a symlink can
    never redirect a write outside the directory, even if it is swapped in
    after the name was checked.
    """

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)
        try:
            self._fd = os.open(self.directory, _DIR_FLAGS)
        except OSError as exc:
            raise UploadIOError(f"error creating root filesystem for {str(self.directory)!r}: {exc}") from exc

    def fileno(self) -> int:
        return self._fd

    def close(self) -> None:
        if self._fd >= 0:
            os.close(self._fd)
            self._fd = -1

    def __enter__(self) -> "ConfinedRoot":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @contextlib.contextmanager
    def parent(self, parts: List[str]) -> Iterator[Tuple[int, str]]:
        """Yield ``(dir_fd, leaf)`` for the directory holding ``parts[-1]``."""

        opened: List[int] = []
        fd = self._fd
        try:
            for component in parts[:-1]:
                try:
                    fd = os.open(component, _DIR_FLAGS | _NOFOLLOW, dir_fd=fd)
                except OSError as exc:
                    # Linux 对 O_DIRECTORY|O_NOFOLLOW 的符号链接返回 ENOTDIR 而不是 ELOOP
                    if exc.errno in (errno.ELOOP, errno.ENOTDIR) and _is_symlink(fd, component):
                        raise SecurityError(
                            f"symlinked path component {component!r} in {'/'.join(parts)!r}"
                        ) from exc
                    raise UploadIOError(
                        f"error opening directory {component!r} under {str(self.directory)!r}: {exc}"
                    ) from exc
                opened.append(fd)
            yield fd, parts[-1]
        finally:
            for handle in reversed(opened):
                os.close(handle)


def _is_symlink(dir_fd: int, name: str) -> bool:
    try:
        info = os.stat(name, dir_fd=dir_fd, follow_symlinks=False)
    except OSError:
        return False
    return stat.S_ISLNK(info.st_mode)


def lstat_at(dir_fd: int, name: str) -> os.stat_result | None:
    """返回目录描述符下条目的 lstat 结果，不存在时返回 None。"""

    try:
        return os.stat(name, dir_fd=dir_fd, follow_symlinks=False)
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise UploadIOError(f"error checking {name!r}: {exc}") from exc


def create_exclusive_at(dir_fd: int, name: str, mode: int = 0o644) -> IO[bytes]:
    """在目录描述符下独占创建文件，拒绝跟随符号链接。"""

    flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL | _NOFOLLOW
    try:
        fd = os.open(name, flags, mode, dir_fd=dir_fd)
    except OSError as exc:
        raise UploadIOError(f"error creating destination file {name!r}: {exc}") from exc
    return os.fdopen(fd, "wb")


def unlink_at(dir_fd: int, name: str) -> None:
    """删除目录描述符下的文件，文件不存在时忽略。"""

    with contextlib.suppress(FileNotFoundError):
        os.unlink(name, dir_fd=dir_fd)
