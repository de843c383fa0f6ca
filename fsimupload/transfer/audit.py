"""Audit logging helpers for upload events."""

from __future__ import annotations

import datetime as _dt  # 日期时间格式化
from pathlib import Path  # Path 处理路径

from ..constants import DEFAULT_AUDIT_DIR


def log_event(
    file: str,
    action: str,
    status: str,
    bytes_transferred: int,
    elapsed: float,
    *,
    base_dir: Path | str = Path(DEFAULT_AUDIT_DIR),
) -> Path:
    """Append an audit entry to the daily upload log and return its path."""

    now = _dt.datetime.now(_dt.timezone.utc)
    timestamp = now.replace(tzinfo=None).isoformat(timespec="seconds") + "Z"
    log_dir = Path(base_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / f"{now.date().isoformat()}.log"
    line = (
        f"[{timestamp}] file={file} action={action} status={status} "
        f"size={bytes_transferred} time={elapsed:.2f}s\n"
    )
    with log_path.open("a", encoding="utf-8") as handle:
        handle.write(line)
        handle.flush()
    return log_path
