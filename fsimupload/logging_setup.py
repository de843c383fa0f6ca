"""Logging helper used by the fsim-upload CLI."""

from __future__ import annotations

import logging  # 标准库 logging 提供灵活的日志框架
from pathlib import Path  # Path 便于跨平台处理文件路径
from typing import Optional  # Optional 用于类型提示

from rich.logging import RichHandler  # RichHandler 提供彩色控制台输出


def init_logging(level: str, logfile: Optional[str] = None) -> None:
    """初始化 fsim-upload 的日志系统。"""
    resolved_level = level.upper()  # 统一为大写
    if resolved_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        resolved_level = "INFO"  # 非法级别回退到 INFO
        logging.getLogger(__name__).warning("Unsupported log level, fallback to INFO")
    handlers: list[logging.Handler] = [RichHandler(rich_tracebacks=True, show_time=True)]
    if logfile:  # 指定了日志文件时追加文件处理器
        log_path = Path(logfile)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, resolved_level, logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        handlers=handlers,
        force=True,  # force 确保多次调用时覆盖旧配置
    )
