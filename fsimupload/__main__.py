"""Command line entry point for fsim-upload."""

from __future__ import annotations

import sys  # sys 用于访问 argv 与退出状态

from .cli import main as cli_main  # CLI 主函数
from .config import load_config  # 读取日志配置
from .constants import DEFAULT_CONFIG_FILE
from .logging_setup import init_logging  # 初始化日志


def main(argv: list[str] | None = None) -> int:
    """入口函数，供 python -m fsimupload 调用。"""
    try:
        cfg = load_config(DEFAULT_CONFIG_FILE)  # 尝试加载配置用于日志设定
        log_level = cfg.logging.level  # 从配置读取日志级别
        log_file = str(cfg.logging.file) if cfg.logging.file else None
    except Exception:  # noqa: BLE001
        log_level = "INFO"  # 若配置加载失败则使用默认日志级别
        log_file = None  # 不使用日志文件
    init_logging(log_level, log_file)  # 初始化日志系统
    return cli_main(argv)  # 委托给 CLI 模块并返回状态码


if __name__ == "__main__":
    sys.exit(main())  # 将返回值作为进程退出码
