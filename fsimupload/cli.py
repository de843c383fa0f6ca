"""Command line interface for fsim-upload."""

from __future__ import annotations

import argparse  # argparse 用于解析命令行参数
import logging  # logging 提供日志支持
from pathlib import Path  # Path 便于处理文件系统
from typing import Iterable  # Iterable 类型提示

from .config import FsimUploadConfig, UploadConfig, load_config  # 导入配置加载逻辑
from .constants import DEFAULT_CONFIG_FILE  # 默认常量
from .errors import UploadError
from .module import UploadRequest
from .replay import load_transcript, run_transcript
from .transfer.audit import log_event
from .transfer.committer import SecureCommitter

LOGGER = logging.getLogger(__name__)  # 获取模块级日志记录器


def _load_optional_config(config_path: str) -> FsimUploadConfig | None:
    """配置文件存在时加载，否则返回 None。"""

    if not Path(config_path).exists():
        return None
    return load_config(config_path)


def command_check(args: argparse.Namespace) -> int:
    """处理 check 子命令。"""

    try:
        cfg = load_config(args.config)  # 加载配置
    except FileNotFoundError as exc:  # 配置缺失
        LOGGER.error(str(exc))
        return 1
    except Exception as exc:  # noqa: BLE001
        LOGGER.error("configuration error: %s", exc)
        return 1
    cfg.upload.directory.mkdir(parents=True, exist_ok=True)  # 确保上传目录存在
    LOGGER.info("upload directory ready: %s", cfg.upload.directory)
    print(f"Upload directory: {cfg.upload.directory}")
    print(f"Staging: {cfg.upload.staging_dir or '(system temp)'} prefix={cfg.upload.staging_prefix}")
    print(f"Audit: {'enabled -> ' + str(cfg.audit.dir) if cfg.audit.enabled else 'disabled'}")
    print("Configuration check passed.")
    return 0


def command_replay(args: argparse.Namespace) -> int:
    """回放设备转录文件并提交上传结果。"""

    try:
        cfg = _load_optional_config(args.config)
    except Exception as exc:  # noqa: BLE001
        LOGGER.error("failed to load config: %s", exc)
        return 1
    if args.dir:
        upload_cfg = UploadConfig(directory=Path(args.dir).expanduser().resolve())
        if cfg is not None:
            upload_cfg.staging_dir = cfg.upload.staging_dir
            upload_cfg.staging_prefix = cfg.upload.staging_prefix
            upload_cfg.copy_chunk_kb = cfg.upload.copy_chunk_kb
    elif cfg is not None:
        upload_cfg = cfg.upload
    else:
        LOGGER.error("no upload directory: pass --dir or provide %s", args.config)
        return 1
    try:
        messages = load_transcript(args.transcript)
    except (OSError, ValueError) as exc:
        LOGGER.error("failed to read transcript %s: %s", args.transcript, exc)
        return 1
    request = UploadRequest(
        upload_cfg.directory,
        args.name,
        rename=args.rename,
        create_temp=upload_cfg.staging_factory(),
        committer=SecureCommitter(upload_cfg.directory, copy_chunk_size=upload_cfg.copy_chunk_kb * 1024),
    )
    status = "success"
    try:
        run_transcript(request, messages)
    except UploadError as exc:
        LOGGER.error("upload of %r failed: %s", args.name, exc)
        status = "failed"
    if cfg is not None and cfg.audit.enabled:
        log_event(args.name, "upload", status, request.written, request.elapsed, base_dir=cfg.audit.dir)
    if status != "success":
        return 1
    print(request.committed_path)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """构建顶层解析器。"""

    parser = argparse.ArgumentParser(prog="fsim-upload", description="fdo.upload owner module tools")
    subparsers = parser.add_subparsers(dest="command", required=True)
    check_parser = subparsers.add_parser("check", help="validate config.yaml and the upload directory")
    check_parser.add_argument("--config", default=DEFAULT_CONFIG_FILE, help="path to config file")
    check_parser.set_defaults(func=command_check)
    replay_parser = subparsers.add_parser("replay", help="replay a device transcript and commit the upload")
    replay_parser.add_argument("transcript", help="YAML transcript of device messages")
    replay_parser.add_argument("--name", required=True, help="file name requested from the device")
    replay_parser.add_argument("--rename", help="name to use inside the upload directory")
    replay_parser.add_argument("--dir", help="override upload directory")
    replay_parser.add_argument("--config", default=DEFAULT_CONFIG_FILE, help="path to config file")
    replay_parser.set_defaults(func=command_replay)
    return parser


def main(argv: Iterable[str] | None = None) -> int:
    """CLI 主入口。"""

    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(args, "func", None)
    if handler is None:
        parser.print_help()
        return 1
    return handler(args)
