"""Configuration loading and validation for fsim-upload."""

from __future__ import annotations

import os  # os.sep 校验前缀
from dataclasses import dataclass  # dataclass 用于定义结构化配置对象
from pathlib import Path  # Path 提供跨平台路径处理

import yaml  # PyYAML 用于解析配置文件

from .constants import (  # 默认值
    DEFAULT_AUDIT_DIR,
    DEFAULT_CONFIG_FILE,
    DEFAULT_COPY_CHUNK_KB,
    DEFAULT_STAGING_PREFIX,
)
from .transfer.receiver import StagingFactory, default_staging_factory
from .utils.pathing import normalize_path  # 路径归一化


@dataclass(slots=True)
class UploadConfig:
    """上传目标与暂存配置。"""

    directory: Path  # 上传目标目录（归一化）
    staging_dir: Path | None = None  # 暂存目录，None 表示系统临时目录
    staging_prefix: str = DEFAULT_STAGING_PREFIX  # 暂存文件名前缀
    copy_chunk_kb: int = DEFAULT_COPY_CHUNK_KB  # 跨卷复制块大小

    def staging_factory(self) -> StagingFactory:
        """按配置返回暂存文件工厂。"""

        return default_staging_factory(self.staging_dir, self.staging_prefix)


@dataclass(slots=True)
class LoggingConfig:
    """日志配置。"""

    level: str  # 日志级别
    file: Path | None  # 日志文件


@dataclass(slots=True)
class AuditConfig:
    """审计日志配置。"""

    enabled: bool  # 是否写入审计日志
    dir: Path  # 审计日志目录


@dataclass(slots=True)
class FsimUploadConfig:
    """聚合所有配置段的顶层对象。"""

    upload: UploadConfig  # 上传配置
    logging: LoggingConfig  # 日志配置
    audit: AuditConfig  # 审计配置


def _load_yaml(path: Path) -> dict:
    """辅助函数：读取 YAML 文件并返回字典。"""
    with path.open("r", encoding="utf-8") as f:  # 打开文件，使用 UTF-8 编码
        data = yaml.safe_load(f) or {}  # 安全解析 YAML，空文件回退为空字典
    if not isinstance(data, dict):  # 若顶层不是 dict 则抛错
        raise ValueError("Configuration root must be a mapping")  # 提示错误结构
    return data  # 返回解析结果


def load_config(config_path: str | Path = DEFAULT_CONFIG_FILE) -> FsimUploadConfig:
    """加载并校验配置文件。"""
    path = Path(config_path).expanduser().resolve()  # 解析配置文件路径
    if not path.exists():  # 若文件不存在
        raise FileNotFoundError(f"Config file {path} not found")  # 抛出文件不存在错误
    raw = _load_yaml(path)  # 读取原始字典
    upload_raw = raw.get("upload") or {}  # 获取 upload 段
    logging_raw = raw.get("logging") or {}  # 获取 logging 段
    audit_raw = raw.get("audit") or {}  # 获取 audit 段
    directory_value = upload_raw.get("directory", "")  # 目标目录
    if not directory_value:  # 目标目录不可为空
        raise ValueError("upload.directory cannot be empty")
    staging_value = upload_raw.get("staging_dir")  # 可选暂存目录
    upload = UploadConfig(  # 构造 UploadConfig
        directory=normalize_path(path.parent, directory_value),
        staging_dir=normalize_path(path.parent, staging_value) if staging_value else None,
        staging_prefix=str(upload_raw.get("staging_prefix", DEFAULT_STAGING_PREFIX) or ""),
        copy_chunk_kb=int(upload_raw.get("copy_chunk_kb", DEFAULT_COPY_CHUNK_KB)),
    )
    logging_config = LoggingConfig(  # 构造 LoggingConfig
        level=logging_raw.get("level", "info"),
        file=normalize_path(path.parent, logging_raw["file"]) if logging_raw.get("file") else None,
    )
    audit = AuditConfig(  # 构造 AuditConfig
        enabled=bool(audit_raw.get("enabled", False)),
        dir=normalize_path(path.parent, audit_raw.get("dir") or DEFAULT_AUDIT_DIR),
    )
    # 校验上传参数
    if upload.copy_chunk_kb <= 0:
        raise ValueError("upload.copy_chunk_kb must be positive")
    if not upload.staging_prefix:
        raise ValueError("upload.staging_prefix cannot be empty")
    if os.sep in upload.staging_prefix or "/" in upload.staging_prefix:
        raise ValueError("upload.staging_prefix must not contain a path separator")
    return FsimUploadConfig(upload=upload, logging=logging_config, audit=audit)  # 返回配置对象
