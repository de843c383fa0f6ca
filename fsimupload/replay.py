"""Replay a recorded device transcript against an owner module.

Transcripts are YAML documents; byte values use the ``!!binary`` tag::

    messages:
      - {name: active, value: true}
      - {name: length, value: 5}
      - {name: data, value: [!!binary aGVsbG8=]}
      - {name: sha-384, value: !!binary WeF0h3dEjGne...}
"""

from __future__ import annotations

import logging  # 日志记录
from dataclasses import dataclass, field  # 回放结果
from pathlib import Path  # Path 处理路径
from typing import Any, Iterable, List, Optional, Tuple

import yaml  # PyYAML 解析转录文件

from .errors import ProtocolViolation
from .module import OwnerModule, Producer, UploadRequest

LOGGER = logging.getLogger("fsimupload.replay")


@dataclass(slots=True)
class ReplayResult:
    """Outcome of a transcript replay."""

    done: bool
    produced: List[Tuple[str, Any]] = field(default_factory=list)
    messages_consumed: int = 0


def load_transcript(path: Path | str) -> List[Tuple[str, Any]]:
    """读取 YAML 转录文件，返回 ``(name, value)`` 列表。"""

    with Path(path).open("r", encoding="utf-8") as handle:
        try:
            raw = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"invalid transcript YAML: {exc}") from exc
    if not isinstance(raw, dict) or not isinstance(raw.get("messages"), list):
        raise ValueError("transcript must be a mapping with a 'messages' list")
    messages: List[Tuple[str, Any]] = []
    for index, entry in enumerate(raw["messages"]):
        if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
            raise ValueError(f"transcript message #{index} must have a string 'name'")
        if "value" not in entry:
            raise ValueError(f"transcript message #{index} ({entry['name']}) has no 'value'")
        messages.append((entry["name"], entry["value"]))
    return messages


def run_transcript(
    module: OwnerModule,
    messages: Iterable[Tuple[str, Any]],
    producer: Optional[Producer] = None,
) -> ReplayResult:
    """Drive ``module`` with ``messages`` until it reports completion."""

    producer = producer or Producer()
    result = ReplayResult(done=False, produced=producer.messages)
    _, result.done = module.produce_info(producer)
    for name, value in messages:
        if result.done:
            break
        module.handle_info(name, value)
        result.messages_consumed += 1
        _, result.done = module.produce_info(producer)
    if not result.done:
        if isinstance(module, UploadRequest):
            module.cancel()
        raise ProtocolViolation("transcript ended before upload completed")
    LOGGER.debug("transcript replay finished after %d messages", result.messages_consumed)
    return result
