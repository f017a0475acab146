"""UDP 发送驱动的配置定义与解析工具。"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict

from .constants import (
    DEFAULT_OPEN_TIMEOUT,
    DEFAULT_QOS_DEPTH,
    DEFAULT_RELEASE_ON_SHUTDOWN,
    DEFAULT_TOPIC,
)

LOG = logging.getLogger(__name__)

REQUIRED_KEYS = ("ip", "port")


class ConfigError(ValueError):
    """配置缺失必填项或无法解析。"""


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


@dataclass(frozen=True)
class UdpSenderConfig:
    """UDP 发送驱动的完整配置；ip 与 port 没有默认值，地址格式交由 socket 层校验。"""

    ip: str
    port: int
    topic: str = DEFAULT_TOPIC
    qos_depth: int = DEFAULT_QOS_DEPTH
    open_timeout: float = DEFAULT_OPEN_TIMEOUT
    release_on_shutdown: bool = DEFAULT_RELEASE_ON_SHUTDOWN

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "UdpSenderConfig":
        missing = [key for key in REQUIRED_KEYS if payload.get(key) in (None, "")]
        if missing:
            raise ConfigError(f"缺少必填配置项: {', '.join(missing)}")
        try:
            return cls(
                ip=str(payload["ip"]),
                port=int(payload["port"]),
                topic=str(payload.get("topic", DEFAULT_TOPIC)),
                qos_depth=max(1, int(payload.get("qos_depth", DEFAULT_QOS_DEPTH))),
                open_timeout=float(payload.get("open_timeout", DEFAULT_OPEN_TIMEOUT)),
                release_on_shutdown=_to_bool(payload.get("release_on_shutdown", DEFAULT_RELEASE_ON_SHUTDOWN)),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"配置项类型错误: {exc}") from exc

    @classmethod
    def from_file(cls, file_path: Path) -> "UdpSenderConfig":
        file_path = file_path.resolve()
        try:
            with file_path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except FileNotFoundError as exc:
            raise ConfigError(f"未找到 UDP 发送配置文件 {file_path}") from exc
        except json.JSONDecodeError as exc:
            raise ConfigError(f"UDP 发送配置解析失败: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"UDP 发送配置顶层必须是对象: {file_path}")
        return cls.from_dict(data)

    def merged(self, overrides: Dict[str, Any] | None) -> "UdpSenderConfig":
        """在当前配置基础上应用增量覆盖，返回新的配置对象。"""

        if not overrides:
            return self
        changes: Dict[str, Any] = {}
        try:
            if "ip" in overrides:
                changes["ip"] = str(overrides["ip"])
            if "port" in overrides:
                changes["port"] = int(overrides["port"])
            if "topic" in overrides:
                changes["topic"] = str(overrides["topic"])
            if "qos_depth" in overrides:
                changes["qos_depth"] = max(1, int(overrides["qos_depth"]))
            if "open_timeout" in overrides:
                changes["open_timeout"] = float(overrides["open_timeout"])
            if "release_on_shutdown" in overrides:
                changes["release_on_shutdown"] = _to_bool(overrides["release_on_shutdown"])
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"覆盖配置类型错误: {exc}") from exc
        return replace(self, **changes)

    def describe(self) -> Dict[str, Any]:
        return {
            "ip": self.ip,
            "port": self.port,
            "topic": self.topic,
            "qos_depth": self.qos_depth,
        }
