"""UDP 发送驱动运行期辅助方法。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .config import UdpSenderConfig

LOG = logging.getLogger(__name__)


def default_config_path(app_root: Optional[Path] = None) -> Path:
    """返回 UDP 发送配置文件的默认路径。"""

    base = app_root or Path(__file__).resolve().parents[2]
    return base / "drivers" / "udp_sender" / "config.json"


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Tuple[UdpSenderConfig, Path]:
    """读取配置文件并应用命令行覆盖；缺少文件时仅凭覆盖项构造配置。"""

    path = (config_path or default_config_path()).resolve()
    config_dir = path.parent
    overrides = {key: value for key, value in (overrides or {}).items() if value is not None}
    if path.exists():
        config = UdpSenderConfig.from_file(path).merged(overrides)
    else:
        LOG.warning("未找到 UDP 发送配置文件 %s，仅使用命令行参数", path)
        config = UdpSenderConfig.from_dict(overrides)
    return config, config_dir


def make_status_logger(logger_name: str = "udp_sender.status"):
    """生成 UDP 发送驱动状态事件的日志处理器。"""

    log = logging.getLogger(logger_name)

    def _handler(event: str, payload: Any = None, **extra: Any) -> None:
        merged: Dict[str, Any] = {}
        if payload is not None:
            merged["payload"] = payload
        if extra:
            merged.update(extra)
        log.info("event=%s details=%s", event, merged or None)

    return _handler
