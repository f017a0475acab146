"""应用运行期的通用辅助工具。"""

from __future__ import annotations

import logging
from typing import Optional, Union

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def resolve_log_level(level: Union[int, str], default: int = logging.INFO) -> int:
    """把 "debug"/"INFO" 之类的字符串等级转换为数值，无法识别时返回 default。"""

    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else default


def setup_basic_logging(level: Union[int, str] = logging.INFO, fmt: Optional[str] = None) -> None:
    """配置项目默认的日志输出格式与等级。"""

    logging.basicConfig(level=resolve_log_level(level), format=fmt or DEFAULT_FORMAT)
