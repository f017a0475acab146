"""UDP 发送驱动对外接口。"""

from .config import ConfigError, UdpSenderConfig
from .driver import UdpDriver
from .node import UdpSenderNode

__all__ = [
    "ConfigError",
    "UdpDriver",
    "UdpSenderConfig",
    "UdpSenderNode",
]
