"""UDP 发送驱动：持有唯一的 socket 资源并提供稳定的访问句柄。"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from utils.communication.udp import UdpCommunicationError, UdpSocket
from utils.io_context import IoContext

from .constants import DEFAULT_OPEN_TIMEOUT

LOG = logging.getLogger(__name__)

SocketFactory = Callable[..., UdpSocket]


class UdpDriver:
    """管理 UdpSocket 的生命周期，本身不做任何缓冲。"""

    def __init__(
        self,
        ctx: IoContext,
        *,
        socket_factory: SocketFactory = UdpSocket,
        open_timeout: float = DEFAULT_OPEN_TIMEOUT,
    ) -> None:
        self._ctx = ctx
        self._socket_factory = socket_factory
        self.open_timeout = open_timeout
        self._sender: Optional[UdpSocket] = None

    def init_sender(self, ip: str, port: int) -> None:
        """创建绑定到 ip:port 的 socket；地址非法时由 socket 层抛出 UdpCommunicationError。"""

        self.release()
        self._sender = self._socket_factory(self._ctx, ip, port, open_timeout=self.open_timeout)

    def has_sender(self) -> bool:
        return self._sender is not None

    def current_sender(self) -> Optional[UdpSocket]:
        """返回当前 socket，尚未创建或已释放时返回 None，不抛异常。"""
        return self._sender

    def sender(self) -> UdpSocket:
        if self._sender is None:
            raise UdpCommunicationError("UDP sender 尚未初始化，请先调用 init_sender")
        return self._sender

    def release(self) -> None:
        """关闭并丢弃当前 socket，可重复调用。"""

        sender = self._sender
        self._sender = None
        if sender is not None:
            sender.close()
