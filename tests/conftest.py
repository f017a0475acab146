"""共享 fixtures：干净的事件总线、IoContext 以及记录调用的假 socket。"""

from __future__ import annotations

from typing import List, Optional, Tuple

import pytest
from pubsub import pub

from bus.event_bus import EventBus
from drivers.udp_sender import UdpSenderConfig, UdpSenderNode
from utils.communication.udp import UdpCommunicationError, resolve_endpoint
from utils.io_context import IoContext


class FakeSocket:
    """记录 open/close/async_send 调用的 UdpSocket 替身，地址校验沿用真实实现。"""

    def __init__(self, ip: str, port: int, *, fail_open: bool = False) -> None:
        _, self.endpoint = resolve_endpoint(ip, port)
        self.fail_open = fail_open
        self.opened = False
        self.open_calls = 0
        self.close_calls = 0
        self.sent: List[bytes] = []

    def is_open(self) -> bool:
        return self.opened

    def open(self) -> None:
        self.open_calls += 1
        if self.fail_open:
            raise UdpCommunicationError(f"cannot open {self.endpoint}")
        self.opened = True

    def async_send(self, data: bytes) -> bool:
        if not self.opened:
            return False
        self.sent.append(bytes(data))
        return True

    def close(self) -> None:
        self.close_calls += 1
        self.opened = False


class FakeSocketFactory:
    """按 UdpDriver 的 socket_factory 约定创建 FakeSocket，并保留全部实例。"""

    def __init__(self) -> None:
        self.created: List[FakeSocket] = []
        self.fail_open = False

    def __call__(self, ctx: IoContext, ip: str, port: int, *, open_timeout: float = 3.0) -> FakeSocket:
        sock = FakeSocket(ip, port, fail_open=self.fail_open)
        self.created.append(sock)
        return sock

    @property
    def last(self) -> Optional[FakeSocket]:
        return self.created[-1] if self.created else None

    def all_sent(self) -> List[Tuple[Tuple[str, int], bytes]]:
        return [(sock.endpoint, payload) for sock in self.created for payload in sock.sent]


@pytest.fixture
def bus():
    yield EventBus()
    pub.unsubAll()


@pytest.fixture
def io_ctx():
    ctx = IoContext(name="test.io")
    yield ctx
    ctx.stop()


@pytest.fixture
def socket_factory() -> FakeSocketFactory:
    return FakeSocketFactory()


@pytest.fixture
def sender_config() -> UdpSenderConfig:
    return UdpSenderConfig(ip="127.0.0.1", port=5555)


@pytest.fixture
def node(bus, io_ctx, socket_factory, sender_config):
    instance = UdpSenderNode(bus=bus, config=sender_config, ctx=io_ctx, socket_factory=socket_factory)
    yield instance
    instance.shutdown()
