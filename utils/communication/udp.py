"""对 UDP 收发能力的轻量封装：基于 IoContext 的非阻塞发送与线程化监听。"""

from __future__ import annotations

import ipaddress
import logging
import socket
import threading
from typing import Callable, Optional, Tuple

from utils.io_context import IoContext

LOG = logging.getLogger(__name__)


class UdpCommunicationError(RuntimeError):
    """统一封装 UDP 通信异常。"""


def resolve_endpoint(remote_ip: str, remote_port: int) -> Tuple[int, Tuple[str, int]]:
    """校验目标地址与端口，返回 (地址族, 地址元组)。"""

    try:
        address = ipaddress.ip_address(str(remote_ip).strip())
    except ValueError as exc:
        raise UdpCommunicationError(f"非法 IP 地址: {remote_ip!r}") from exc
    try:
        port = int(remote_port)
    except (TypeError, ValueError) as exc:
        raise UdpCommunicationError(f"非法端口: {remote_port!r}") from exc
    if not 0 < port <= 0xFFFF:
        raise UdpCommunicationError(f"端口超出范围 1~65535: {port}")
    family = socket.AF_INET6 if address.version == 6 else socket.AF_INET
    return family, (str(address), port)


class UdpSocket:
    """
    单个目标地址的 UDP 发送 socket。
    open/close/async_send 可在任意线程调用，真正的 socket 操作都在 IoContext 线程中按提交顺序执行。
    """

    def __init__(
        self,
        ctx: IoContext,
        remote_ip: str,
        remote_port: int,
        *,
        open_timeout: Optional[float] = None,
    ) -> None:
        self._family, self._address = resolve_endpoint(remote_ip, remote_port)
        self._ctx = ctx
        self.remote_ip = self._address[0]
        self.remote_port = self._address[1]
        # 为 None 时沿用 IoContext 的默认超时
        self.open_timeout = open_timeout
        self._lock = threading.Lock()
        self._sock: Optional[socket.socket] = None
        self.sent_count = 0
        self.error_count = 0

    @property
    def endpoint(self) -> Tuple[str, int]:
        return self._address

    def is_open(self) -> bool:
        with self._lock:
            return self._sock is not None

    def open(self) -> None:
        """创建 socket 并在事件循环中连接到目标地址。"""

        with self._lock:
            if self._sock is not None:
                raise UdpCommunicationError(f"UDP socket {self._describe()} 已处于打开状态")
        sock = socket.socket(self._family, socket.SOCK_DGRAM)
        sock.setblocking(False)
        try:
            self._ctx.submit(self._ctx.loop.sock_connect(sock, self._address), timeout=self.open_timeout)
        except (OSError, OverflowError, RuntimeError, TimeoutError) as exc:
            sock.close()
            raise UdpCommunicationError(f"无法打开 UDP socket {self._describe()}: {exc}") from exc
        with self._lock:
            if self._sock is not None:
                sock.close()
                raise UdpCommunicationError(f"UDP socket {self._describe()} 已处于打开状态")
            self._sock = sock
        LOG.debug("UDP socket opened: %s", self._describe())

    def async_send(self, data: bytes) -> bool:
        """提交一帧数据后立即返回；socket 未打开或上下文已停止时返回 False。"""

        with self._lock:
            sock = self._sock
            if sock is None:
                return False
            return self._ctx.post(self._send_now, sock, bytes(data))

    def close(self) -> None:
        """关闭 socket，可重复调用；已提交的发送会先于关闭执行。"""

        with self._lock:
            sock = self._sock
            self._sock = None
            if sock is None:
                return
            posted = self._ctx.post(sock.close)
        if not posted:
            sock.close()
        LOG.debug("UDP socket closed: %s", self._describe())

    def _send_now(self, sock: socket.socket, data: bytes) -> None:
        """事件循环线程内执行的真实发送。"""
        try:
            sock.send(data)
        except OSError as exc:
            self.error_count += 1
            LOG.debug("UDP 发送失败 %s: %s", self._describe(), exc)
            return
        self.sent_count += 1

    def _describe(self) -> str:
        return f"{self.remote_ip}:{self.remote_port}"


class UdpReceiver:
    """
    简单的 UDP 监听器：在单独线程中阻塞接收，每次回调传入原始数据帧。
    回调签名: (frame: bytes, addr: tuple) -> None
    """

    def __init__(
        self,
        local_port: int,
        on_frame: Callable[[bytes, Tuple[str, int]], None],
        bind_ip: str = "0.0.0.0",
    ):
        """初始化监听器，指定本地端口、回调与绑定地址；端口为 0 时由系统分配。"""

        self.local_port = local_port
        self.on_frame = on_frame
        self.bind_ip = bind_ip
        self._sock: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

    @property
    def bound_port(self) -> int:
        """实际绑定的端口，未启动时返回配置值。"""
        if self._sock is None:
            return self.local_port
        return self._sock.getsockname()[1]

    def start(self) -> None:
        """启动监听线程，若线程已存在则忽略。"""
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        # 允许端口快速复用
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.bind((self.bind_ip, self.local_port))
        self._sock.settimeout(0.2)
        self._thread = threading.Thread(target=self._run, name=f"UdpReceiver:{self.bound_port}", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """停止监听线程，并等待线程退出。"""
        self._stop.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=1.0)
        try:
            if self._sock:
                self._sock.close()
        finally:
            self._sock = None

    def _run(self) -> None:
        """线程入口：持续接收数据并触发回调。"""
        sock = self._sock
        assert sock is not None
        while not self._stop.is_set():
            try:
                data, addr = sock.recvfrom(65536)
            except socket.timeout:
                continue
            except OSError:
                # 套接字关闭时退出
                break
            try:
                self.on_frame(data, addr)
            except Exception:
                LOG.exception("UDP 帧回调处理失败 (port=%s)", self.bound_port)
