"""订阅服务质量（QoS）定义，以及尽力而为订阅的有界分发队列。"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

LOG = logging.getLogger(__name__)

Listener = Callable[..., None]

DEFAULT_DEPTH = 10


class Reliability(Enum):
    """消息投递策略。"""

    RELIABLE = "reliable"  # 发布线程内同步投递
    BEST_EFFORT = "best_effort"  # 有界队列 + 后台线程投递，过载时丢弃最旧消息


@dataclass(frozen=True)
class QoSProfile:
    """订阅的服务质量配置：保留最近 depth 条消息。"""

    depth: int = DEFAULT_DEPTH
    reliability: Reliability = Reliability.RELIABLE

    def __post_init__(self) -> None:
        if self.depth < 1:
            raise ValueError(f"QoS 队列深度必须为正数: {self.depth}")

    @classmethod
    def keep_last(cls, depth: int) -> "QoSProfile":
        return cls(depth=depth)

    def best_effort(self) -> "QoSProfile":
        return QoSProfile(depth=self.depth, reliability=Reliability.BEST_EFFORT)

    @property
    def queued(self) -> bool:
        return self.reliability is Reliability.BEST_EFFORT


class QueuedListener:
    """
    尽力而为的投递器：pubsub 回调只负责入队，后台线程逐条调用真实监听器。
    队列满时丢弃最旧的一条，发布者永远不会被阻塞。
    """

    def __init__(self, listener: Listener, depth: int, *, name: str = "QueuedListener") -> None:
        self.listener = listener
        self.depth = int(depth)
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=self.depth)
        self._sentinel = object()
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._pending = 0
        self._dropped = 0
        self._closed = False
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    @property
    def dropped(self) -> int:
        """因队列溢出被丢弃的消息数。"""
        with self._lock:
            return self._dropped

    @property
    def alive(self) -> bool:
        return self._thread.is_alive()

    def __call__(self, **message: Any) -> None:
        """pubsub 监听入口，仅入队不执行业务逻辑。"""
        with self._lock:
            if self._closed:
                return
            while True:
                try:
                    self._queue.put_nowait(message)
                    break
                except queue.Full:
                    try:
                        self._queue.get_nowait()
                    except queue.Empty:
                        continue
                    self._pending -= 1
                    self._dropped += 1
                    LOG.debug("队列已满，丢弃最旧消息 (depth=%s)", self.depth)
            self._pending += 1

    def join(self, timeout: Optional[float] = None) -> bool:
        """等待队列中已有消息全部投递完毕，返回是否在超时前完成。"""
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout)

    def stop(self, timeout: float = 1.0) -> None:
        """停止投递线程，丢弃尚未处理的消息。"""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            while True:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    break
                self._pending -= 1
            self._idle.notify_all()
        self._queue.put(self._sentinel)
        if threading.current_thread() is not self._thread:
            self._thread.join(timeout=timeout)

    def _run(self) -> None:
        """后台线程：逐条取出消息并调用监听器。"""
        while True:
            item = self._queue.get()
            if item is self._sentinel:
                break
            try:
                self._deliver(item)
            finally:
                with self._idle:
                    if self._pending > 0:
                        self._pending -= 1
                    self._idle.notify_all()

    def _deliver(self, message: Dict[str, Any]) -> None:
        try:
            self.listener(**message)
        except Exception:
            LOG.exception("监听器 %r 处理消息失败", self.listener)
