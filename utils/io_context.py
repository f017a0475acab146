"""I/O execution context: one asyncio event loop driven by a dedicated worker thread."""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Coroutine, Optional, TypeVar

LOG = logging.getLogger(__name__)

_T = TypeVar("_T")


class IoContext:
    """在后台线程中运行事件循环，供同步代码提交异步 I/O 任务。"""

    def __init__(self, *, name: str = "IoContext", default_timeout: float = 5.0) -> None:
        self.name = name
        self.default_timeout = default_timeout
        self._lock = threading.Lock()
        self._stopped = False
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, name=f"{name}.loop", daemon=True)
        self._thread.start()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    @property
    def running(self) -> bool:
        with self._lock:
            return not self._stopped and self._thread.is_alive()

    def in_context_thread(self) -> bool:
        return threading.current_thread() is self._thread

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def submit(self, coro: Coroutine[None, None, _T], *, timeout: Optional[float] = None) -> _T:
        """提交协程并阻塞等待结果；超时后取消任务并抛出 TimeoutError。"""

        if not self.running:
            coro.close()
            raise RuntimeError(f"{self.name} 已停止，无法提交任务")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        limit = timeout if timeout is not None else self.default_timeout
        try:
            return future.result(limit)
        except FutureTimeoutError as exc:
            future.cancel()
            raise TimeoutError(f"{self.name} 任务超时 ({limit}s)") from exc

    def post(self, callback: Callable[..., Any], *args: Any) -> bool:
        """把回调排入事件循环后立即返回，不等待执行结果；上下文已停止时返回 False。"""

        with self._lock:
            if self._stopped:
                return False
            try:
                self._loop.call_soon_threadsafe(callback, *args)
            except RuntimeError:
                # 事件循环已关闭
                return False
        return True

    def stop(self, timeout: float = 1.0) -> None:
        """停止事件循环；已排队的回调会先执行完再退出。"""

        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            self._loop.call_soon_threadsafe(self._loop.stop)
        if not self.in_context_thread():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                LOG.warning("%s 事件循环线程未能在 %.1fs 内退出", self.name, timeout)
                return
            self._loop.close()
        LOG.debug("%s stopped", self.name)

    def __del__(self) -> None:  # pragma: no cover - best effort cleanup
        try:
            self.stop(timeout=0.1)
        except Exception:
            LOG.debug("忽略 IoContext 析构异常", exc_info=True)
