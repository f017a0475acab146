"""驱动模块的生命周期状态机：显式枚举 + 状态转移表。"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Dict, Iterator, Mapping, Optional, Tuple

LOG = logging.getLogger(__name__)


class LifecycleState(Enum):
    UNCONFIGURED = "unconfigured"
    INACTIVE = "inactive"
    ACTIVE = "active"
    FINALIZED = "finalized"


class Transition(Enum):
    CONFIGURE = "configure"
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    CLEANUP = "cleanup"
    SHUTDOWN = "shutdown"


class TransitionResult(Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    # 当前状态下不存在该转移，未执行任何回调
    REJECTED = "rejected"

    @property
    def ok(self) -> bool:
        return self is TransitionResult.SUCCESS


# (当前状态, 转移) -> (成功后的状态, 失败后的状态)
TRANSITIONS: Dict[Tuple[LifecycleState, Transition], Tuple[LifecycleState, LifecycleState]] = {
    (LifecycleState.UNCONFIGURED, Transition.CONFIGURE): (LifecycleState.INACTIVE, LifecycleState.UNCONFIGURED),
    (LifecycleState.INACTIVE, Transition.ACTIVATE): (LifecycleState.ACTIVE, LifecycleState.INACTIVE),
    (LifecycleState.ACTIVE, Transition.DEACTIVATE): (LifecycleState.INACTIVE, LifecycleState.ACTIVE),
    (LifecycleState.INACTIVE, Transition.CLEANUP): (LifecycleState.UNCONFIGURED, LifecycleState.INACTIVE),
    (LifecycleState.UNCONFIGURED, Transition.SHUTDOWN): (LifecycleState.FINALIZED, LifecycleState.FINALIZED),
    (LifecycleState.INACTIVE, Transition.SHUTDOWN): (LifecycleState.FINALIZED, LifecycleState.FINALIZED),
    (LifecycleState.ACTIVE, Transition.SHUTDOWN): (LifecycleState.FINALIZED, LifecycleState.FINALIZED),
}

# 回调参数为转移前的状态
TransitionCallback = Callable[[LifecycleState], TransitionResult]
TransitionObserver = Callable[[Transition, TransitionResult, LifecycleState, LifecycleState], None]


def available_transitions(state: LifecycleState) -> Tuple[Transition, ...]:
    """列出某个状态下允许触发的转移。"""

    return tuple(transition for (source, transition) in TRANSITIONS if source is state)


class LifecycleStateMachine:
    """
    线程安全的生命周期状态机。

    转移之间由 _transition_lock 串行化；状态值由 _state_lock 保护，
    只在读取和提交时短暂持有，因此回调执行期间消息处理线程仍可读取状态。
    """

    def __init__(
        self,
        callbacks: Mapping[Transition, TransitionCallback],
        *,
        name: str = "lifecycle",
        observer: Optional[TransitionObserver] = None,
    ) -> None:
        self.name = name
        self._callbacks = dict(callbacks)
        self._observer = observer
        self._state = LifecycleState.UNCONFIGURED
        self._state_lock = threading.RLock()
        self._transition_lock = threading.RLock()

    @property
    def state(self) -> LifecycleState:
        with self._state_lock:
            return self._state

    @contextmanager
    def guard(self, expected: LifecycleState) -> Iterator[bool]:
        """持有状态锁并给出当前是否处于 expected；with 块内状态不会被提交改变。"""

        with self._state_lock:
            yield self._state is expected

    def trigger(self, transition: Transition) -> TransitionResult:
        """执行一次转移，回调异常会被记录并视为失败，永不外抛。"""

        with self._transition_lock:
            previous = self.state
            targets = TRANSITIONS.get((previous, transition))
            if targets is None:
                LOG.warning(
                    "[%s] 拒绝转移 %s：当前状态 %s 不允许该操作",
                    self.name,
                    transition.value,
                    previous.value,
                )
                self._notify(transition, TransitionResult.REJECTED, previous, previous)
                return TransitionResult.REJECTED
            on_success, on_failure = targets
            result = self._invoke(transition, previous)
            current = on_success if result is TransitionResult.SUCCESS else on_failure
            with self._state_lock:
                self._state = current
            LOG.debug(
                "[%s] %s: %s -> %s (%s)",
                self.name,
                transition.value,
                previous.value,
                current.value,
                result.value,
            )
            self._notify(transition, result, previous, current)
            return result

    def _invoke(self, transition: Transition, previous: LifecycleState) -> TransitionResult:
        callback = self._callbacks.get(transition)
        if callback is None:
            return TransitionResult.SUCCESS
        try:
            result = callback(previous)
        except Exception:
            LOG.exception("[%s] %s 回调抛出异常", self.name, transition.value)
            return TransitionResult.FAILURE
        if result is TransitionResult.REJECTED:
            LOG.error("[%s] %s 回调返回了非法结果 %s", self.name, transition.value, result.value)
            return TransitionResult.FAILURE
        return result

    def _notify(
        self,
        transition: Transition,
        result: TransitionResult,
        previous: LifecycleState,
        current: LifecycleState,
    ) -> None:
        if self._observer is None:
            return
        try:
            self._observer(transition, result, previous, current)
        except Exception:
            LOG.exception("[%s] 状态观察者处理 %s 失败", self.name, transition.value)
