"""UDP 发送节点：生命周期状态机 + 整数消息到 UDP 数据报的门控转发。"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

from bus.event_bus import EventBus, Subscription
from bus.qos import QoSProfile
from bus.topics import TOPIC_PROTOTYPES, Topics, register_module_topics
from drivers.iDriver import IDriver
from drivers.lifecycle import (
    LifecycleState,
    LifecycleStateMachine,
    Transition,
    TransitionResult,
)
from utils.communication.udp import UdpCommunicationError, UdpSocket
from utils.io_context import IoContext

from .config import ConfigError, UdpSenderConfig
from .core import encode_int32
from .driver import SocketFactory, UdpDriver

LOG = logging.getLogger(__name__)

UdpSenderTopics = Topics.Drivers.UdpSender

_ACTIONS = {transition.value: transition for transition in Transition}


class UdpSenderNode(IDriver):
    """
    受生命周期管理的 UDP 发送节点。

    configure 时创建驱动并打开 socket、订阅整数消息；只有处于 ACTIVE 状态时
    收到的消息才会被编码并异步发送，其余情况静默丢弃。
    """

    def __init__(
        self,
        bus: EventBus,
        config: UdpSenderConfig,
        *,
        ctx: Optional[IoContext] = None,
        socket_factory: SocketFactory = UdpSocket,
        name: str = "udp_sender",
    ) -> None:
        super().__init__(name=name, bus=bus)
        self.config = config
        # 未注入时自建 IoContext，并由节点负责停止
        self._owns_ctx = ctx is None
        self._ctx = ctx if ctx is not None else IoContext(name=f"{name}.io")
        self._socket_factory = socket_factory
        self._lock = threading.RLock()
        self._driver: Optional[UdpDriver] = None
        self._subscription: Optional[Subscription] = None
        self._command_subscriptions: list[Subscription] = []
        self._active_config: Optional[UdpSenderConfig] = None
        self._pending_overrides: Dict[str, Any] = {}
        # 仅保护 _pending_overrides；转移回调内会获取 _lock，两者不能合并
        self._configure_lock = threading.RLock()
        self._machine = LifecycleStateMachine(
            {
                Transition.CONFIGURE: self._on_configure,
                Transition.ACTIVATE: self._on_activate,
                Transition.DEACTIVATE: self._on_deactivate,
                Transition.CLEANUP: self._on_cleanup,
                Transition.SHUTDOWN: self._on_shutdown,
            },
            name=name,
            observer=self._on_transition,
        )
        for topic, prototype in TOPIC_PROTOTYPES.items():
            self.bus.declare_topic(topic, prototype)
        LOG.info("ip: %s", config.ip)
        LOG.info("port: %s", config.port)

    # ------------------------------------------------------------------
    # 生命周期控制接口
    # ------------------------------------------------------------------

    @property
    def state(self) -> LifecycleState:
        return self._machine.state

    @property
    def active_config(self) -> Optional[UdpSenderConfig]:
        """本次配置周期生效的配置，未配置时为 None。"""
        return self._active_config

    def configure(self, overrides: Dict[str, Any] | None = None) -> TransitionResult:
        with self._configure_lock:
            self._pending_overrides = dict(overrides or {})
            try:
                return self._machine.trigger(Transition.CONFIGURE)
            finally:
                self._pending_overrides = {}

    def activate(self) -> TransitionResult:
        return self._machine.trigger(Transition.ACTIVATE)

    def deactivate(self) -> TransitionResult:
        return self._machine.trigger(Transition.DEACTIVATE)

    def cleanup(self) -> TransitionResult:
        return self._machine.trigger(Transition.CLEANUP)

    def shutdown_transition(self) -> TransitionResult:
        return self._machine.trigger(Transition.SHUTDOWN)

    def is_sender_open(self) -> bool:
        sender = self._current_sender()
        return sender is not None and sender.is_open()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """等待订阅队列中的消息处理完毕，主要用于测试与优雅退出。"""
        subscription = self._subscription
        if subscription is None:
            return True
        return subscription.wait_idle(timeout)

    # ------------------------------------------------------------------
    # IDriver 接口
    # ------------------------------------------------------------------

    def attach(self) -> None:
        LOG.debug("Attaching udp sender node")
        sub = self.bus.subscribe(UdpSenderTopics.COMMAND, self._on_bus_command)
        self._command_subscriptions.append(sub)
        self.publish(UdpSenderTopics.STATUS, event="ready", payload={"state": self.state.value})

    def detach(self) -> None:
        LOG.debug("Detaching udp sender node")
        for sub in self._command_subscriptions:
            sub.unsubscribe()
        self._command_subscriptions.clear()

    def handle_command(self, action: str, payload: Dict[str, Any] | None = None) -> TransitionResult | None:
        normalized = action.lower()
        transition = _ACTIONS.get(normalized)
        if transition is None:
            LOG.warning("Unknown udp sender command: %s", action)
            return None
        if transition is Transition.CONFIGURE:
            return self.configure(payload)
        return self._machine.trigger(transition)

    def shutdown(self) -> None:
        """进程退出钩子：驱动状态机进入 FINALIZED 并注销指令监听。"""
        if self.state is not LifecycleState.FINALIZED:
            self.shutdown_transition()
        self.detach()

    # ------------------------------------------------------------------
    # 转移回调
    # ------------------------------------------------------------------

    def _on_configure(self, _: LifecycleState) -> TransitionResult:
        try:
            config = self.config.merged(self._pending_overrides)
        except ConfigError as exc:
            LOG.error("Invalid udp sender overrides %s: %s", self._pending_overrides, exc)
            return TransitionResult.FAILURE
        driver = UdpDriver(self._ctx, socket_factory=self._socket_factory, open_timeout=config.open_timeout)
        try:
            driver.init_sender(config.ip, config.port)
            if not driver.sender().is_open():
                driver.sender().open()
        except UdpCommunicationError as exc:
            LOG.error("Error creating UDP sender: %s:%s - %s", config.ip, config.port, exc)
            driver.release()
            return TransitionResult.FAILURE

        self.bus.declare_topic(config.topic, TOPIC_PROTOTYPES[UdpSenderTopics.WRITE])
        qos = QoSProfile.keep_last(config.qos_depth).best_effort()
        try:
            subscription = self.bus.subscribe(config.topic, self._on_message, qos=qos)
        except Exception as exc:
            LOG.error("Error subscribing to %s: %s", config.topic, exc)
            driver.release()
            return TransitionResult.FAILURE

        with self._lock:
            self._driver = driver
            self._subscription = subscription
            self._active_config = config
        LOG.debug("UDP sender successfully configured.")
        return TransitionResult.SUCCESS

    def _on_activate(self, _: LifecycleState) -> TransitionResult:
        LOG.debug("UDP sender activated.")
        return TransitionResult.SUCCESS

    def _on_deactivate(self, _: LifecycleState) -> TransitionResult:
        LOG.debug("UDP sender deactivated.")
        return TransitionResult.SUCCESS

    def _on_cleanup(self, _: LifecycleState) -> TransitionResult:
        self._release_resources()
        LOG.debug("UDP sender cleaned up.")
        return TransitionResult.SUCCESS

    def _on_shutdown(self, previous: LifecycleState) -> TransitionResult:
        LOG.debug("UDP sender shutting down.")
        config = self._active_config or self.config
        if not config.release_on_shutdown:
            held = self._held_resources()
            if held:
                LOG.warning(
                    "shutdown from %s without cleanup, resources left until process exit: %s",
                    previous.value,
                    ", ".join(held),
                )
            return TransitionResult.SUCCESS
        self._release_resources()
        if self._owns_ctx:
            self._ctx.stop()
        return TransitionResult.SUCCESS

    def _release_resources(self) -> None:
        """释放订阅、socket 与驱动；每一步先判空，重复调用不会重复关闭。"""
        with self._lock:
            subscription = self._subscription
            driver = self._driver
            self._subscription = None
            self._driver = None
            self._active_config = None
        if subscription is not None:
            subscription.unsubscribe()
            if subscription.dropped:
                LOG.info("%s: %d messages dropped on queue overflow", subscription.topic, subscription.dropped)
        if driver is not None:
            driver.release()

    def _current_sender(self) -> Optional[UdpSocket]:
        with self._lock:
            driver = self._driver
        return driver.current_sender() if driver is not None else None

    def _held_resources(self) -> list[str]:
        held: list[str] = []
        if self._subscription is not None:
            held.append(f"subscription({self._subscription.topic})")
        if self.is_sender_open():
            held.append("udp socket")
        if self._owns_ctx and self._ctx.running:
            held.append("io context")
        return held

    # ------------------------------------------------------------------
    # 消息与事件回调
    # ------------------------------------------------------------------

    def _on_message(self, data: Any, **_: Any) -> None:
        """门控：仅在 ACTIVE 且 socket 已打开时编码并提交发送，其余情况静默丢弃。"""
        with self._machine.guard(LifecycleState.ACTIVE) as active:
            if not active:
                LOG.debug("drop message %r: state=%s", data, self._machine.state.value)
                return
            # shutdown 回调先释放资源再提交状态，此处仍可能看到 ACTIVE
            sender = self._current_sender()
            if sender is None or not sender.is_open():
                return
            try:
                buffer = encode_int32(data)
            except ValueError as exc:
                LOG.warning("drop message %r: %s", data, exc)
                return
            sender.async_send(buffer)

    def _on_transition(
        self,
        transition: Transition,
        result: TransitionResult,
        previous: LifecycleState,
        current: LifecycleState,
    ) -> None:
        payload: Dict[str, Any] = {
            "transition": transition.value,
            "result": result.value,
            "previous": previous.value,
            "state": current.value,
        }
        config = self._active_config
        if config is not None:
            payload["endpoint"] = config.describe()
        subscription = self._subscription
        if subscription is not None:
            payload["dropped"] = subscription.dropped
        self.publish(UdpSenderTopics.STATUS, event="transition", payload=payload)

    def _on_bus_command(self, action: str, payload: Any = None, **_: Any) -> None:
        """总线指令入口，payload 仅对 configure 有意义（覆盖配置）。"""
        self.handle_command(action, payload if isinstance(payload, dict) else None)


register_module_topics(
    "udp_sender",
    publish={
        UdpSenderTopics.STATUS: "UDP 发送节点的生命周期转移事件",
    },
    subscribe={
        UdpSenderTopics.COMMAND: "生命周期控制指令（configure/activate/deactivate/cleanup/shutdown）",
        UdpSenderTopics.WRITE: "待转发为 UDP 数据报的整数消息",
    },
)
