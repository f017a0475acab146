"""集中管理事件主题名称、消息原型及模块级元数据。"""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping

ModuleTopicDetails = Dict[str, str]
ModuleTopicProfile = Dict[str, ModuleTopicDetails]


def _copy_mapping(mapping: Mapping[str, str] | None) -> ModuleTopicDetails:
    return dict(mapping) if mapping else {}


class Topics:
    """按领域分组的事件主题常量，避免魔法字符串散落各处。"""

    class Drivers:
        ROOT = "drivers"

        class UdpSender:
            COMMAND = "drivers.udp_sender.command"
            STATUS = "drivers.udp_sender.status"
            # 上游生产者写入待发送整数的主题
            WRITE = "udp_write"

    class System:
        CONTROL = "system.control"
        SHUTDOWN = "system.shutdown"


# 主题原型：函数签名即为该主题的消息数据规格（MDS）


def _command_prototype(action: str, payload: Any = None) -> None:
    """生命周期控制指令。"""


def _status_prototype(event: str, payload: Any = None) -> None:
    """模块状态事件。"""


def _write_prototype(data: int) -> None:
    """待发送的整数消息。"""


TOPIC_PROTOTYPES: Dict[str, Callable[..., None]] = {
    Topics.Drivers.UdpSender.COMMAND: _command_prototype,
    Topics.Drivers.UdpSender.STATUS: _status_prototype,
    Topics.Drivers.UdpSender.WRITE: _write_prototype,
}


TOPIC_REGISTRY: Dict[str, ModuleTopicProfile] = {}


def register_module_topics(
    module_name: str,
    *,
    publish: Mapping[str, str] | None = None,
    subscribe: Mapping[str, str] | None = None,
) -> None:
    """记录模块发布与订阅的主题，便于文档化与调试。"""

    TOPIC_REGISTRY[module_name] = {
        "publish": _copy_mapping(publish),
        "subscribe": _copy_mapping(subscribe),
    }


def get_module_topics(module_name: str) -> ModuleTopicProfile | None:
    """返回已登记的模块主题信息。"""

    return TOPIC_REGISTRY.get(module_name)
