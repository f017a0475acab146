"""事件总线包：重新导出总线、QoS 与主题定义。"""

from __future__ import annotations

from .event_bus import EventBus, Subscription
from .qos import QoSProfile, QueuedListener, Reliability
from .topics import TOPIC_PROTOTYPES, TOPIC_REGISTRY, Topics, get_module_topics, register_module_topics

__all__ = [
    "EventBus",
    "Subscription",
    "QoSProfile",
    "QueuedListener",
    "Reliability",
    "Topics",
    "TOPIC_PROTOTYPES",
    "TOPIC_REGISTRY",
    "register_module_topics",
    "get_module_topics",
]
