"""UDP 发送节点的调试脚本：本地监听数据报并回显解码结果。"""

from __future__ import annotations

import logging
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Any, Tuple

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    # 将项目根目录加入 sys.path，兼容直接运行该脚本的场景
    sys.path.insert(0, str(ROOT_DIR))

from bus.event_bus import EventBus
from bus.topics import Topics
from drivers.udp_sender import UdpSenderConfig, UdpSenderNode
from drivers.udp_sender.core import decode_int32
from drivers.udp_sender.runtime import make_status_logger
from utils.communication.udp import UdpReceiver
from utils.runtime import setup_basic_logging


def main() -> None:
    setup_basic_logging()
    log = logging.getLogger("test.udp_sender")

    def _on_datagram(frame: bytes, addr: Tuple[str, int]) -> None:
        try:
            log.info("收到来自 %s:%s 的数据报 value=%s", addr[0], addr[1], decode_int32(frame))
        except ValueError as exc:
            log.warning("无法解码数据报 %s: %s", frame.hex(), exc)

    receiver = UdpReceiver(0, _on_datagram, bind_ip="127.0.0.1")
    receiver.start()
    log.info("监听端口 %s", receiver.bound_port)

    bus = EventBus()
    config = UdpSenderConfig(ip="127.0.0.1", port=receiver.bound_port)
    node = UdpSenderNode(bus=bus, config=config)
    node.attach()
    sender_topics = Topics.Drivers.UdpSender
    status_sub = bus.subscribe(sender_topics.STATUS, make_status_logger())

    stop_event = threading.Event()

    def _shutdown(_: Any = None, __: Any = None) -> None:
        log.info("收到停止信号，准备退出 UDP 发送测试")
        stop_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _shutdown)

    bus.publish(sender_topics.COMMAND, action="configure")
    bus.publish(sender_topics.COMMAND, action="activate")

    counter = 0
    try:
        while not stop_event.is_set() and counter < 20:
            bus.publish(config.topic, data=counter)
            counter += 1
            time.sleep(0.25)
        log.info("停用节点，之后发布的消息不应再被发送")
        bus.publish(sender_topics.COMMAND, action="deactivate")
        bus.publish(config.topic, data=-1)
        time.sleep(0.5)
        bus.publish(sender_topics.COMMAND, action="cleanup")
    finally:
        node.shutdown()
        status_sub.unsubscribe()
        receiver.stop()


if __name__ == "__main__":
    main()
