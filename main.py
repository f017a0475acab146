from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Any, Optional, Sequence

from bus.event_bus import EventBus
from bus.topics import Topics
from drivers.lifecycle import TransitionResult
from drivers.udp_sender import ConfigError, UdpSenderNode
from drivers.udp_sender.runtime import load_config, make_status_logger
from utils.runtime import setup_basic_logging


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(description="把总线上的整数消息转发为 UDP 数据报")
	parser.add_argument("--config", type=Path, default=None, help="配置文件路径，默认 drivers/udp_sender/config.json")
	parser.add_argument("--ip", default=None, help="覆盖目标 IP")
	parser.add_argument("--port", type=int, default=None, help="覆盖目标端口")
	parser.add_argument("--log-level", default="INFO", help="日志等级")
	return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
	"""程序入口：加载配置，挂载 UDP 发送节点并依次执行 configure、activate。"""

	args = build_parser().parse_args(argv)
	setup_basic_logging(level=args.log_level)
	log = logging.getLogger("app")
	try:
		config, _ = load_config(args.config, {"ip": args.ip, "port": args.port})
	except ConfigError as exc:
		log.error("配置加载失败: %s", exc)
		return 2

	bus = EventBus()
	node = UdpSenderNode(bus=bus, config=config)
	node.attach()
	status_sub = bus.subscribe(Topics.Drivers.UdpSender.STATUS, make_status_logger())
	stop_event = threading.Event()

	def _request_stop(_: Any = None, __: Any = None) -> None:
		log.info("收到停止信号，准备退出")
		stop_event.set()

	signal.signal(signal.SIGINT, _request_stop)
	if hasattr(signal, "SIGTERM"):
		signal.signal(signal.SIGTERM, _request_stop)

	try:
		if node.configure() is not TransitionResult.SUCCESS:
			log.error("UDP 发送节点配置失败，退出")
			return 1
		node.activate()
		log.info("UDP 发送节点已激活，等待主题 %s 上的消息", config.topic)
		while not stop_event.wait(0.5):
			pass
		node.deactivate()
		node.cleanup()
	finally:
		node.shutdown()
		status_sub.unsubscribe()
	return 0


if __name__ == "__main__":
	sys.exit(main())
