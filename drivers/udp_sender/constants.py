"""UDP 发送驱动使用的默认常量配置。"""

DEFAULT_TOPIC = "udp_write"  # 上游整数消息的默认订阅主题
DEFAULT_QOS_DEPTH = 32  # 尽力而为订阅保留的最近消息条数
DEFAULT_OPEN_TIMEOUT = 3.0  # 打开 socket 的超时时间（秒）
DEFAULT_RELEASE_ON_SHUTDOWN = True  # shutdown 时是否回收 cleanup 未释放的资源
