"""UDP 发送驱动的核心协议组件。"""

from .codec import INT32_MAX, INT32_MIN, PAYLOAD_SIZE, decode_int32, encode_int32

__all__ = [
    "INT32_MAX",
    "INT32_MIN",
    "PAYLOAD_SIZE",
    "decode_int32",
    "encode_int32",
]
