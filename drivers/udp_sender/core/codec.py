"""整数消息的线格式：4 字节、有符号、小端（struct 格式 "<i"）。"""

from __future__ import annotations

import operator
import struct

WIRE_FORMAT = struct.Struct("<i")
PAYLOAD_SIZE = WIRE_FORMAT.size
INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


def encode_int32(value: int) -> bytes:
    """把整数编码为固定 4 字节负载，超出 int32 范围或非整数时抛出 ValueError。"""

    if isinstance(value, bool):
        raise ValueError("布尔值不是合法的整数消息")
    try:
        number = operator.index(value)
    except TypeError as exc:
        raise ValueError(f"消息不是整数: {value!r}") from exc
    if not INT32_MIN <= number <= INT32_MAX:
        raise ValueError(f"消息超出 int32 范围: {number}")
    return WIRE_FORMAT.pack(number)


def decode_int32(payload: bytes) -> int:
    """接收端的逆操作，长度不为 4 时抛出 ValueError。"""

    if len(payload) != PAYLOAD_SIZE:
        raise ValueError(f"负载长度应为 {PAYLOAD_SIZE} 字节，实际 {len(payload)}")
    return WIRE_FORMAT.unpack(payload)[0]


__all__ = [
    "INT32_MAX",
    "INT32_MIN",
    "PAYLOAD_SIZE",
    "WIRE_FORMAT",
    "decode_int32",
    "encode_int32",
]
