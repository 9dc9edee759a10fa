"""
Borsh encoding helpers.

Fixed-width integers are little-endian, ``Vec<T>`` and strings carry a u32
length prefix, ``Option<T>`` is a one-byte tag followed by the value when
present. There is no padding anywhere.
"""

import struct
from typing import Any, Callable, Iterable, TypeVar

from ..errors import ProofSerializeError

T = TypeVar("T")


def _check_range(value: int, bits: int) -> None:
    if not isinstance(value, int) or value < 0 or value >= (1 << bits):
        raise ProofSerializeError(f"value {value!r} does not fit into u{bits}")


def encode_u8(v: int) -> bytes:
    _check_range(v, 8)
    return struct.pack("<B", v)


def encode_u32(v: int) -> bytes:
    _check_range(v, 32)
    return struct.pack("<I", v)


def encode_u64(v: int) -> bytes:
    _check_range(v, 64)
    return struct.pack("<Q", v)


def encode_u128(v: int) -> bytes:
    _check_range(v, 128)
    return v.to_bytes(16, "little")


def encode_fixed(v: bytes, length: int) -> bytes:
    if len(v) != length:
        raise ProofSerializeError(f"expected {length} bytes, got {len(v)}")
    return bytes(v)


def encode_bytes(v: bytes) -> bytes:
    return encode_u32(len(v)) + bytes(v)


def encode_string(v: str) -> bytes:
    return encode_bytes(v.encode("utf-8"))


def encode_vec(items: Iterable[T], encode_item: Callable[[T], bytes]) -> bytes:
    items = list(items)
    out = bytearray(encode_u32(len(items)))
    for item in items:
        out += encode_item(item)
    return bytes(out)


def encode_option(value: T | None, encode_value: Callable[[T], bytes]) -> bytes:
    if value is None:
        return b"\x00"
    return b"\x01" + encode_value(value)


class BorshReader:
    """Sequential reader over a Borsh buffer."""

    def __init__(self, data: bytes):
        self.data = bytes(data)
        self.offset = 0

    def _take(self, n: int) -> bytes:
        end = self.offset + n
        if end > len(self.data):
            raise ProofSerializeError(
                f"unexpected end of data: need {n} bytes at offset {self.offset}, "
                f"have {len(self.data) - self.offset}"
            )
        chunk = self.data[self.offset:end]
        self.offset = end
        return chunk

    def read_u8(self) -> int:
        return self._take(1)[0]

    def read_u32(self) -> int:
        return struct.unpack("<I", self._take(4))[0]

    def read_u64(self) -> int:
        return struct.unpack("<Q", self._take(8))[0]

    def read_u128(self) -> int:
        return int.from_bytes(self._take(16), "little")

    def read_fixed(self, length: int) -> bytes:
        return self._take(length)

    def read_bytes(self) -> bytes:
        return self._take(self.read_u32())

    def read_string(self) -> str:
        raw = self.read_bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProofSerializeError("invalid utf-8 string") from e

    def read_vec(self, read_item: Callable[["BorshReader"], T]) -> list[T]:
        return [read_item(self) for _ in range(self.read_u32())]

    def read_option(self, read_value: Callable[["BorshReader"], T]) -> T | None:
        tag = self.read_u8()
        if tag == 0:
            return None
        if tag == 1:
            return read_value(self)
        raise ProofSerializeError(f"invalid Option tag {tag}")

    def finish(self) -> None:
        """Fail if any bytes are left unread."""
        if self.offset != len(self.data):
            raise ProofSerializeError(
                f"{len(self.data) - self.offset} trailing bytes after decoding"
            )


def decode_all(data: bytes, read: Callable[[BorshReader], Any]) -> Any:
    """Decode ``data`` with ``read`` and require that every byte is consumed."""
    reader = BorshReader(data)
    value = read(reader)
    reader.finish()
    return value
