"""Byte-order aware primitive reader/writer for patch containers.

Values are always packed little-endian first and then fully reversed when the
stream is big-endian, so the result never depends on the host byte order.
Strings use a 7-bit variable-length byte count followed by UTF-8 bytes.
"""

from __future__ import annotations

import struct
from enum import Enum
from typing import BinaryIO

from transformcache.errors import CodecFailure


class ByteOrder(Enum):
    LITTLE = "little"
    BIG = "big"


# ── Byte swapping ─────────────────────────────────────────────


def _swap_int(value: int, width: int, signed: bool) -> int:
    raw = value.to_bytes(width, "little", signed=signed)
    return int.from_bytes(raw[::-1], "little", signed=signed)


def swap_int16(value: int) -> int:
    return _swap_int(value, 2, True)


def swap_uint16(value: int) -> int:
    return _swap_int(value, 2, False)


def swap_int32(value: int) -> int:
    return _swap_int(value, 4, True)


def swap_uint32(value: int) -> int:
    return _swap_int(value, 4, False)


def swap_int64(value: int) -> int:
    return _swap_int(value, 8, True)


def swap_uint64(value: int) -> int:
    return _swap_int(value, 8, False)


def swap_float32(raw: bytes) -> bytes:
    """Reverse the four bytes of an IEEE single."""
    if len(raw) != 4:
        raise CodecFailure(f"float32 needs 4 bytes, got {len(raw)}")
    return raw[::-1]


def swap_float64(raw: bytes) -> bytes:
    """Reverse the eight bytes of an IEEE double."""
    if len(raw) != 8:
        raise CodecFailure(f"float64 needs 8 bytes, got {len(raw)}")
    return raw[::-1]


# Little-endian struct codes; reversal turns them into big-endian.
_FORMATS = {
    "i16": "<h",
    "u16": "<H",
    "i32": "<i",
    "u32": "<I",
    "i64": "<q",
    "u64": "<Q",
    "f32": "<f",
    "f64": "<d",
}


class EndianWriter:
    """Write primitives to a binary stream in a fixed byte order."""

    def __init__(self, stream: BinaryIO, order: ByteOrder = ByteOrder.BIG) -> None:
        self._stream = stream
        self._big = order is ByteOrder.BIG

    def _put(self, kind: str, value: int | float) -> None:
        try:
            raw = struct.pack(_FORMATS[kind], value)
        except struct.error as e:
            raise CodecFailure(f"cannot pack {value!r} as {kind}: {e}") from e
        self._stream.write(raw[::-1] if self._big else raw)

    def write_int16(self, value: int) -> None:
        self._put("i16", value)

    def write_uint16(self, value: int) -> None:
        self._put("u16", value)

    def write_int32(self, value: int) -> None:
        self._put("i32", value)

    def write_uint32(self, value: int) -> None:
        self._put("u32", value)

    def write_int64(self, value: int) -> None:
        self._put("i64", value)

    def write_uint64(self, value: int) -> None:
        self._put("u64", value)

    def write_float32(self, value: float) -> None:
        self._put("f32", value)

    def write_float64(self, value: float) -> None:
        self._put("f64", value)

    def write_bool(self, value: bool) -> None:
        self._stream.write(b"\x01" if value else b"\x00")

    def write_vector(self, values: tuple[float, ...]) -> None:
        for v in values:
            self.write_float32(v)

    def write_string(self, value: str) -> None:
        data = value.encode("utf-8")
        self._write_7bit_length(len(data))
        self._stream.write(data)

    def _write_7bit_length(self, length: int) -> None:
        while length >= 0x80:
            self._stream.write(bytes([(length & 0x7F) | 0x80]))
            length >>= 7
        self._stream.write(bytes([length]))


class EndianReader:
    """Read primitives written by :class:`EndianWriter`.

    A short read raises :class:`CodecFailure` so callers can tell a truncated
    stream from a well-formed one.
    """

    def __init__(self, stream: BinaryIO, order: ByteOrder = ByteOrder.BIG) -> None:
        self._stream = stream
        self._big = order is ByteOrder.BIG

    def _take(self, size: int) -> bytes:
        raw = self._stream.read(size)
        if len(raw) != size:
            raise CodecFailure(f"unexpected end of stream: wanted {size} bytes, got {len(raw)}")
        return raw

    def _get(self, kind: str) -> int | float:
        fmt = _FORMATS[kind]
        raw = self._take(struct.calcsize(fmt))
        return struct.unpack(fmt, raw[::-1] if self._big else raw)[0]

    def read_int16(self) -> int:
        return int(self._get("i16"))

    def read_uint16(self) -> int:
        return int(self._get("u16"))

    def read_int32(self) -> int:
        return int(self._get("i32"))

    def read_uint32(self) -> int:
        return int(self._get("u32"))

    def read_int64(self) -> int:
        return int(self._get("i64"))

    def read_uint64(self) -> int:
        return int(self._get("u64"))

    def read_float32(self) -> float:
        return float(self._get("f32"))

    def read_float64(self) -> float:
        return float(self._get("f64"))

    def read_bool(self) -> bool:
        return self._take(1) != b"\x00"

    def read_vector(self, size: int) -> tuple[float, ...]:
        return tuple(self.read_float32() for _ in range(size))

    def read_string(self) -> str:
        length = self._read_7bit_length()
        try:
            return self._take(length).decode("utf-8")
        except UnicodeDecodeError as e:
            raise CodecFailure(f"string is not valid UTF-8: {e}") from e

    def _read_7bit_length(self) -> int:
        result = 0
        shift = 0
        while True:
            byte = self._take(1)[0]
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return result
            shift += 7
            if shift > 28:
                raise CodecFailure("string length prefix is too long")
