"""Binary Canonical Serialization (BCS) used by the Sui execution engine.

The encoding is deliberately strict: fixed-width integers are little-endian,
sequences and byte strings carry a ULEB128 length prefix, structs are the
concatenation of their fields in declaration order, and nothing is padded.
Decoding is total given the right layout, so any short read, trailing byte or
non-canonical length is reported as :class:`BCSDecodeError` instead of being
silently repaired.

Layouts describe the declared type of a value and know how to encode and
decode it::

    >>> Struct("Balance", [("value", U64)]).from_bytes(b"\\x05" + b"\\x00" * 7)
    {'value': 5}
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, List, Mapping, Sequence, Tuple

MAX_SEQUENCE_LENGTH = 2**31 - 1
MAX_ULEB128_VALUE = 2**32 - 1
ADDRESS_LENGTH = 32


class BCSDecodeError(ValueError):
    """Raised when bytes do not match the layout they are decoded with."""


class BCSEncodeError(ValueError):
    """Raised when a value cannot be represented by the requested layout."""


def encode_uleb128(value: int) -> bytes:
    if value < 0 or value > MAX_ULEB128_VALUE:
        raise BCSEncodeError(f"ULEB128 value out of range: {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


class Serializer:
    """Append-only BCS writer."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def output(self) -> bytes:
        return bytes(self._buffer)

    def _uint(self, value: int, width: int) -> None:
        if not isinstance(value, int) or isinstance(value, bool):
            raise BCSEncodeError(f"expected an integer, got {type(value).__name__}")
        if value < 0 or value >= 1 << (8 * width):
            raise BCSEncodeError(f"{value} does not fit in u{8 * width}")
        self._buffer += value.to_bytes(width, "little")

    def u8(self, value: int) -> None:
        self._uint(value, 1)

    def u16(self, value: int) -> None:
        self._uint(value, 2)

    def u32(self, value: int) -> None:
        self._uint(value, 4)

    def u64(self, value: int) -> None:
        self._uint(value, 8)

    def u128(self, value: int) -> None:
        self._uint(value, 16)

    def u256(self, value: int) -> None:
        self._uint(value, 32)

    def bool(self, value: bool) -> None:
        if not isinstance(value, bool):
            raise BCSEncodeError(f"expected a bool, got {type(value).__name__}")
        self._buffer.append(1 if value else 0)

    def uleb128(self, value: int) -> None:
        self._buffer += encode_uleb128(value)

    def fixed_bytes(self, value: bytes) -> None:
        self._buffer += value

    def bytes(self, value: bytes) -> None:
        self.uleb128(len(value))
        self._buffer += value

    def str(self, value: str) -> None:
        if not isinstance(value, str):
            raise BCSEncodeError(f"expected a string, got {type(value).__name__}")
        self.bytes(value.encode("utf-8"))

    def address(self, value: str) -> None:
        # Imported lazily: types depends on this module for its own encoders.
        from .types import address_bytes

        if not isinstance(value, str):
            raise BCSEncodeError(f"expected an address string, got {type(value).__name__}")
        self._buffer += address_bytes(value)

    def sequence(self, values: Sequence[Any], encoder: Callable[["Serializer", Any], None]) -> None:
        self.uleb128(len(values))
        for value in values:
            encoder(self, value)


class Deserializer:
    """Cursor over a BCS payload."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._offset = 0

    def remaining(self) -> int:
        return len(self._data) - self._offset

    def read(self, length: int) -> bytes:
        if length > self.remaining():
            raise BCSDecodeError(
                f"unexpected end of input: wanted {length} bytes at offset {self._offset}, "
                f"{self.remaining()} left"
            )
        chunk = self._data[self._offset : self._offset + length]
        self._offset += length
        return chunk

    def _uint(self, width: int) -> int:
        return int.from_bytes(self.read(width), "little")

    def u8(self) -> int:
        return self._uint(1)

    def u16(self) -> int:
        return self._uint(2)

    def u32(self) -> int:
        return self._uint(4)

    def u64(self) -> int:
        return self._uint(8)

    def u128(self) -> int:
        return self._uint(16)

    def u256(self) -> int:
        return self._uint(32)

    def bool(self) -> bool:
        raw = self.u8()
        if raw not in (0, 1):
            raise BCSDecodeError(f"invalid bool byte 0x{raw:02x}")
        return raw == 1

    def uleb128(self) -> int:
        value = 0
        shift = 0
        while True:
            byte = self.u8()
            value |= (byte & 0x7F) << shift
            if not byte & 0x80:
                if shift and byte == 0:
                    raise BCSDecodeError("non-canonical ULEB128 encoding")
                break
            shift += 7
            if shift > 28:
                raise BCSDecodeError("ULEB128 value overflows u32")
        if value > MAX_ULEB128_VALUE:
            raise BCSDecodeError("ULEB128 value overflows u32")
        return value

    def length(self) -> int:
        value = self.uleb128()
        if value > MAX_SEQUENCE_LENGTH:
            raise BCSDecodeError(f"sequence length {value} exceeds BCS maximum")
        return value

    def bytes(self) -> bytes:
        return self.read(self.length())

    def str(self) -> str:
        raw = self.bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise BCSDecodeError("string is not valid UTF-8") from exc

    def address(self) -> str:
        return "0x" + self.read(ADDRESS_LENGTH).hex()

    def finish(self) -> None:
        if self.remaining():
            raise BCSDecodeError(f"{self.remaining()} trailing bytes after decoding")


class Layout:
    """Declared type of a BCS value."""

    name = "layout"

    def encode(self, ser: Serializer, value: Any) -> None:
        raise NotImplementedError

    def decode(self, de: Deserializer) -> Any:
        raise NotImplementedError

    def to_bytes(self, value: Any) -> bytes:
        ser = Serializer()
        self.encode(ser, value)
        return ser.output()

    def from_bytes(self, data: bytes) -> Any:
        de = Deserializer(data)
        value = self.decode(de)
        de.finish()
        return value

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class _Primitive(Layout):
    def __init__(self, name: str) -> None:
        self.name = name

    def encode(self, ser: Serializer, value: Any) -> None:
        getattr(ser, self.name)(value)

    def decode(self, de: Deserializer) -> Any:
        return getattr(de, self.name)()


U8 = _Primitive("u8")
U16 = _Primitive("u16")
U32 = _Primitive("u32")
U64 = _Primitive("u64")
U128 = _Primitive("u128")
U256 = _Primitive("u256")
BOOL = _Primitive("bool")
ADDRESS = _Primitive("address")
STRING = _Primitive("str")


class _Bytes(Layout):
    name = "vector<u8>"

    def encode(self, ser: Serializer, value: Any) -> None:
        if not isinstance(value, (bytes, bytearray)):
            raise BCSEncodeError(f"expected bytes, got {type(value).__name__}")
        ser.bytes(bytes(value))

    def decode(self, de: Deserializer) -> bytes:
        return de.bytes()


BYTES = _Bytes()


class Vector(Layout):
    def __init__(self, element: Layout) -> None:
        self.element = element
        self.name = f"vector<{element.name}>"

    def encode(self, ser: Serializer, value: Any) -> None:
        if isinstance(value, (str, Mapping)) or not isinstance(value, Iterable):
            raise BCSEncodeError(f"{self.name} expects a sequence, got {type(value).__name__}")
        ser.sequence(list(value), self.element.encode)

    def decode(self, de: Deserializer) -> List[Any]:
        return [self.element.decode(de) for _ in range(de.length())]


class OptionOf(Layout):
    """Move ``Option<T>``: a vector of at most one element on the wire."""

    def __init__(self, element: Layout) -> None:
        self.element = element
        self.name = f"option<{element.name}>"

    def encode(self, ser: Serializer, value: Any) -> None:
        if value is None:
            ser.uleb128(0)
            return
        ser.uleb128(1)
        self.element.encode(ser, value)

    def decode(self, de: Deserializer) -> Any:
        tag = de.length()
        if tag == 0:
            return None
        if tag != 1:
            raise BCSDecodeError(f"option length must be 0 or 1, got {tag}")
        return self.element.decode(de)


class Struct(Layout):
    """Field-by-field struct layout decoding into a ``dict``."""

    def __init__(self, name: str, fields: Iterable[Tuple[str, Layout]]) -> None:
        self.name = name
        self.fields: List[Tuple[str, Layout]] = list(fields)

    def encode(self, ser: Serializer, value: Any) -> None:
        if not isinstance(value, Mapping):
            raise BCSEncodeError(f"{self.name} expects a mapping of field values")
        for field_name, layout in self.fields:
            if field_name not in value:
                raise BCSEncodeError(f"{self.name} is missing field '{field_name}'")
            layout.encode(ser, value[field_name])

    def decode(self, de: Deserializer) -> dict[str, Any]:
        return {field_name: layout.decode(de) for field_name, layout in self.fields}
