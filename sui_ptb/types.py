"""Addresses, object references, identifiers and Move type tags."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Tuple

from .base58 import base58_decode, base58_encode
from .bcs import ADDRESS_LENGTH, BCSDecodeError, Deserializer, Serializer

SUI_FRAMEWORK_ADDRESS = "0x" + "0" * 63 + "2"
MOVE_STDLIB_ADDRESS = "0x" + "0" * 63 + "1"
SUI_COIN_TYPE = "0x2::sui::SUI"
DIGEST_LENGTH = 32

_IDENTIFIER_RE = re.compile(r"^(?:[A-Za-z][A-Za-z0-9_]*|_[A-Za-z0-9_]+)$")


class ConstructionError(ValueError):
    """Raised when a transaction component is malformed at build time."""


def normalize_address(value: str) -> str:
    """Return ``value`` as ``0x`` followed by 64 lowercase hex digits."""

    if not isinstance(value, str):
        raise ConstructionError(f"address must be a string, got {type(value).__name__}")
    raw = value.strip().lower()
    if raw.startswith("0x"):
        raw = raw[2:]
    if not raw or len(raw) > ADDRESS_LENGTH * 2 or any(c not in "0123456789abcdef" for c in raw):
        raise ConstructionError(f"invalid address: {value!r}")
    return "0x" + raw.rjust(ADDRESS_LENGTH * 2, "0")


def address_bytes(value: str) -> bytes:
    return bytes.fromhex(normalize_address(value)[2:])


def validate_identifier(name: str) -> str:
    if not isinstance(name, str) or not _IDENTIFIER_RE.match(name):
        raise ConstructionError(f"invalid Move identifier: {name!r}")
    return name


@dataclass(frozen=True)
class ObjectRef:
    """Versioned reference to an object: id, sequence number and digest."""

    object_id: str
    version: int
    digest: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "object_id", normalize_address(self.object_id))
        if not 0 <= self.version < 2**64:
            raise ConstructionError(f"object version out of range: {self.version}")
        if len(self.digest) != DIGEST_LENGTH:
            raise ConstructionError(
                f"object digest must be {DIGEST_LENGTH} bytes, got {len(self.digest)}"
            )

    @classmethod
    def from_rpc(cls, data: Mapping[str, Any]) -> "ObjectRef":
        """Build a reference from a node ``SuiObjectData``-style mapping."""

        try:
            digest = base58_decode(str(data["digest"]))
            return cls(
                object_id=str(data["objectId"]),
                version=int(data["version"]),
                digest=digest,
            )
        except (KeyError, ValueError) as exc:
            raise ConstructionError(f"malformed object reference: {data!r}") from exc

    @property
    def digest_base58(self) -> str:
        return base58_encode(self.digest)

    def serialize(self, ser: Serializer) -> None:
        ser.address(self.object_id)
        ser.u64(self.version)
        ser.bytes(self.digest)

    def __str__(self) -> str:
        return f"{self.object_id}@{self.version}"


_PRIMITIVE_TAGS = {
    "bool": 0,
    "u8": 1,
    "u64": 2,
    "u128": 3,
    "address": 4,
    "signer": 5,
    "u16": 8,
    "u32": 9,
    "u256": 10,
}
_VECTOR_TAG = 6
_STRUCT_TAG = 7
_TAG_NAMES = {index: name for name, index in _PRIMITIVE_TAGS.items()}


@dataclass(frozen=True)
class StructTag:
    address: str
    module: str
    name: str
    type_params: Tuple["TypeTag", ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "address", normalize_address(self.address))
        validate_identifier(self.module)
        validate_identifier(self.name)
        object.__setattr__(self, "type_params", tuple(self.type_params))

    @property
    def path(self) -> str:
        """``address::module::name`` without type parameters."""

        return f"{self.address}::{self.module}::{self.name}"

    def serialize(self, ser: Serializer) -> None:
        ser.address(self.address)
        ser.str(self.module)
        ser.str(self.name)
        ser.sequence(self.type_params, lambda s, tag: tag.serialize(s))

    def __str__(self) -> str:
        if not self.type_params:
            return self.path
        params = ", ".join(str(param) for param in self.type_params)
        return f"{self.path}<{params}>"


@dataclass(frozen=True)
class TypeTag:
    """Move type tag: a primitive name, ``vector`` or ``struct``."""

    kind: str
    element: "TypeTag | None" = None
    struct: StructTag | None = None

    @classmethod
    def parse(cls, text: str) -> "TypeTag":
        return _TypeTagParser(text).parse()

    @classmethod
    def vector(cls, element: "TypeTag") -> "TypeTag":
        return cls("vector", element=element)

    @classmethod
    def from_struct(cls, struct: StructTag) -> "TypeTag":
        return cls("struct", struct=struct)

    def serialize(self, ser: Serializer) -> None:
        if self.kind == "vector":
            ser.uleb128(_VECTOR_TAG)
            assert self.element is not None
            self.element.serialize(ser)
        elif self.kind == "struct":
            ser.uleb128(_STRUCT_TAG)
            assert self.struct is not None
            self.struct.serialize(ser)
        else:
            ser.uleb128(_PRIMITIVE_TAGS[self.kind])

    @classmethod
    def deserialize(cls, de: Deserializer) -> "TypeTag":
        tag = de.uleb128()
        if tag == _VECTOR_TAG:
            return cls.vector(cls.deserialize(de))
        if tag == _STRUCT_TAG:
            address = de.address()
            module = de.str()
            name = de.str()
            params = [cls.deserialize(de) for _ in range(de.length())]
            return cls.from_struct(StructTag(address, module, name, tuple(params)))
        if tag not in _TAG_NAMES:
            raise BCSDecodeError(f"unknown type tag variant {tag}")
        return cls(_TAG_NAMES[tag])

    def __str__(self) -> str:
        if self.kind == "vector":
            return f"vector<{self.element}>"
        if self.kind == "struct":
            return str(self.struct)
        return self.kind


class _TypeTagParser:
    """Recursive-descent parser for canonical type strings."""

    def __init__(self, text: str) -> None:
        if not isinstance(text, str):
            raise ConstructionError(f"type tag must be a string, got {type(text).__name__}")
        self.text = text
        self.tokens = re.findall(r"::|<|>|,|[^\s:<>,]+", text)
        self.pos = 0

    def parse(self) -> TypeTag:
        tag = self._type()
        if self.pos != len(self.tokens):
            raise ConstructionError(f"unexpected trailing input in type tag {self.text!r}")
        return tag

    def _next(self) -> str:
        if self.pos >= len(self.tokens):
            raise ConstructionError(f"unexpected end of type tag {self.text!r}")
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def _expect(self, token: str) -> None:
        got = self._next()
        if got != token:
            raise ConstructionError(f"expected {token!r} in type tag {self.text!r}, got {got!r}")

    def _peek(self) -> str | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _type(self) -> TypeTag:
        head = self._next()
        if head in _PRIMITIVE_TAGS:
            return TypeTag(head)
        if head == "vector":
            self._expect("<")
            element = self._type()
            self._expect(">")
            return TypeTag.vector(element)
        self._expect("::")
        module = self._next()
        self._expect("::")
        name = self._next()
        params: List[TypeTag] = []
        if self._peek() == "<":
            self._next()
            params.append(self._type())
            while self._peek() == ",":
                self._next()
                params.append(self._type())
            self._expect(">")
        return TypeTag.from_struct(StructTag(head, module, name, tuple(params)))
