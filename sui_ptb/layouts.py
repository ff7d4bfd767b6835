"""BCS layouts for Move types returned by the engine.

Return values arrive as raw bytes tagged with their declared Move type. The
registry turns such a type (``u64``, ``vector<u8>``,
``0x2::coin::Coin<0x2::sui::SUI>``) into a :class:`~sui_ptb.bcs.Layout`.
Framework structs are mirrored field for field; anything else must be
registered by the caller.
"""

from __future__ import annotations

from typing import Callable, Dict, Sequence, Union

from .bcs import (
    ADDRESS,
    BOOL,
    BYTES,
    STRING,
    U8,
    U16,
    U32,
    U64,
    U128,
    U256,
    Layout,
    OptionOf,
    Struct,
    Vector,
)
from .types import TypeTag

ID = Struct("0x2::object::ID", [("bytes", ADDRESS)])
UID = Struct("0x2::object::UID", [("id", ID)])
BALANCE = Struct("0x2::balance::Balance", [("value", U64)])
COIN = Struct("0x2::coin::Coin", [("id", UID), ("balance", BALANCE)])
KIOSK = Struct(
    "0x2::kiosk::Kiosk",
    [
        ("id", UID),
        ("profits", BALANCE),
        ("owner", ADDRESS),
        ("item_count", U32),
        ("allow_extensions", BOOL),
    ],
)
KIOSK_OWNER_CAP = Struct("0x2::kiosk::KioskOwnerCap", [("id", UID), ("for", ID)])

_PRIMITIVES: Dict[str, Layout] = {
    "bool": BOOL,
    "u8": U8,
    "u16": U16,
    "u32": U32,
    "u64": U64,
    "u128": U128,
    "u256": U256,
    "address": ADDRESS,
    "signer": ADDRESS,
}

LayoutFactory = Callable[[Sequence[Layout]], Layout]
LayoutEntry = Union[Layout, LayoutFactory]


class UnknownLayoutError(KeyError):
    """Raised when no layout is registered for a Move struct."""

    def __str__(self) -> str:
        return f"no layout registered for {self.args[0]}"


class LayoutRegistry:
    """Map Move struct paths to layouts or layout factories."""

    def __init__(self) -> None:
        self._entries: Dict[str, LayoutEntry] = {}

    def register(self, struct_path: str, entry: LayoutEntry) -> None:
        """Register ``entry`` for ``address::module::name``.

        ``entry`` is either a layout or a callable receiving the layouts of the
        struct's type parameters, for generic structs.
        """

        tag = TypeTag.parse(struct_path)
        if tag.struct is None or tag.struct.type_params:
            raise ValueError(f"expected a struct path without type parameters: {struct_path}")
        self._entries[tag.struct.path] = entry

    def layout_for(self, type_tag: TypeTag | str) -> Layout:
        tag = TypeTag.parse(type_tag) if isinstance(type_tag, str) else type_tag
        if tag.kind in _PRIMITIVES:
            return _PRIMITIVES[tag.kind]
        if tag.kind == "vector":
            assert tag.element is not None
            if tag.element.kind == "u8":
                return BYTES
            return Vector(self.layout_for(tag.element))
        assert tag.struct is not None
        entry = self._entries.get(tag.struct.path)
        if entry is None:
            raise UnknownLayoutError(str(tag))
        if isinstance(entry, Layout):
            return entry
        return entry([self.layout_for(param) for param in tag.struct.type_params])


def default_registry() -> LayoutRegistry:
    """Return a registry pre-populated with Move stdlib and framework layouts."""

    registry = LayoutRegistry()
    registry.register("0x1::string::String", STRING)
    registry.register("0x1::ascii::String", STRING)
    registry.register("0x1::option::Option", lambda params: OptionOf(params[0]))
    registry.register("0x2::object::ID", ID)
    registry.register("0x2::object::UID", UID)
    registry.register("0x2::balance::Balance", BALANCE)
    registry.register("0x2::balance::Supply", Struct("0x2::balance::Supply", [("value", U64)]))
    registry.register("0x2::coin::Coin", COIN)
    registry.register("0x2::kiosk::Kiosk", KIOSK)
    registry.register("0x2::kiosk::KioskOwnerCap", KIOSK_OWNER_CAP)
    return registry
