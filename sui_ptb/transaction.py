"""Programmable transaction model and its wire encoding.

The classes mirror the engine's ``ProgrammableTransaction`` and
``TransactionData`` shapes closely enough that :meth:`to_bcs` produces the
exact bytes the node expects. The byte layout is dictated by the remote
protocol, so variant indices below must not be reordered.
"""

from __future__ import annotations

import base64
import enum
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple, Union

from .bcs import Serializer
from .types import ConstructionError, ObjectRef, TypeTag, normalize_address, validate_identifier

MAX_ARGUMENT_INDEX = 2**16 - 1


class GasRoleConflictError(ConstructionError):
    """Raised when a gas payment object is also passed as an explicit input."""

    def __init__(self, object_ids: Sequence[str]) -> None:
        joined = ", ".join(object_ids)
        super().__init__(
            f"object(s) {joined} used both as explicit input and gas payment; "
            "split from the gas coin argument instead"
        )
        self.object_ids = list(object_ids)


# ---------------------------------------------------------------------------
# Arguments


class ArgumentKind(enum.Enum):
    GAS_COIN = 0
    INPUT = 1
    RESULT = 2
    NESTED_RESULT = 3


@dataclass(frozen=True)
class Argument:
    """Reference to an input, a command result, or the gas coin."""

    kind: ArgumentKind
    index: int | None = None
    slot: int | None = None

    def __post_init__(self) -> None:
        for value in (self.index, self.slot):
            if value is not None and not 0 <= value <= MAX_ARGUMENT_INDEX:
                raise ConstructionError(f"argument index out of u16 range: {value}")
        needs_index = self.kind is not ArgumentKind.GAS_COIN
        if needs_index and self.index is None:
            raise ConstructionError(f"{self.kind.name} argument requires an index")
        if (self.kind is ArgumentKind.NESTED_RESULT) != (self.slot is not None):
            raise ConstructionError("only nested results carry a result slot")

    @classmethod
    def input(cls, index: int) -> "Argument":
        return cls(ArgumentKind.INPUT, index)

    @classmethod
    def result(cls, command_index: int) -> "Argument":
        return cls(ArgumentKind.RESULT, command_index)

    @classmethod
    def nested_result(cls, command_index: int, slot: int) -> "Argument":
        return cls(ArgumentKind.NESTED_RESULT, command_index, slot)

    def serialize(self, ser: Serializer) -> None:
        ser.uleb128(self.kind.value)
        if self.index is not None:
            ser.u16(self.index)
        if self.slot is not None:
            ser.u16(self.slot)

    def __str__(self) -> str:
        if self.kind is ArgumentKind.GAS_COIN:
            return "GasCoin"
        if self.kind is ArgumentKind.INPUT:
            return f"Input({self.index})"
        if self.kind is ArgumentKind.RESULT:
            return f"Result({self.index})"
        return f"NestedResult({self.index}, {self.slot})"


GAS_COIN = Argument(ArgumentKind.GAS_COIN)


# ---------------------------------------------------------------------------
# Inputs


@dataclass(frozen=True)
class PureArg:
    """BCS-encoded literal value."""

    value: bytes

    def serialize(self, ser: Serializer) -> None:
        ser.uleb128(0)
        ser.bytes(self.value)


class ObjectArgKind(enum.Enum):
    IMM_OR_OWNED = 0
    SHARED = 1
    RECEIVING = 2


@dataclass(frozen=True)
class ObjectArg:
    """Object input: owned/immutable, shared, or receiving."""

    kind: ObjectArgKind
    ref: ObjectRef | None = None
    shared_id: str | None = None
    initial_shared_version: int | None = None
    mutable: bool = True

    @classmethod
    def imm_or_owned(cls, ref: ObjectRef) -> "ObjectArg":
        return cls(ObjectArgKind.IMM_OR_OWNED, ref=ref)

    @classmethod
    def receiving(cls, ref: ObjectRef) -> "ObjectArg":
        return cls(ObjectArgKind.RECEIVING, ref=ref)

    @classmethod
    def shared(cls, object_id: str, initial_shared_version: int, mutable: bool = True) -> "ObjectArg":
        return cls(
            ObjectArgKind.SHARED,
            shared_id=normalize_address(object_id),
            initial_shared_version=initial_shared_version,
            mutable=mutable,
        )

    @property
    def object_id(self) -> str:
        if self.ref is not None:
            return self.ref.object_id
        assert self.shared_id is not None
        return self.shared_id

    def serialize(self, ser: Serializer) -> None:
        ser.uleb128(1)
        ser.uleb128(self.kind.value)
        if self.kind is ObjectArgKind.SHARED:
            ser.address(self.object_id)
            ser.u64(self.initial_shared_version or 0)
            ser.bool(self.mutable)
        else:
            assert self.ref is not None
            self.ref.serialize(ser)


CallArg = Union[PureArg, ObjectArg]


# ---------------------------------------------------------------------------
# Commands


def _serialize_arguments(ser: Serializer, arguments: Sequence[Argument]) -> None:
    ser.sequence(arguments, lambda s, arg: arg.serialize(s))


@dataclass(frozen=True)
class MoveCall:
    package: str
    module: str
    function: str
    type_arguments: Tuple[TypeTag, ...] = ()
    arguments: Tuple[Argument, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "package", normalize_address(self.package))
        validate_identifier(self.module)
        validate_identifier(self.function)
        object.__setattr__(self, "type_arguments", tuple(self.type_arguments))
        object.__setattr__(self, "arguments", tuple(self.arguments))

    def referenced_arguments(self) -> Tuple[Argument, ...]:
        return self.arguments

    def serialize(self, ser: Serializer) -> None:
        ser.uleb128(0)
        ser.address(self.package)
        ser.str(self.module)
        ser.str(self.function)
        ser.sequence(self.type_arguments, lambda s, tag: tag.serialize(s))
        _serialize_arguments(ser, self.arguments)

    def __str__(self) -> str:
        targs = f"<{', '.join(map(str, self.type_arguments))}>" if self.type_arguments else ""
        args = ", ".join(map(str, self.arguments))
        return f"MoveCall {self.package}::{self.module}::{self.function}{targs}({args})"


@dataclass(frozen=True)
class TransferObjects:
    objects: Tuple[Argument, ...]
    address: Argument

    def referenced_arguments(self) -> Tuple[Argument, ...]:
        return tuple(self.objects) + (self.address,)

    def serialize(self, ser: Serializer) -> None:
        ser.uleb128(1)
        _serialize_arguments(ser, self.objects)
        self.address.serialize(ser)

    def __str__(self) -> str:
        return f"TransferObjects([{', '.join(map(str, self.objects))}], {self.address})"


@dataclass(frozen=True)
class SplitCoins:
    coin: Argument
    amounts: Tuple[Argument, ...]

    def referenced_arguments(self) -> Tuple[Argument, ...]:
        return (self.coin,) + tuple(self.amounts)

    def serialize(self, ser: Serializer) -> None:
        ser.uleb128(2)
        self.coin.serialize(ser)
        _serialize_arguments(ser, self.amounts)

    def __str__(self) -> str:
        return f"SplitCoins({self.coin}, [{', '.join(map(str, self.amounts))}])"


@dataclass(frozen=True)
class MergeCoins:
    destination: Argument
    sources: Tuple[Argument, ...]

    def referenced_arguments(self) -> Tuple[Argument, ...]:
        return (self.destination,) + tuple(self.sources)

    def serialize(self, ser: Serializer) -> None:
        ser.uleb128(3)
        self.destination.serialize(ser)
        _serialize_arguments(ser, self.sources)

    def __str__(self) -> str:
        return f"MergeCoins({self.destination}, [{', '.join(map(str, self.sources))}])"


@dataclass(frozen=True)
class MakeMoveVec:
    element_type: TypeTag | None
    elements: Tuple[Argument, ...]

    def referenced_arguments(self) -> Tuple[Argument, ...]:
        return tuple(self.elements)

    def serialize(self, ser: Serializer) -> None:
        ser.uleb128(5)
        if self.element_type is None:
            ser.uleb128(0)
        else:
            ser.uleb128(1)
            self.element_type.serialize(ser)
        _serialize_arguments(ser, self.elements)

    def __str__(self) -> str:
        return f"MakeMoveVec({self.element_type}, [{', '.join(map(str, self.elements))}])"


Command = Union[MoveCall, TransferObjects, SplitCoins, MergeCoins, MakeMoveVec]


# ---------------------------------------------------------------------------
# Finished artifacts


@dataclass(frozen=True)
class ProgrammableTransaction:
    """Immutable batch: ordered inputs plus ordered commands."""

    inputs: Tuple[CallArg, ...]
    commands: Tuple[Command, ...]

    def serialize(self, ser: Serializer) -> None:
        ser.sequence(self.inputs, lambda s, arg: arg.serialize(s))
        ser.sequence(self.commands, lambda s, cmd: cmd.serialize(s))

    def to_bcs(self) -> bytes:
        ser = Serializer()
        self.serialize(ser)
        return ser.output()

    def kind_bytes(self) -> bytes:
        """Encode as a ``TransactionKind::ProgrammableTransaction``."""

        ser = Serializer()
        ser.uleb128(0)
        self.serialize(ser)
        return ser.output()

    def kind_base64(self) -> str:
        return base64.b64encode(self.kind_bytes()).decode("ascii")

    def owned_object_ids(self) -> List[str]:
        return [
            arg.object_id
            for arg in self.inputs
            if isinstance(arg, ObjectArg) and arg.kind is ObjectArgKind.IMM_OR_OWNED
        ]

    def describe(self) -> List[str]:
        lines = [f"input {idx}: {_describe_input(arg)}" for idx, arg in enumerate(self.inputs)]
        lines.extend(f"command {idx}: {cmd}" for idx, cmd in enumerate(self.commands))
        return lines


def _describe_input(arg: CallArg) -> str:
    if isinstance(arg, PureArg):
        return f"Pure(0x{arg.value.hex()})"
    if arg.kind is ObjectArgKind.SHARED:
        return f"Shared({arg.object_id}, v{arg.initial_shared_version}, mutable={arg.mutable})"
    return f"{arg.kind.name.title().replace('_', '')}({arg.ref})"


def find_gas_conflicts(pt: ProgrammableTransaction, payment: Iterable[ObjectRef]) -> List[str]:
    """Return object ids used both as owned inputs and as gas payment."""

    payment_ids = {ref.object_id for ref in payment}
    return [object_id for object_id in pt.owned_object_ids() if object_id in payment_ids]


@dataclass(frozen=True)
class GasData:
    payment: Tuple[ObjectRef, ...]
    owner: str
    price: int
    budget: int

    def serialize(self, ser: Serializer) -> None:
        ser.sequence(self.payment, lambda s, ref: ref.serialize(s))
        ser.address(self.owner)
        ser.u64(self.price)
        ser.u64(self.budget)


@dataclass(frozen=True)
class TransactionData:
    """``TransactionData::V1`` wrapping a programmable transaction."""

    kind: ProgrammableTransaction
    sender: str
    gas_data: GasData
    expiration_epoch: int | None = None

    @classmethod
    def programmable(
        cls,
        sender: str,
        gas_payment: Sequence[ObjectRef],
        pt: ProgrammableTransaction,
        gas_budget: int,
        gas_price: int,
        *,
        allow_gas_conflicts: bool = False,
    ) -> "TransactionData":
        """Combine a finished batch with gas parameters.

        ``allow_gas_conflicts`` exists to produce deliberately invalid batches
        for negative simulations; the node rejects them.
        """

        sender = normalize_address(sender)
        conflicts = find_gas_conflicts(pt, gas_payment)
        if conflicts and not allow_gas_conflicts:
            raise GasRoleConflictError(conflicts)
        gas_data = GasData(
            payment=tuple(gas_payment), owner=sender, price=int(gas_price), budget=int(gas_budget)
        )
        return cls(kind=pt, sender=sender, gas_data=gas_data)

    def to_bcs(self) -> bytes:
        ser = Serializer()
        ser.uleb128(0)  # TransactionData::V1
        ser.fixed_bytes(self.kind.kind_bytes())
        ser.address(self.sender)
        self.gas_data.serialize(ser)
        if self.expiration_epoch is None:
            ser.uleb128(0)
        else:
            ser.uleb128(1)
            ser.u64(self.expiration_epoch)
        return ser.output()

    def to_base64(self) -> str:
        return base64.b64encode(self.to_bcs()).decode("ascii")
