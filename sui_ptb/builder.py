"""Transaction builder for Sui programmable transaction blocks."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, Iterator, List, Sequence, Union

from .bcs import ADDRESS, BOOL, BYTES, U64, BCSEncodeError, Layout
from .transaction import (
    GAS_COIN,
    Argument,
    ArgumentKind,
    CallArg,
    Command,
    MakeMoveVec,
    MergeCoins,
    MoveCall,
    ObjectArg,
    ObjectArgKind,
    ProgrammableTransaction,
    PureArg,
    SplitCoins,
    TransferObjects,
)
from .types import ConstructionError, ObjectRef, TypeTag

logger = logging.getLogger(__name__)


class ResultHandle:
    """Results produced by one command.

    A handle for a single-result command can be passed anywhere an
    :class:`Argument` is accepted. Tuple results are addressed by slot with
    ``handle[k]`` or unpacked directly::

        kiosk, cap = builder.move_call("0x2", "kiosk", "new", returns=2)
    """

    def __init__(self, command_index: int, arity: int) -> None:
        self.command_index = command_index
        self.arity = arity

    def __len__(self) -> int:
        return self.arity

    def __getitem__(self, slot: int) -> Argument:
        if not isinstance(slot, int) or isinstance(slot, bool):
            raise TypeError("result slots are addressed by integer position")
        if not 0 <= slot < self.arity:
            raise ConstructionError(
                f"command {self.command_index} produces {self.arity} result(s); slot {slot} does not exist"
            )
        return Argument.nested_result(self.command_index, slot)

    def __iter__(self) -> Iterator[Argument]:
        return (self[slot] for slot in range(self.arity))

    def as_argument(self) -> Argument:
        if self.arity != 1:
            raise ConstructionError(
                f"command {self.command_index} produces {self.arity} results; select one with handle[slot]"
            )
        return Argument.result(self.command_index)

    def __repr__(self) -> str:
        return f"ResultHandle(command={self.command_index}, arity={self.arity})"


ArgumentLike = Union[Argument, ResultHandle]


class ProgrammableTransactionBuilder:
    """Accumulate inputs and commands, then :meth:`finish` into a batch.

    Inputs are deduplicated structurally: pure values by their encoded bytes and
    objects by id. Every command argument is checked against what has already
    been declared, so the resulting command graph can only reference earlier
    positions. The builder is single use; once finished it rejects further
    mutation.
    """

    def __init__(self) -> None:
        self._inputs: List[CallArg] = []
        self._pure_index: Dict[bytes, int] = {}
        self._object_index: Dict[str, int] = {}
        self._commands: List[Command] = []
        self._arities: List[int] = []
        self._finished = False

    @property
    def input_count(self) -> int:
        return len(self._inputs)

    @property
    def command_count(self) -> int:
        return len(self._commands)

    def _ensure_open(self) -> None:
        if self._finished:
            raise ConstructionError("builder already finished; start a new builder")

    # Inputs ---------------------------------------------------------------

    def pure_bytes(self, encoded: bytes) -> Argument:
        """Declare an already BCS-encoded literal."""

        self._ensure_open()
        encoded = bytes(encoded)
        index = self._pure_index.get(encoded)
        if index is None:
            index = len(self._inputs)
            self._inputs.append(PureArg(encoded))
            self._pure_index[encoded] = index
        return Argument.input(index)

    def pure(self, value: Any, layout: Layout | None = None) -> Argument:
        """Encode ``value`` and declare it as a literal input.

        Without ``layout`` only ``bool`` (bool) and ``int`` (u64) are inferred.
        """

        if layout is None:
            if isinstance(value, bool):
                layout = BOOL
            elif isinstance(value, int):
                layout = U64
            else:
                raise ConstructionError(
                    f"cannot infer a layout for {type(value).__name__}; pass one explicitly"
                )
        try:
            encoded = layout.to_bytes(value)
        except BCSEncodeError as exc:
            raise ConstructionError(f"cannot encode {value!r} as {layout.name}: {exc}") from exc
        return self.pure_bytes(encoded)

    def pure_u64(self, value: int) -> Argument:
        return self.pure(value, U64)

    def pure_bool(self, value: bool) -> Argument:
        return self.pure(value, BOOL)

    def pure_address(self, address: str) -> Argument:
        return self.pure(address, ADDRESS)

    def pure_id(self, object_id: str) -> Argument:
        # object::ID is a struct wrapping a single address
        return self.pure(object_id, ADDRESS)

    def pure_vector_u8(self, value: bytes) -> Argument:
        return self.pure(value, BYTES)

    def obj(self, object_arg: ObjectArg) -> Argument:
        """Declare an object input, reusing the slot of an identical earlier one."""

        self._ensure_open()
        object_id = object_arg.object_id
        index = self._object_index.get(object_id)
        if index is not None:
            existing = self._inputs[index]
            if (
                isinstance(existing, ObjectArg)
                and existing.kind is ObjectArgKind.SHARED
                and object_arg.kind is ObjectArgKind.SHARED
                and existing.initial_shared_version == object_arg.initial_shared_version
            ):
                # shared inputs keep a single slot, mutable if any use is mutable
                if object_arg.mutable and not existing.mutable:
                    self._inputs[index] = replace(existing, mutable=True)
                return Argument.input(index)
            if existing != object_arg:
                raise ConstructionError(
                    f"object {object_id} already declared as input {index} with a different reference"
                )
            return Argument.input(index)
        index = len(self._inputs)
        self._inputs.append(object_arg)
        self._object_index[object_id] = index
        return Argument.input(index)

    def owned_object(self, ref: ObjectRef) -> Argument:
        return self.obj(ObjectArg.imm_or_owned(ref))

    # Commands -------------------------------------------------------------

    def _resolve(self, arg: ArgumentLike) -> Argument:
        if isinstance(arg, ResultHandle):
            arg = arg.as_argument()
        if not isinstance(arg, Argument):
            raise ConstructionError(f"expected an Argument or ResultHandle, got {type(arg).__name__}")
        if arg.kind is ArgumentKind.INPUT:
            if arg.index >= len(self._inputs):
                raise ConstructionError(f"Input({arg.index}) refers to an undeclared input")
        elif arg.kind is ArgumentKind.RESULT:
            self._check_command_index(arg)
            if self._arities[arg.index] != 1:
                raise ConstructionError(
                    f"Result({arg.index}) is ambiguous: command {arg.index} produces "
                    f"{self._arities[arg.index]} result(s)"
                )
        elif arg.kind is ArgumentKind.NESTED_RESULT:
            self._check_command_index(arg)
            if arg.slot >= self._arities[arg.index]:
                raise ConstructionError(
                    f"{arg} out of range: command {arg.index} produces {self._arities[arg.index]} result(s)"
                )
        return arg

    def _check_command_index(self, arg: Argument) -> None:
        if arg.index >= len(self._commands):
            raise ConstructionError(
                f"{arg} refers to command {arg.index}, but only {len(self._commands)} precede it"
            )

    def _resolve_all(self, args: Sequence[ArgumentLike]) -> tuple[Argument, ...]:
        return tuple(self._resolve(arg) for arg in args)

    def command(self, command: Command, returns: int = 1) -> ResultHandle:
        """Append ``command`` after checking that it only references the past."""

        self._ensure_open()
        if returns < 0:
            raise ConstructionError("result arity cannot be negative")
        for arg in command.referenced_arguments():
            self._resolve(arg)
        index = len(self._commands)
        self._commands.append(command)
        self._arities.append(returns)
        logger.debug("Declared command %d: %s (returns=%d)", index, command, returns)
        return ResultHandle(index, returns)

    def move_call(
        self,
        package: str,
        module: str,
        function: str,
        type_arguments: Sequence[TypeTag | str] = (),
        arguments: Sequence[ArgumentLike] = (),
        returns: int = 1,
    ) -> ResultHandle:
        tags = tuple(
            tag if isinstance(tag, TypeTag) else TypeTag.parse(tag) for tag in type_arguments
        )
        call = MoveCall(package, module, function, tags, self._resolve_all(arguments))
        return self.command(call, returns=returns)

    def transfer_objects(self, recipient: str, objects: Sequence[ArgumentLike]) -> ResultHandle:
        if not objects:
            raise ConstructionError("transfer requires at least one object")
        resolved = self._resolve_all(objects)
        address = self.pure_address(recipient)
        return self.command(TransferObjects(resolved, address), returns=0)

    def transfer_arg(self, recipient: str, arg: ArgumentLike) -> ResultHandle:
        return self.transfer_objects(recipient, [arg])

    def split_coins(self, coin: ArgumentLike, amounts: Sequence[ArgumentLike | int]) -> ResultHandle:
        """Split ``coin``; integer amounts are declared as u64 literals."""

        if not amounts:
            raise ConstructionError("split requires at least one amount")
        coin_arg = self._resolve(coin)
        amount_args = tuple(
            self.pure_u64(amount) if isinstance(amount, int) else self._resolve(amount)
            for amount in amounts
        )
        return self.command(SplitCoins(coin_arg, amount_args), returns=len(amount_args))

    def merge_coins(self, destination: ArgumentLike, sources: Sequence[ArgumentLike]) -> ResultHandle:
        if not sources:
            raise ConstructionError("merge requires at least one source coin")
        return self.command(
            MergeCoins(self._resolve(destination), self._resolve_all(sources)), returns=0
        )

    def make_move_vec(
        self, elements: Sequence[ArgumentLike], element_type: TypeTag | str | None = None
    ) -> ResultHandle:
        if element_type is None and not elements:
            raise ConstructionError("an empty vector needs an explicit element type")
        tag = TypeTag.parse(element_type) if isinstance(element_type, str) else element_type
        return self.command(MakeMoveVec(tag, self._resolve_all(elements)), returns=1)

    def gas_coin(self) -> Argument:
        return GAS_COIN

    # Finalization ---------------------------------------------------------

    def finish(self) -> ProgrammableTransaction:
        """Freeze the accumulated inputs and commands into a batch."""

        self._ensure_open()
        self._finished = True
        pt = ProgrammableTransaction(inputs=tuple(self._inputs), commands=tuple(self._commands))
        logger.info(
            "Finished programmable transaction with %d inputs and %d commands",
            len(pt.inputs),
            len(pt.commands),
        )
        return pt
