from __future__ import annotations

import pytest

from sui_ptb.bcs import ADDRESS, STRING, U8, U64, Vector
from sui_ptb.builder import ProgrammableTransactionBuilder
from sui_ptb.transaction import (
    GAS_COIN,
    Argument,
    ArgumentKind,
    MoveCall,
    ObjectArg,
    PureArg,
    SplitCoins,
    TransferObjects,
)
from sui_ptb.types import ConstructionError, ObjectRef


def _ref(seed: int, version: int = 1) -> ObjectRef:
    return ObjectRef(hex(seed), version, bytes([seed]) * 32)


def test_pure_inputs_are_deduplicated_by_encoded_bytes() -> None:
    builder = ProgrammableTransactionBuilder()

    first = builder.pure_u64(7)
    second = builder.pure(7)
    other = builder.pure_u64(8)

    assert first == second == Argument.input(0)
    assert other == Argument.input(1)
    assert builder.input_count == 2


def test_pure_without_inferable_layout_is_rejected() -> None:
    builder = ProgrammableTransactionBuilder()
    with pytest.raises(ConstructionError, match="cannot infer"):
        builder.pure("text")


def test_object_inputs_are_deduplicated_by_id() -> None:
    builder = ProgrammableTransactionBuilder()
    ref = _ref(5)

    assert builder.owned_object(ref) == builder.owned_object(ref)
    assert builder.input_count == 1


def test_object_redeclared_with_other_reference_is_rejected() -> None:
    builder = ProgrammableTransactionBuilder()
    builder.owned_object(_ref(5, version=1))

    with pytest.raises(ConstructionError, match="different reference"):
        builder.owned_object(_ref(5, version=2))


def test_forward_and_self_references_are_rejected() -> None:
    builder = ProgrammableTransactionBuilder()
    builder.move_call("0x2", "coin", "zero", ["0x2::sui::SUI"])

    # Result(1) would be the command being declared.
    with pytest.raises(ConstructionError, match="only 1 precede"):
        builder.move_call("0x2", "coin", "value", ["0x2::sui::SUI"], [Argument.result(1)])
    with pytest.raises(ConstructionError, match="undeclared input"):
        builder.move_call("0x2", "coin", "value", ["0x2::sui::SUI"], [Argument.input(3)])
    assert builder.command_count == 1


def test_nested_result_slots_are_bounded_by_arity() -> None:
    builder = ProgrammableTransactionBuilder()
    pair = builder.move_call("0x2", "kiosk", "new", returns=2)

    kiosk, cap = pair
    assert kiosk == Argument.nested_result(0, 0)
    assert cap == Argument.nested_result(0, 1)
    with pytest.raises(ConstructionError, match="slot 2"):
        pair[2]
    with pytest.raises(ConstructionError, match="out of range"):
        builder.move_call("0x2", "kiosk", "has_item", arguments=[Argument.nested_result(0, 5)])


def test_multi_result_handle_cannot_be_used_as_single_argument() -> None:
    builder = ProgrammableTransactionBuilder()
    pair = builder.move_call("0x2", "kiosk", "new", returns=2)

    with pytest.raises(ConstructionError, match="select one"):
        builder.transfer_objects("0x1", [pair])


def test_split_coins_declares_integer_amounts_and_returns_one_slot_each() -> None:
    builder = ProgrammableTransactionBuilder()

    coins = builder.split_coins(builder.gas_coin(), [10, 20])
    pt = builder.finish()

    assert len(coins) == 2
    assert pt.inputs == (PureArg(U64.to_bytes(10)), PureArg(U64.to_bytes(20)))
    assert pt.commands == (SplitCoins(GAS_COIN, (Argument.input(0), Argument.input(1))),)


def test_transfer_declares_recipient_after_objects() -> None:
    builder = ProgrammableTransactionBuilder()
    coin = builder.owned_object(_ref(9))

    builder.transfer_arg("0x1", coin)
    pt = builder.finish()

    assert isinstance(pt.inputs[0], ObjectArg)
    assert pt.commands[0] == TransferObjects((Argument.input(0),), Argument.input(1))


def test_finish_retires_the_builder() -> None:
    builder = ProgrammableTransactionBuilder()
    builder.pure_u64(1)
    builder.finish()

    with pytest.raises(ConstructionError, match="already finished"):
        builder.pure_u64(2)
    with pytest.raises(ConstructionError, match="already finished"):
        builder.move_call("0x2", "coin", "zero", ["0x2::sui::SUI"])
    with pytest.raises(ConstructionError, match="already finished"):
        builder.finish()


def test_empty_graph_is_a_valid_batch() -> None:
    pt = ProgrammableTransactionBuilder().finish()

    assert pt.inputs == ()
    assert pt.commands == ()
    assert pt.kind_bytes() == b"\x00\x00\x00"


def test_move_call_normalizes_package_and_validates_names() -> None:
    builder = ProgrammableTransactionBuilder()
    handle = builder.move_call("0x2", "math", "diff", arguments=[builder.pure_u64(1), builder.pure_u64(2)])
    pt = builder.finish()

    call = pt.commands[handle.command_index]
    assert isinstance(call, MoveCall)
    assert call.package == "0x" + "0" * 63 + "2"
    assert all(arg.kind is ArgumentKind.INPUT for arg in call.arguments)
    with pytest.raises(ConstructionError, match="identifier"):
        MoveCall("0x2", "bad-module", "f")


@pytest.mark.parametrize("layout", [STRING, Vector(U8), ADDRESS])
def test_pure_with_mismatched_layout_is_a_construction_error(layout) -> None:
    builder = ProgrammableTransactionBuilder()

    with pytest.raises(ConstructionError, match="cannot encode 5"):
        builder.pure(5, layout)
    assert builder.input_count == 0


def test_shared_object_uses_merge_into_one_mutable_slot() -> None:
    builder = ProgrammableTransactionBuilder()

    first = builder.obj(ObjectArg.shared("0x6", initial_shared_version=1, mutable=False))
    second = builder.obj(ObjectArg.shared("0x6", initial_shared_version=1, mutable=True))
    third = builder.obj(ObjectArg.shared("0x6", initial_shared_version=1, mutable=False))
    pt = builder.finish()

    assert first == second == third == Argument.input(0)
    assert len(pt.inputs) == 1
    assert pt.inputs[0] == ObjectArg.shared("0x6", initial_shared_version=1, mutable=True)


def test_shared_object_with_other_initial_version_is_rejected() -> None:
    builder = ProgrammableTransactionBuilder()
    builder.obj(ObjectArg.shared("0x6", initial_shared_version=1))

    with pytest.raises(ConstructionError, match="different reference"):
        builder.obj(ObjectArg.shared("0x6", initial_shared_version=2))
