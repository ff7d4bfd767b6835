from __future__ import annotations

import base64

import pytest

from sui_ptb.bcs import Serializer
from sui_ptb.builder import ProgrammableTransactionBuilder
from sui_ptb.transaction import (
    GAS_COIN,
    Argument,
    GasRoleConflictError,
    MergeCoins,
    ObjectArg,
    TransactionData,
    find_gas_conflicts,
)
from sui_ptb.types import ConstructionError, ObjectRef

SENDER = "0x" + "ab" * 32


def _encode(value) -> bytes:
    ser = Serializer()
    value.serialize(ser)
    return ser.output()


def _ref(seed: int) -> ObjectRef:
    return ObjectRef(hex(seed), 4, bytes([seed]) * 32)


def test_argument_wire_encoding() -> None:
    assert _encode(GAS_COIN) == b"\x00"
    assert _encode(Argument.input(1)) == b"\x01\x01\x00"
    assert _encode(Argument.result(2)) == b"\x02\x02\x00"
    assert _encode(Argument.nested_result(3, 1)) == b"\x03\x03\x00\x01\x00"


def test_argument_index_must_fit_u16() -> None:
    with pytest.raises(ConstructionError):
        Argument.input(2**16)


def test_shared_object_encoding() -> None:
    encoded = _encode(ObjectArg.shared("0x6", initial_shared_version=1, mutable=False))

    assert encoded[:2] == b"\x01\x01"
    assert encoded[2:34] == b"\x00" * 31 + b"\x06"
    assert encoded[34:42] == (1).to_bytes(8, "little")
    assert encoded[42:] == b"\x00"


def test_merge_coins_encoding() -> None:
    command = MergeCoins(GAS_COIN, (Argument.input(0), Argument.result(1)))

    assert _encode(command) == b"\x03\x00\x02\x01\x00\x00\x02\x01\x00"


def test_programmable_transaction_kind_prefix() -> None:
    builder = ProgrammableTransactionBuilder()
    builder.split_coins(GAS_COIN, [5])
    pt = builder.finish()

    kind = pt.kind_bytes()
    assert kind[0] == 0
    assert kind[1:] == pt.to_bcs()
    assert base64.b64decode(pt.kind_base64()) == kind


def test_transaction_data_layout() -> None:
    pt = ProgrammableTransactionBuilder().finish()
    payment = [_ref(7)]

    tx = TransactionData.programmable(SENDER, payment, pt, gas_budget=1000, gas_price=750)
    encoded = tx.to_bcs()

    assert encoded[0] == 0
    assert encoded[1:4] == pt.kind_bytes()
    offset = 4
    assert encoded[offset : offset + 32] == bytes.fromhex("ab" * 32)
    offset += 32
    assert encoded[offset] == 1  # one payment coin
    offset += 1 + 32 + 8 + 1 + 32
    assert encoded[offset : offset + 32] == bytes.fromhex("ab" * 32)
    offset += 32
    assert int.from_bytes(encoded[offset : offset + 8], "little") == 750
    assert int.from_bytes(encoded[offset + 8 : offset + 16], "little") == 1000
    assert encoded[offset + 16 :] == b"\x00"


def test_gas_coin_used_as_explicit_input_is_rejected() -> None:
    coin = _ref(3)
    builder = ProgrammableTransactionBuilder()
    builder.transfer_arg(SENDER, builder.owned_object(coin))
    pt = builder.finish()

    assert find_gas_conflicts(pt, [coin]) == [coin.object_id]
    with pytest.raises(GasRoleConflictError) as excinfo:
        TransactionData.programmable(SENDER, [coin], pt, 1000, 1)
    assert excinfo.value.object_ids == [coin.object_id]

    tx = TransactionData.programmable(SENDER, [coin], pt, 1000, 1, allow_gas_conflicts=True)
    assert tx.gas_data.payment == (coin,)


def test_disjoint_gas_payment_is_accepted() -> None:
    builder = ProgrammableTransactionBuilder()
    builder.transfer_arg(SENDER, builder.owned_object(_ref(3)))
    pt = builder.finish()

    tx = TransactionData.programmable(SENDER, [_ref(4)], pt, 1000, 1)
    assert tx.sender == SENDER
    assert find_gas_conflicts(pt, [_ref(4)]) == []
