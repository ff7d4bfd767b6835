from __future__ import annotations

import base64

import pytest

from sui_ptb.base58 import base58_encode
from sui_ptb.builder import ProgrammableTransactionBuilder
from sui_ptb.gas import (
    GasCoin,
    InsufficientResourcesError,
    coin_balance,
    coin_struct_type,
    fetch_sorted_gas_coins,
    plan_single_coin,
    select_split_gas,
    split_usable_coin,
)
from sui_ptb.layouts import COIN
from sui_ptb.results import ProtocolMismatchError
from sui_ptb.transaction import GAS_COIN, ObjectArg, SplitCoins
from sui_ptb.types import ObjectRef, normalize_address

OWNER = "0x" + "cd" * 32


def coin_entry(seed: int, balance: int) -> dict:
    return {
        "data": {
            "objectId": hex(seed),
            "version": "3",
            "digest": base58_encode(bytes([seed]) * 32),
            "content": {"fields": {"balance": str(balance)}},
        }
    }


class StubRPC:
    def __init__(self, pages) -> None:
        self.pages = list(pages)
        self.calls = []

    def get_owned_objects(self, owner, query=None, cursor=None, limit=None):
        self.calls.append({"owner": owner, "query": query, "cursor": cursor})
        return self.pages[len(self.calls) - 1]


def make_coin(seed: int, balance: int) -> GasCoin:
    return GasCoin(ObjectRef(hex(seed), 1, bytes([seed]) * 32), balance)


def test_coin_struct_type_is_canonical() -> None:
    framework = normalize_address("0x2")
    assert coin_struct_type() == f"{framework}::coin::Coin<{framework}::sui::SUI>"


def test_fetch_follows_cursors_filters_empty_coins_and_sorts() -> None:
    rpc = StubRPC(
        [
            {"data": [coin_entry(1, 50), coin_entry(2, 0)], "nextCursor": "c1", "hasNextPage": True},
            {"data": [coin_entry(3, 100), {"error": {"code": "deleted"}}], "nextCursor": None, "hasNextPage": False},
        ]
    )

    coins = fetch_sorted_gas_coins(rpc, OWNER)  # type: ignore[arg-type]

    assert [coin.balance for coin in coins] == [100, 50]
    assert [call["cursor"] for call in rpc.calls] == [None, "c1"]
    assert rpc.calls[0]["query"]["filter"] == {"MatchAll": [{"StructType": coin_struct_type()}]}


def test_equal_balances_are_ordered_by_object_id() -> None:
    rpc = StubRPC(
        [{"data": [coin_entry(9, 10), coin_entry(4, 10)], "nextCursor": None, "hasNextPage": False}]
    )

    coins = fetch_sorted_gas_coins(rpc, OWNER)  # type: ignore[arg-type]

    assert [coin.object_id for coin in coins] == [normalize_address("0x4"), normalize_address("0x9")]


def test_fetch_rejects_a_cursor_that_does_not_advance() -> None:
    page = {"data": [], "nextCursor": None, "hasNextPage": True}
    rpc = StubRPC([page])

    with pytest.raises(ProtocolMismatchError):
        fetch_sorted_gas_coins(rpc, OWNER)  # type: ignore[arg-type]


def test_coin_balance_falls_back_to_bcs_bytes() -> None:
    raw = COIN.to_bytes({"id": {"id": {"bytes": "0x5"}}, "balance": {"value": 42}})
    data = {"objectId": "0x5", "bcs": {"bcsBytes": base64.b64encode(raw).decode()}}

    assert coin_balance(data) == 42


def test_split_gas_manipulates_the_richest_coin() -> None:
    # Balances 100 and 50: the 100 coin is manipulated, the 50 coin pays.
    rich, poor = make_coin(1, 100), make_coin(2, 50)

    selection = select_split_gas([poor, rich])

    assert selection.manipulated == rich
    assert selection.gas_payment == [poor]
    assert selection.gas_payment_refs == [poor.ref]


def test_split_gas_requires_two_coins() -> None:
    with pytest.raises(InsufficientResourcesError):
        select_split_gas([make_coin(1, 100)])
    with pytest.raises(InsufficientResourcesError):
        select_split_gas([make_coin(1, 100), make_coin(2, 0)])


def test_single_coin_plan_reserves_the_budget() -> None:
    coin = make_coin(1, 1_000_000_000)

    plan = plan_single_coin([coin], gas_budget=100_000_000)

    assert plan.usable_balance == 900_000_000
    assert plan.gas_reserved == 100_000_000
    assert plan.gas_payment_refs == [coin.ref]


def test_single_coin_plan_requires_balance_above_budget() -> None:
    with pytest.raises(InsufficientResourcesError):
        plan_single_coin([make_coin(1, 100)], gas_budget=100)
    with pytest.raises(InsufficientResourcesError):
        plan_single_coin([], gas_budget=100)


def test_split_usable_coin_never_declares_the_gas_coin_as_input() -> None:
    coin = make_coin(1, 1_000)
    plan = plan_single_coin([coin], gas_budget=100)
    builder = ProgrammableTransactionBuilder()

    usable = split_usable_coin(builder, plan)
    builder.transfer_arg(OWNER, usable)
    pt = builder.finish()

    assert not any(isinstance(arg, ObjectArg) for arg in pt.inputs)
    split = pt.commands[0]
    assert isinstance(split, SplitCoins)
    assert split.coin == GAS_COIN


def test_fetch_rejects_a_page_that_is_not_an_object() -> None:
    rpc = StubRPC([None])

    with pytest.raises(ProtocolMismatchError, match="not an object"):
        fetch_sorted_gas_coins(rpc, OWNER)  # type: ignore[arg-type]
