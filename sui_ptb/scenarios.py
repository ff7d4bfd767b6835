"""End-to-end build, inspect and dry-run workflows.

Two workflows are provided, both used by the CLI:

* :func:`run_walkthrough` builds a 13-command batch touching coins, math
  helpers and a kiosk, inspects it, decodes every produced value, checks that
  the values agree with each other and finally dry-runs it with real gas.
* :func:`run_single_coin_demo` shows why a sender owning a single coin must
  split from the gas coin argument: the naive batch that passes the coin
  explicitly is rejected, the corrected one succeeds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .builder import ArgumentLike, ProgrammableTransactionBuilder, ResultHandle
from .gas import (
    fetch_sorted_gas_coins,
    plan_single_coin,
    select_split_gas,
    split_usable_coin,
)
from .layouts import COIN, KIOSK, KIOSK_OWNER_CAP
from .results import ProtocolMismatchError, ResultDecoder
from .rpc_client import SuiRPCClient
from .simulation import DryRunOutcome, FailureReport, Simulator
from .transaction import ProgrammableTransaction, TransactionData
from .types import SUI_COIN_TYPE, SUI_FRAMEWORK_ADDRESS, normalize_address

logger = logging.getLogger(__name__)

COIN_MODULE = "coin"
MATH_MODULE = "math"
KIOSK_MODULE = "kiosk"
WALKTHROUGH_COMMANDS = 13


class ResultCheckError(ProtocolMismatchError):
    """Raised when decoded values are inconsistent with each other."""


def _ensure(condition: bool, message: str) -> None:
    if not condition:
        raise ResultCheckError(message)


@dataclass
class WalkthroughHandles:
    """Results of the walkthrough graph that later checks refer to."""

    initial_value: ResultHandle
    target_balance: ResultHandle
    new_coin: ResultHandle
    new_coin_value: ResultHandle
    empty_coin: ResultHandle
    kiosk: ResultHandle
    has_item: ResultHandle
    diff: ResultHandle


def build_walkthrough(
    builder: ProgrammableTransactionBuilder,
    sender: str,
    coin: ArgumentLike,
    absent_item_id: str,
) -> WalkthroughHandles:
    """Append the walkthrough commands operating on ``coin``."""

    framework = SUI_FRAMEWORK_ADDRESS
    sui = [SUI_COIN_TYPE]
    two = builder.pure_u64(2)

    # 0: balance of the provided coin
    initial_value = builder.move_call(framework, COIN_MODULE, "value", sui, [coin])
    # 1: half of it, rounded up
    target_balance = builder.move_call(
        framework, MATH_MODULE, "divide_and_round_up", [], [initial_value, two]
    )
    # 2: split off a new coin holding the target balance
    new_coin = builder.move_call(framework, COIN_MODULE, "split", sui, [coin, target_balance])
    # 3: balance of the new coin
    new_coin_value = builder.move_call(framework, COIN_MODULE, "value", sui, [new_coin])
    # 4, 5: create and destroy an empty coin
    empty_coin = builder.move_call(framework, COIN_MODULE, "zero", sui, [])
    builder.move_call(framework, COIN_MODULE, "destroy_zero", sui, [empty_coin], returns=0)
    # 6: new kiosk, returns (Kiosk, KioskOwnerCap)
    kiosk = builder.move_call(framework, KIOSK_MODULE, "new", [], [], returns=2)
    kiosk_arg, owner_cap_arg = kiosk
    # 7: the kiosk does not hold the given item
    item_id = builder.pure_id(absent_item_id)
    has_item = builder.move_call(framework, KIOSK_MODULE, "has_item", [], [kiosk_arg, item_id])
    # 8, 9: close the kiosk and destroy the empty withdrawal coin
    withdrawn = builder.move_call(
        framework, KIOSK_MODULE, "close_and_withdraw", [], [kiosk_arg, owner_cap_arg]
    )
    builder.move_call(framework, COIN_MODULE, "destroy_zero", sui, [withdrawn], returns=0)
    # 10: |new value - initial value|
    diff = builder.move_call(framework, MATH_MODULE, "diff", [], [new_coin_value, initial_value])
    # 11, 12: merge the split coin back and return the coin to the sender
    builder.move_call(framework, COIN_MODULE, "join", sui, [coin, new_coin], returns=0)
    builder.transfer_arg(sender, coin)

    return WalkthroughHandles(
        initial_value=initial_value,
        target_balance=target_balance,
        new_coin=new_coin,
        new_coin_value=new_coin_value,
        empty_coin=empty_coin,
        kiosk=kiosk,
        has_item=has_item,
        diff=diff,
    )


@dataclass
class WalkthroughReport:
    pt: ProgrammableTransaction
    values: Dict[str, Any]
    dry_run: DryRunOutcome


def decode_walkthrough(decoder: ResultDecoder, handles: WalkthroughHandles) -> Dict[str, Any]:
    """Decode the walkthrough's values and check them against each other."""

    decode = decoder.decode
    values: Dict[str, Any] = {
        "original_coin_value": decode(handles.initial_value.command_index),
        "new_coin_value_target": decode(handles.target_balance.command_index),
        "new_coin": decode(handles.new_coin.command_index, layout=COIN),
        "new_coin_value": decode(handles.new_coin_value.command_index),
        "zero_coin": decode(handles.empty_coin.command_index, layout=COIN),
        "kiosk": decode(handles.kiosk.command_index, 0, layout=KIOSK),
        "kiosk_owner_cap": decode(handles.kiosk.command_index, 1, layout=KIOSK_OWNER_CAP),
        "kiosk_has_id": decode(handles.has_item.command_index),
        "diff": decode(handles.diff.command_index),
    }

    _ensure(
        values["new_coin"]["balance"]["value"] == values["new_coin_value_target"],
        "New coin value should be equal to the target value",
    )
    _ensure(values["zero_coin"]["balance"]["value"] == 0, "Empty coin value should be 0")
    _ensure(values["kiosk_has_id"] is False, "Fresh kiosk should not contain the item")
    _ensure(
        values["diff"] == abs(values["original_coin_value"] - values["new_coin_value"]),
        "Absolute difference should match",
    )
    return values


def run_walkthrough(
    rpc: SuiRPCClient,
    sender: str,
    gas_budget: int = 100_000_000,
) -> WalkthroughReport:
    """Build, inspect, verify and dry-run the walkthrough batch for ``sender``."""

    sender = normalize_address(sender)
    gas_price = rpc.get_reference_gas_price()
    selection = select_split_gas(fetch_sorted_gas_coins(rpc, sender))
    richest = selection.manipulated
    logger.info(
        "Manipulating coin %s (balance %d); %d coin(s) pay for gas",
        richest.object_id,
        richest.balance,
        len(selection.gas_payment),
    )

    builder = ProgrammableTransactionBuilder()
    coin_arg = builder.owned_object(richest.ref)
    handles = build_walkthrough(builder, sender, coin_arg, absent_item_id=richest.object_id)
    pt = builder.finish()

    simulator = Simulator(rpc)
    outcome = simulator.expect_inspection(sender, pt, expected_commands=WALKTHROUGH_COMMANDS)
    values = decode_walkthrough(outcome.decoder(), handles)

    tx_data = TransactionData.programmable(
        sender, selection.gas_payment_refs, pt, gas_budget, gas_price
    )
    dry_run = simulator.dry_run(tx_data)
    logger.info("Dry run status: %s", dry_run.status)
    return WalkthroughReport(pt=pt, values=values, dry_run=dry_run)


def build_coin_logic(builder: ProgrammableTransactionBuilder, sender: str, coin: ArgumentLike) -> None:
    """Read the coin's balance, compute a ninth of it and return the coin."""

    framework = SUI_FRAMEWORK_ADDRESS
    value = builder.move_call(framework, COIN_MODULE, "value", [SUI_COIN_TYPE], [coin])
    denominator = builder.pure_u64(9)
    builder.move_call(framework, MATH_MODULE, "divide_and_round_up", [], [value, denominator])
    builder.transfer_objects(sender, [coin])


@dataclass
class SingleCoinReport:
    naive_inputs: List[str] = field(default_factory=list)
    naive_failure: FailureReport | None = None
    corrected_inputs: List[str] = field(default_factory=list)
    corrected: DryRunOutcome | None = None
    usable_balance: int = 0
    gas_reserved: int = 0


def run_single_coin_demo(
    rpc: SuiRPCClient,
    sender: str,
    gas_budget: int = 100_000_000,
) -> SingleCoinReport:
    """Dry-run the naive and the corrected single-coin batches."""

    sender = normalize_address(sender)
    gas_price = rpc.get_reference_gas_price()
    plan = plan_single_coin(fetch_sorted_gas_coins(rpc, sender), gas_budget)
    simulator = Simulator(rpc)
    report = SingleCoinReport(usable_balance=plan.usable_balance, gas_reserved=plan.gas_reserved)

    # Naive: the gas coin is also an explicit input.
    builder = ProgrammableTransactionBuilder()
    coin_arg = builder.owned_object(plan.coin.ref)
    build_coin_logic(builder, sender, coin_arg)
    bad_pt = builder.finish()
    report.naive_inputs = bad_pt.describe()
    bad_tx = TransactionData.programmable(
        sender, plan.gas_payment_refs, bad_pt, gas_budget, gas_price, allow_gas_conflicts=True
    )
    report.naive_failure = simulator.expect_dry_run_failure(bad_tx)

    # Corrected: split the usable balance from the gas coin argument.
    builder = ProgrammableTransactionBuilder()
    usable_coin = split_usable_coin(builder, plan)
    build_coin_logic(builder, sender, usable_coin)
    good_pt = builder.finish()
    report.corrected_inputs = good_pt.describe()
    good_tx = TransactionData.programmable(
        sender, plan.gas_payment_refs, good_pt, gas_budget, gas_price
    )
    report.corrected = simulator.expect_dry_run_success(good_tx)
    return report
