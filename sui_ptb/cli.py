"""Command line interface for sui-ptb.

The CLI is a thin façade over the builder, gas selection and simulation
helpers: it lists gas coins, runs the walkthrough and single-coin workflows
against a full node, and decodes BCS bytes offline.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Sequence

from .bcs import BCSDecodeError
from .config import (
    ConfigurationError,
    load_rpc_config,
    load_simulation_config,
    set_default_config_path,
)
from .gas import InsufficientResourcesError, fetch_sorted_gas_coins
from .layouts import UnknownLayoutError, default_registry
from .results import ProtocolMismatchError
from .rpc_client import RPCError, RPCTransportError, SuiRPCClient, format_rpc_hint
from .scenarios import run_single_coin_demo, run_walkthrough
from .simulation import UnexpectedOutcomeError
from .types import ConstructionError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sui programmable transaction builder and simulator")
    parser.add_argument("--config", default=None, help="Path to a YAML config (default: ~/.sui-ptb.yaml)")
    parser.add_argument("--endpoint", default=None, help="Full node JSON-RPC URL")
    parser.add_argument("--json", dest="as_json", action="store_true", help="Emit JSON output")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    coins_parser = subparsers.add_parser(
        "gas-coins", help="list non-empty gas coins of an owner, richest first"
    )
    coins_parser.add_argument("--owner", default=None, help="Owner address (default: configured sender)")
    coins_parser.add_argument("--coin-type", default=None, help="Coin type (default: 0x2::sui::SUI)")

    walkthrough_parser = subparsers.add_parser(
        "walkthrough", help="build, inspect and dry-run the 13-command walkthrough batch"
    )
    _add_simulation_args(walkthrough_parser)

    single_parser = subparsers.add_parser(
        "single-coin", help="compare a naive and a corrected batch for a single-coin sender"
    )
    _add_simulation_args(single_parser)

    decode_parser = subparsers.add_parser(
        "decode-bcs", help="decode hex-encoded BCS bytes with a Move type"
    )
    decode_parser.add_argument("--type", dest="type_tag", required=True, help="Move type, e.g. u64")
    decode_parser.add_argument("hex", help="Hex-encoded bytes (optional 0x prefix)")

    return parser


def _add_simulation_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--sender", default=None, help="Sender address (default: configured sender)")
    parser.add_argument("--gas-budget", type=int, default=None, help="Gas budget in MIST")


def _rpc_from_args(args: argparse.Namespace) -> SuiRPCClient:
    overrides = {"endpoint": args.endpoint} if args.endpoint else None
    return SuiRPCClient(load_rpc_config(overrides=overrides))


def _simulation_from_args(args: argparse.Namespace, sender_flag: str) -> tuple[str, int, str]:
    overrides: dict[str, Any] = {}
    sender = getattr(args, sender_flag, None)
    if sender:
        overrides["sender"] = sender
    if getattr(args, "gas_budget", None) is not None:
        overrides["gas_budget"] = args.gas_budget
    if getattr(args, "coin_type", None):
        overrides["coin_type"] = args.coin_type
    config = load_simulation_config(overrides=overrides)
    if not config.sender:
        raise CLIError(f"--{sender_flag} is required (or set SUI_PTB_SENDER / simulation.sender)")
    return config.sender, config.gas_budget, config.coin_type


def _emit(args: argparse.Namespace, payload: Any, lines: Sequence[str]) -> None:
    if args.as_json:
        print(json.dumps(payload, indent=2, default=_json_default))
        return
    for line in lines:
        print(line)


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return str(value)


def cmd_gas_coins(args: argparse.Namespace) -> None:
    owner, _, coin_type = _simulation_from_args(args, "owner")
    coins = fetch_sorted_gas_coins(_rpc_from_args(args), owner, coin_type)
    payload = [
        {"object_id": coin.object_id, "version": coin.ref.version, "digest": coin.ref.digest_base58, "balance": coin.balance}
        for coin in coins
    ]
    lines = [f"Found {len(coins)} non-empty {coin_type} coins for {owner}"]
    lines.extend(
        f"{index:>3} | {coin.balance:>20} | {coin.object_id}@{coin.ref.version}"
        for index, coin in enumerate(coins)
    )
    _emit(args, payload, lines)


def cmd_walkthrough(args: argparse.Namespace) -> None:
    sender, gas_budget, _ = _simulation_from_args(args, "sender")
    report = run_walkthrough(_rpc_from_args(args), sender, gas_budget=gas_budget)
    lines = list(report.pt.describe())
    lines.extend(f"{name}: {value}" for name, value in report.values.items())
    lines.append(f"Dry run status: {report.dry_run.status}")
    if report.dry_run.error:
        lines.append(f"Dry run error: {report.dry_run.error}")
    _emit(
        args,
        {
            "batch": report.pt.describe(),
            "values": report.values,
            "dry_run": {"status": report.dry_run.status, "error": report.dry_run.error},
        },
        lines,
    )


def cmd_single_coin(args: argparse.Namespace) -> None:
    sender, gas_budget, _ = _simulation_from_args(args, "sender")
    report = run_single_coin_demo(_rpc_from_args(args), sender, gas_budget=gas_budget)
    failure = report.naive_failure
    lines = ["Naive batch:"]
    lines.extend(f"  {line}" for line in report.naive_inputs)
    if failure is not None:
        lines.append(f"Naive batch failed as expected ({failure.source}): {failure.reason}")
        if failure.hint:
            lines.append(f"Hint: {failure.hint}")
    lines.append("Corrected batch:")
    lines.extend(f"  {line}" for line in report.corrected_inputs)
    lines.append(
        f"Corrected batch succeeded as expected (usable {report.usable_balance}, gas reserved {report.gas_reserved})"
    )
    _emit(
        args,
        {
            "naive_inputs": report.naive_inputs,
            "naive_failure": None
            if failure is None
            else {"reason": failure.reason, "source": failure.source},
            "corrected_inputs": report.corrected_inputs,
            "corrected_status": report.corrected.status if report.corrected else None,
            "usable_balance": report.usable_balance,
            "gas_reserved": report.gas_reserved,
        },
        lines,
    )


def cmd_decode_bcs(args: argparse.Namespace) -> None:
    raw_hex = args.hex[2:] if args.hex.lower().startswith("0x") else args.hex
    try:
        data = bytes.fromhex(raw_hex)
    except ValueError as exc:
        raise CLIError(f"invalid hex input: {args.hex}") from exc
    try:
        layout = default_registry().layout_for(args.type_tag)
    except UnknownLayoutError as exc:
        raise CLIError(str(exc)) from exc
    value = layout.from_bytes(data)
    _emit(args, {"type": args.type_tag, "value": value}, [f"{args.type_tag}: {value}"])


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    if args.config:
        set_default_config_path(args.config)
    try:
        if args.command == "gas-coins":
            cmd_gas_coins(args)
        elif args.command == "walkthrough":
            cmd_walkthrough(args)
        elif args.command == "single-coin":
            cmd_single_coin(args)
        elif args.command == "decode-bcs":
            cmd_decode_bcs(args)
        else:  # pragma: no cover - argparse enforces choices
            raise CLIError(f"Unknown command: {args.command}")
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
    except RPCError as exc:
        hint = format_rpc_hint(exc)
        parser.exit(1, f"error: {exc}\n" + (f"Hint: {hint}\n" if hint else ""))
    except UnexpectedOutcomeError as exc:
        hint = format_rpc_hint(exc.reason)
        parser.exit(1, f"error: {exc}\n" + (f"Hint: {hint}\n" if hint else ""))
    except (
        CLIError,
        ConfigurationError,
        RPCTransportError,
        ConstructionError,
        InsufficientResourcesError,
        ProtocolMismatchError,
        BCSDecodeError,
    ) as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    main(sys.argv[1:])
