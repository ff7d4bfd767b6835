"""Gas coin discovery and selection.

Two policies decide which coins pay for gas and which one the command graph
may manipulate. Both keep a coin out of the explicit inputs whenever it is
part of the gas payment, since the engine rejects a batch that uses one
object in both roles.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Sequence

from .bcs import BCSDecodeError
from .builder import ProgrammableTransactionBuilder
from .layouts import COIN
from .results import ProtocolMismatchError
from .rpc_client import SuiRPCClient
from .transaction import GAS_COIN, Argument
from .types import SUI_COIN_TYPE, ObjectRef, TypeTag

logger = logging.getLogger(__name__)


class InsufficientResourcesError(RuntimeError):
    """Raised when the owner lacks the coins a selection policy needs."""


@dataclass(frozen=True)
class GasCoin:
    ref: ObjectRef
    balance: int

    @property
    def object_id(self) -> str:
        return self.ref.object_id


@dataclass(frozen=True)
class OwnedObjectsPage:
    data: List[Dict[str, Any]]
    next_cursor: str | None
    has_next_page: bool


def coin_struct_type(coin_type: str = SUI_COIN_TYPE) -> str:
    """Return the canonical ``Coin<T>`` struct type for ``coin_type``."""

    inner = TypeTag.parse(coin_type)
    return str(TypeTag.parse(f"0x2::coin::Coin<{inner}>"))


def iter_owned_object_pages(
    rpc: SuiRPCClient,
    owner: str,
    struct_type: str,
    limit: int | None = None,
) -> Iterator[OwnedObjectsPage]:
    """Yield pages of objects owned by ``owner`` matching ``struct_type``.

    Pages are requested lazily; each request carries the cursor returned by
    the previous one, and iteration stops once the node reports no further
    pages.
    """

    query = {
        "filter": {"MatchAll": [{"StructType": struct_type}]},
        "options": {"showType": True, "showContent": True, "showBcs": True},
    }
    cursor: str | None = None
    while True:
        response = rpc.get_owned_objects(owner, query, cursor, limit)
        if not isinstance(response, dict):
            raise ProtocolMismatchError(f"owned objects page is not an object: {response!r}")
        page = OwnedObjectsPage(
            data=list(response.get("data") or []),
            next_cursor=response.get("nextCursor"),
            has_next_page=bool(response.get("hasNextPage")),
        )
        logger.debug(
            "Fetched %d owned objects for %s (has_next_page=%s)",
            len(page.data),
            owner,
            page.has_next_page,
        )
        yield page
        if not page.has_next_page:
            return
        if page.next_cursor is None or page.next_cursor == cursor:
            raise ProtocolMismatchError("Node reported another page without advancing the cursor")
        cursor = page.next_cursor


def coin_balance(data: Mapping[str, Any]) -> int:
    """Read a coin balance from object data, falling back to its BCS bytes."""

    content = data.get("content") or {}
    fields = content.get("fields") if isinstance(content, dict) else None
    if isinstance(fields, dict) and fields.get("balance") is not None:
        return int(fields["balance"])

    raw_bcs = data.get("bcs") or {}
    encoded = raw_bcs.get("bcsBytes") if isinstance(raw_bcs, dict) else None
    if encoded is None:
        raise ValueError(f"object {data.get('objectId')} carries neither content nor BCS bytes")
    try:
        decoded = COIN.from_bytes(base64.b64decode(encoded))
    except (BCSDecodeError, ValueError) as exc:
        raise ValueError(f"object {data.get('objectId')} is not a decodable coin") from exc
    return int(decoded["balance"]["value"])


def fetch_sorted_gas_coins(
    rpc: SuiRPCClient,
    owner: str,
    coin_type: str = SUI_COIN_TYPE,
) -> List[GasCoin]:
    """Return every non-empty coin of ``coin_type`` owned by ``owner``.

    Coins are sorted by balance, richest first; equal balances are ordered by
    object id so repeated selections pick the same coins.
    """

    coins: List[GasCoin] = []
    for page in iter_owned_object_pages(rpc, owner, coin_struct_type(coin_type)):
        for entry in page.data:
            data = entry.get("data")
            if not data:
                if entry.get("error"):
                    logger.debug("Skipping owned object entry with error: %s", entry["error"])
                continue
            balance = coin_balance(data)
            if balance <= 0:
                continue
            coins.append(GasCoin(ref=ObjectRef.from_rpc(data), balance=balance))

    coins.sort(key=lambda coin: (-coin.balance, coin.object_id))
    logger.info("Found %d non-empty %s coins for %s", len(coins), coin_type, owner)
    return coins


@dataclass(frozen=True)
class SplitGasSelection:
    """Richest coin is manipulated, every other coin pays for gas."""

    manipulated: GasCoin
    gas_payment: List[GasCoin]

    @property
    def gas_payment_refs(self) -> List[ObjectRef]:
        return [coin.ref for coin in self.gas_payment]


def select_split_gas(coins: Sequence[GasCoin]) -> SplitGasSelection:
    """Apply the dual-coin policy to coins sorted by :func:`fetch_sorted_gas_coins`."""

    usable = [coin for coin in coins if coin.balance > 0]
    if len(usable) < 2:
        raise InsufficientResourcesError(
            f"Need at least 2 non-empty gas coins (one for gas, one to manipulate); found {len(usable)}"
        )
    ordered = sorted(usable, key=lambda coin: (-coin.balance, coin.object_id))
    return SplitGasSelection(manipulated=ordered[0], gas_payment=ordered[1:])


@dataclass(frozen=True)
class SingleCoinPlan:
    """One coin pays for gas and funds the command graph.

    ``gas_reserved`` is what stays behind in the gas coin for fees: the
    requested budget, not what execution eventually charges.
    """

    coin: GasCoin
    gas_budget: int

    @property
    def gas_reserved(self) -> int:
        return self.gas_budget

    @property
    def usable_balance(self) -> int:
        return self.coin.balance - self.gas_budget

    @property
    def gas_payment_refs(self) -> List[ObjectRef]:
        return [self.coin.ref]


def plan_single_coin(coins: Sequence[GasCoin], gas_budget: int) -> SingleCoinPlan:
    """Apply the single-coin policy: the richest coin must exceed the budget."""

    if gas_budget <= 0:
        raise ValueError("gas budget must be positive")
    usable = [coin for coin in coins if coin.balance > 0]
    if not usable:
        raise InsufficientResourcesError("Need at least 1 non-empty gas coin")
    primary = min(usable, key=lambda coin: (-coin.balance, coin.object_id))
    if primary.balance <= gas_budget:
        raise InsufficientResourcesError(
            f"Primary coin balance {primary.balance} does not exceed the gas budget {gas_budget}"
        )
    return SingleCoinPlan(coin=primary, gas_budget=gas_budget)


def split_usable_coin(builder: ProgrammableTransactionBuilder, plan: SingleCoinPlan) -> Argument:
    """Split the usable balance off the gas coin and return the new coin.

    The gas coin keeps exactly ``plan.gas_reserved``; the coin object itself
    never appears as an explicit input.
    """

    usable_balance = builder.pure_u64(plan.usable_balance)
    return builder.split_coins(GAS_COIN, [usable_balance])[0]
