"""Programmable transaction batches for Sui: build, inspect and dry-run."""

from .builder import ProgrammableTransactionBuilder, ResultHandle
from .gas import (
    GasCoin,
    InsufficientResourcesError,
    fetch_sorted_gas_coins,
    plan_single_coin,
    select_split_gas,
    split_usable_coin,
)
from .results import ProtocolMismatchError, ResultDecoder
from .rpc_client import RPCError, RPCTransportError, SuiRPCClient
from .simulation import (
    Simulator,
    UnexpectedFailureError,
    UnexpectedSuccessError,
)
from .transaction import (
    GAS_COIN,
    Argument,
    GasRoleConflictError,
    ObjectArg,
    ProgrammableTransaction,
    TransactionData,
)
from .types import ConstructionError, ObjectRef, TypeTag

__all__ = [
    "ProgrammableTransactionBuilder",
    "ResultHandle",
    "GAS_COIN",
    "Argument",
    "ObjectArg",
    "ProgrammableTransaction",
    "TransactionData",
    "GasRoleConflictError",
    "ConstructionError",
    "ObjectRef",
    "TypeTag",
    "GasCoin",
    "InsufficientResourcesError",
    "fetch_sorted_gas_coins",
    "plan_single_coin",
    "select_split_gas",
    "split_usable_coin",
    "ProtocolMismatchError",
    "ResultDecoder",
    "RPCError",
    "RPCTransportError",
    "SuiRPCClient",
    "Simulator",
    "UnexpectedFailureError",
    "UnexpectedSuccessError",
]
