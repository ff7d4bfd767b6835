"""Inspection and dry-run simulation of finished batches.

Inspection (``sui_devInspectTransactionBlock``) executes a batch under the
sender's authority without modelling gas payment and reports every command's
return values. Dry-run (``sui_dryRunTransactionBlock``) executes the full
``TransactionData`` exactly like settlement would, gas included, without
persisting anything.

The ``expect_*`` helpers turn outcomes into assertions. A failure that was
expected is returned as a :class:`FailureReport`; an unexpected outcome raises
:class:`UnexpectedSuccessError` or :class:`UnexpectedFailureError`. Transport
errors are never folded into outcomes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from .results import (
    ExecutionResult,
    ProtocolMismatchError,
    ResultDecoder,
    expect_result_count,
    parse_execution_results,
)
from .rpc_client import RPCError, SuiRPCClient, format_rpc_hint
from .transaction import (
    GasRoleConflictError,
    ProgrammableTransaction,
    TransactionData,
    find_gas_conflicts,
)
from .types import ObjectRef, normalize_address

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_FAILURE = "failure"


class UnexpectedOutcomeError(RuntimeError):
    """Raised when a simulation does not end the way the caller expected."""

    def __init__(self, message: str, reason: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason


class UnexpectedSuccessError(UnexpectedOutcomeError):
    """A batch that should have been rejected was accepted."""


class UnexpectedFailureError(UnexpectedOutcomeError):
    """A batch that should have succeeded was rejected."""


def _status_of(raw: Any) -> tuple[str, str | None]:
    if not isinstance(raw, dict):
        raise ProtocolMismatchError(f"simulation response is not an object: {raw!r}")
    effects = raw.get("effects") or {}
    if not isinstance(effects, dict):
        raise ProtocolMismatchError(f"malformed effects in simulation response: {effects!r}")
    status = effects.get("status") or {}
    if not isinstance(status, dict):
        raise ProtocolMismatchError(f"malformed status in simulation response: {status!r}")
    return str(status.get("status", STATUS_FAILURE)), status.get("error")


@dataclass
class InspectionOutcome:
    results: List[ExecutionResult]
    error: str | None
    status: str
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.status == STATUS_SUCCESS

    def decoder(self) -> ResultDecoder:
        return ResultDecoder(self.results)


@dataclass
class DryRunOutcome:
    status: str
    error: str | None
    gas_used: Dict[str, int] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_SUCCESS

    @property
    def net_gas_charged(self) -> int | None:
        """Computation plus storage cost minus rebate, as reported by the node."""

        if not self.gas_used:
            return None
        return (
            self.gas_used.get("computationCost", 0)
            + self.gas_used.get("storageCost", 0)
            - self.gas_used.get("storageRebate", 0)
        )


@dataclass(frozen=True)
class FailureReport:
    """Why an expected failure happened.

    ``source`` is ``"rpc"`` when the node refused the batch outright and
    ``"status"`` when it executed and reported a failure status.
    """

    reason: str
    source: str
    hint: str | None = None


class Simulator:
    """Run finished batches against a node in inspection or dry-run mode."""

    def __init__(self, rpc: SuiRPCClient) -> None:
        self.rpc = rpc

    def inspect(
        self,
        sender: str,
        pt: ProgrammableTransaction,
        *,
        gas_price: int | None = None,
        gas_payment: Sequence[ObjectRef] | None = None,
        gas_budget: int | None = None,
        allow_gas_conflicts: bool = False,
    ) -> InspectionOutcome:
        """Inspect ``pt`` as ``sender``.

        With ``gas_payment`` the same role-conflict rule as
        :meth:`TransactionData.programmable` applies; ``allow_gas_conflicts``
        lets negative inspections through.
        """

        if gas_payment is not None:
            conflicts = find_gas_conflicts(pt, gas_payment)
            if conflicts and not allow_gas_conflicts:
                raise GasRoleConflictError(conflicts)
        additional: Dict[str, Any] | None = None
        if gas_payment is not None or gas_budget is not None:
            additional = {}
            if gas_payment is not None:
                additional["gasObjects"] = [
                    [ref.object_id, ref.version, ref.digest_base58] for ref in gas_payment
                ]
            if gas_budget is not None:
                additional["gasBudget"] = str(gas_budget)
        logger.info("Inspecting batch with %d commands as %s", len(pt.commands), sender)
        raw = self.rpc.dev_inspect_transaction_block(
            normalize_address(sender),
            pt.kind_base64(),
            gas_price=gas_price,
            additional_args=additional,
        )
        status, status_error = _status_of(raw)
        error = raw.get("error") or status_error
        return InspectionOutcome(
            results=parse_execution_results(raw.get("results")),
            error=error,
            status=status,
            raw=raw,
        )

    def dry_run(self, tx_data: TransactionData) -> DryRunOutcome:
        logger.info(
            "Dry-running batch with %d commands (budget=%d, price=%d)",
            len(tx_data.kind.commands),
            tx_data.gas_data.budget,
            tx_data.gas_data.price,
        )
        raw = self.rpc.dry_run_transaction_block(tx_data.to_base64())
        status, error = _status_of(raw)
        gas_used_raw = raw["effects"].get("gasUsed") if raw.get("effects") else None
        try:
            gas_used = {key: int(value) for key, value in (gas_used_raw or {}).items()}
        except (AttributeError, TypeError, ValueError) as exc:
            raise ProtocolMismatchError(f"malformed gasUsed in dry-run response: {gas_used_raw!r}") from exc
        return DryRunOutcome(status=status, error=error, gas_used=gas_used, raw=raw)

    # Expectations ---------------------------------------------------------

    def expect_inspection(
        self,
        sender: str,
        pt: ProgrammableTransaction,
        expected_commands: int | None = None,
        **kwargs: Any,
    ) -> InspectionOutcome:
        """Inspect and require success plus one result per command."""

        outcome = self.inspect(sender, pt, **kwargs)
        if not outcome.succeeded:
            raise UnexpectedFailureError(
                f"Inspection failed: {outcome.error or outcome.status}", reason=outcome.error
            )
        expected = len(pt.commands) if expected_commands is None else expected_commands
        expect_result_count(outcome.results, expected)
        return outcome

    def expect_inspection_failure(
        self, sender: str, pt: ProgrammableTransaction, **kwargs: Any
    ) -> FailureReport:
        try:
            outcome = self.inspect(sender, pt, **kwargs)
        except RPCError as exc:
            return self._rejected(exc)
        if outcome.succeeded:
            raise UnexpectedSuccessError("Inspection succeeded but was expected to fail")
        reason = outcome.error or outcome.status
        logger.info("Inspection failed as expected: %s", reason)
        return FailureReport(reason=reason, source="status", hint=format_rpc_hint(reason))

    def expect_dry_run_success(self, tx_data: TransactionData) -> DryRunOutcome:
        try:
            outcome = self.dry_run(tx_data)
        except RPCError as exc:
            raise UnexpectedFailureError(
                f"Dry run was rejected by the node: {exc.message}", reason=exc.message
            ) from exc
        if not outcome.succeeded:
            raise UnexpectedFailureError(
                f"Dry run finished with status {outcome.status}: {outcome.error}", reason=outcome.error
            )
        logger.info("Dry run succeeded as expected")
        return outcome

    def expect_dry_run_failure(self, tx_data: TransactionData) -> FailureReport:
        try:
            outcome = self.dry_run(tx_data)
        except RPCError as exc:
            return self._rejected(exc)
        if outcome.succeeded:
            raise UnexpectedSuccessError("Dry run succeeded but was expected to fail")
        reason = outcome.error or outcome.status
        logger.info("Dry run failed as expected: %s", reason)
        return FailureReport(reason=reason, source="status", hint=format_rpc_hint(reason))

    @staticmethod
    def _rejected(exc: RPCError) -> FailureReport:
        logger.info("Node rejected the batch as expected: %s", exc.message)
        return FailureReport(reason=exc.message, source="rpc", hint=format_rpc_hint(exc))
