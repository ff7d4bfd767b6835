"""Execution results returned by inspection and their typed decoding."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Sequence

from .bcs import BCSDecodeError, Layout
from .layouts import LayoutRegistry, UnknownLayoutError, default_registry
from .types import ConstructionError

logger = logging.getLogger(__name__)


class ProtocolMismatchError(RuntimeError):
    """Raised when the engine's answer disagrees with the constructed batch."""


class ResultDecodeError(ProtocolMismatchError):
    """Raised when return bytes do not decode with their declared type."""


@dataclass(frozen=True)
class ReturnValue:
    bcs: bytes
    type_tag: str


@dataclass(frozen=True)
class ExecutionResult:
    """Values one command produced: return values and mutated references."""

    return_values: List[ReturnValue] = field(default_factory=list)
    mutable_reference_outputs: List[Any] = field(default_factory=list)


def _parse_return_value(raw: Any, *, command: int, slot: int) -> ReturnValue:
    try:
        encoded, type_tag = raw
        return ReturnValue(bcs=bytes(encoded), type_tag=str(type_tag))
    except (TypeError, ValueError) as exc:
        raise ProtocolMismatchError(
            f"malformed return value {slot} of command {command}: {raw!r}"
        ) from exc


def parse_execution_results(raw_results: Sequence[Any] | None) -> List[ExecutionResult]:
    """Convert the node's ``results`` array into :class:`ExecutionResult` entries."""

    if raw_results is None:
        return []
    parsed: List[ExecutionResult] = []
    for command, entry in enumerate(raw_results):
        if not isinstance(entry, dict):
            raise ProtocolMismatchError(f"malformed execution result for command {command}: {entry!r}")
        values = [
            _parse_return_value(raw, command=command, slot=slot)
            for slot, raw in enumerate(entry.get("returnValues") or [])
        ]
        parsed.append(
            ExecutionResult(
                return_values=values,
                mutable_reference_outputs=list(entry.get("mutableReferenceOutputs") or []),
            )
        )
    return parsed


def expect_result_count(results: Sequence[ExecutionResult], expected: int) -> None:
    """Require exactly one execution result per declared command."""

    if len(results) != expected:
        raise ProtocolMismatchError(
            f"There should be {expected} results, one for each command in the batch, found {len(results)}"
        )


class ResultDecoder:
    """Decode return values addressed by (command index, result slot)."""

    def __init__(
        self,
        results: Sequence[ExecutionResult],
        registry: LayoutRegistry | None = None,
    ) -> None:
        self.results = list(results)
        self.registry = registry or default_registry()

    def raw(self, command: int, slot: int = 0) -> ReturnValue:
        if not 0 <= command < len(self.results):
            raise ProtocolMismatchError(
                f"no execution result for command {command}; {len(self.results)} available"
            )
        values = self.results[command].return_values
        if not 0 <= slot < len(values):
            raise ProtocolMismatchError(
                f"command {command} returned {len(values)} value(s); slot {slot} is missing"
            )
        return values[slot]

    def layout_for(self, value: ReturnValue) -> Layout:
        try:
            return self.registry.layout_for(value.type_tag)
        except (UnknownLayoutError, ConstructionError) as exc:
            raise ResultDecodeError(f"cannot decode values of type {value.type_tag}: {exc}") from exc

    def decode(self, command: int, slot: int = 0, layout: Layout | None = None) -> Any:
        """Decode one return value with ``layout`` or the layout of its declared type."""

        value = self.raw(command, slot)
        chosen = layout or self.layout_for(value)
        try:
            decoded = chosen.from_bytes(value.bcs)
        except BCSDecodeError as exc:
            raise ResultDecodeError(
                f"return value {slot} of command {command} does not decode as {value.type_tag}: {exc}"
            ) from exc
        logger.debug("Decoded command %d slot %d (%s): %r", command, slot, value.type_tag, decoded)
        return decoded
