"""Typed JSON-RPC client for Sui full nodes.

The client is a thin network boundary: each helper maps directly to one node
method and returns the parsed ``result``. Nothing is retried. Transport
problems surface as :class:`RPCTransportError` and node-side rejections as
:class:`RPCError`, so callers can tell "the node said no" apart from "the node
could not be reached".
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, Optional

import requests
from requests import RequestException, Response

from .config import RPCConfig, load_rpc_config

logger = logging.getLogger(__name__)


class RPCError(RuntimeError):
    """Raised when the node responds with a JSON-RPC error object."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message


class RPCTransportError(RuntimeError):
    """Raised when the RPC endpoint is unreachable or returns malformed data."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def format_rpc_hint(error_obj: dict[str, Any] | RPCError | str | None) -> str | None:
    """Return a human-friendly hint for common transaction rejections.

    The check is conservative and keyed on the wording full nodes use for
    input-object and gas failures.
    """

    if error_obj is None:
        return None

    if isinstance(error_obj, RPCError):
        message = error_obj.message
    elif isinstance(error_obj, dict):
        message = str(error_obj.get("message", ""))
    else:
        message = str(error_obj)
    lowered = message.lower()

    if "usedmorethanonce" in lowered.replace(" ", "") or "duplicate" in lowered:
        return (
            "An object appears more than once in the transaction. If the gas coin is also an explicit "
            "input, split the amount you need from the gas coin argument instead."
        )
    if "insufficientgas" in lowered.replace(" ", "") or "insufficient gas" in lowered:
        return "The gas budget was exhausted during execution; raise the budget and simulate again."
    if "gasbalancetoolow" in lowered.replace(" ", "") or "balance of gas object" in lowered:
        return (
            "The gas payment coins do not cover the gas budget. Lower the budget or add coins to the payment."
        )
    if "gas price" in lowered and "less than" in lowered:
        return "The gas price is below the reference gas price; fetch it again before building."
    return None


class SuiRPCClient:
    """JSON-RPC client for Sui full nodes.

    Connection defaults come from :func:`sui_ptb.config.load_rpc_config`, so
    ``SUI_PTB_RPC_URL`` (or ``SUI_RPC_URL``) and ``~/.sui-ptb.yaml`` apply to
    library callers and the CLI alike.
    """

    def __init__(self, config: RPCConfig) -> None:
        self.config = config
        self._session = requests.Session()

    @classmethod
    def from_env(cls) -> "SuiRPCClient":
        """Instantiate a client using environment variables or config file."""

        return cls(load_rpc_config())

    def call(self, method: str, params: Optional[list[Any]] = None) -> Any:
        """Perform a JSON-RPC request."""

        payload = {
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": method,
            "params": params or [],
        }
        logger.debug("RPC call %s params=%s", method, params)
        try:
            response = self._session.post(
                self.config.base_url,
                data=json.dumps(payload),
                headers={"content-type": "application/json"},
                auth=self.config.auth,
                timeout=self.config.timeout,
            )
        except RequestException as exc:
            logger.error(
                "RPC connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(
                "RPC connection failed. Ensure the full node is reachable and SUI_PTB_RPC_URL "
                "(or ~/.sui-ptb.yaml) points to the right endpoint."
            ) from exc
        try:
            self._raise_for_status(response)
        except requests.HTTPError as exc:
            raise RPCTransportError(
                f"RPC server returned HTTP {response.status_code}; check the endpoint URL and credentials.",
                status_code=response.status_code,
            ) from exc
        try:
            result = response.json()
        except ValueError as exc:
            logger.debug("RPC JSON parse error: %s", response.text, exc_info=True)
            raise RPCTransportError("RPC server returned malformed JSON") from exc
        if not isinstance(result, dict):
            raise RPCTransportError("RPC server returned a non-object JSON payload")
        if result.get("error"):
            error = result["error"]
            if not isinstance(error, dict):
                raise RPCError(-1, str(error))
            raise RPCError(error.get("code", -1), error.get("message", "unknown"))
        return result.get("result")

    def _call_object(self, method: str, params: list[Any]) -> Dict[str, Any]:
        result = self.call(method, params)
        if not isinstance(result, dict):
            raise RPCTransportError(f"{method} returned {type(result).__name__} instead of an object")
        return result

    def _raise_for_status(self, response: Response) -> None:
        # Some gateways wrap JSON-RPC errors in HTTP 4xx/5xx; surface the body
        # when it carries a structured error.
        if not response.ok:
            try:
                err_body = response.json()
            except ValueError:
                err_body = response.text
            logger.error("RPC HTTP error %s from %s", response.status_code, response.url)
            logger.error("RPC error body: %s", err_body)
            if isinstance(err_body, dict) and isinstance(err_body.get("error"), dict):
                error = err_body["error"]
                raise RPCError(error.get("code", -1), error.get("message", "unknown"))
        response.raise_for_status()

    # Convenience wrappers -------------------------------------------------

    def get_reference_gas_price(self) -> int:
        result = self.call("suix_getReferenceGasPrice")
        try:
            return int(result)
        except (TypeError, ValueError) as exc:
            raise RPCTransportError(f"suix_getReferenceGasPrice returned {result!r}") from exc

    def get_owned_objects(
        self,
        owner: str,
        query: Dict[str, Any] | None = None,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> Dict[str, Any]:
        return self._call_object("suix_getOwnedObjects", [owner, query, cursor, limit])

    def dev_inspect_transaction_block(
        self,
        sender: str,
        tx_kind_b64: str,
        gas_price: int | None = None,
        epoch: int | None = None,
        additional_args: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        params: list[Any] = [sender, tx_kind_b64]
        params.append(str(gas_price) if gas_price is not None else None)
        params.append(str(epoch) if epoch is not None else None)
        if additional_args is not None:
            params.append(additional_args)
        return self._call_object("sui_devInspectTransactionBlock", params)

    def dry_run_transaction_block(self, tx_data_b64: str) -> Dict[str, Any]:
        return self._call_object("sui_dryRunTransactionBlock", [tx_data_b64])
