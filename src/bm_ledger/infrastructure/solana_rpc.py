"""SolanaRpcLedgerClient — LedgerClientProtocol over Solana JSON-RPC 2.0.

Methods used:
  getAccountInfo        [address, {encoding: base64, commitment}]
  getSignatureStatuses  [[signature], {searchTransactionHistory: true}]

Every call carries the configured httpx timeout. Timeouts, transport errors,
HTTP 429/5xx, node-side JSON-RPC errors and results without a `value` surface
as TransientLedgerError. Only an explicit `value: null` is the ledger's
definitive "no such account/signature". Other 4xx responses mean the client is
misconfigured and raise InternalError, which is not retried.
"""

import base64
import itertools
import logging
from typing import Any

import httpx

from config.settings import settings
from src.bm_common.enums import SettlementState
from src.bm_common.errors import InternalError, TransientLedgerError, ValidationError
from src.bm_common.pubkey import is_valid_signature
from src.bm_ledger.domain.models import AccountState, SettlementStatus

logger = logging.getLogger(__name__)

_INVALID_PARAMS = -32602

# Commitment levels in increasing order of finality
_COMMITMENT_RANK = {"processed": 0, "confirmed": 1, "finalized": 2}


class SolanaRpcLedgerClient:
    def __init__(
        self,
        rpc_url: str | None = None,
        commitment: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._rpc_url = rpc_url or settings.LEDGER_RPC_URL
        self._commitment = commitment or settings.LEDGER_COMMITMENT
        if self._commitment not in _COMMITMENT_RANK:
            raise ValueError(f"Unknown commitment level: {self._commitment}")
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout or settings.LEDGER_TIMEOUT_SECONDS)
        )
        self._ids = itertools.count(1)

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _rpc(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            resp = await self._http.post(self._rpc_url, json=payload)
        except httpx.TimeoutException as exc:
            raise TransientLedgerError(f"{method} timed out") from exc
        except httpx.TransportError as exc:
            raise TransientLedgerError(f"{method} transport error: {exc}") from exc

        if resp.status_code == 429 or resp.status_code >= 500:
            raise TransientLedgerError(f"{method} returned HTTP {resp.status_code}")
        if resp.status_code >= 400:
            logger.error("Ledger RPC %s rejected with HTTP %d", method, resp.status_code)
            raise InternalError(f"{method} returned HTTP {resp.status_code}")

        try:
            body = resp.json()
        except ValueError as exc:
            raise TransientLedgerError(f"{method} returned a non-JSON body") from exc

        error = body.get("error") if isinstance(body, dict) else None
        if error:
            code = error.get("code")
            message = error.get("message", "unknown error")
            if code == _INVALID_PARAMS:
                raise ValidationError(f"Ledger rejected {method}: {message}")
            raise TransientLedgerError(f"{method} error {code}: {message}")
        if not isinstance(body, dict) or "result" not in body:
            raise TransientLedgerError(f"{method} returned no result")
        return body["result"]

    async def _rpc_value(self, method: str, params: list[Any]) -> tuple[Any, dict]:
        """Call `method` and return (result.value, result). `value` must be present."""
        result = await self._rpc(method, params)
        if not isinstance(result, dict) or "value" not in result:
            raise TransientLedgerError(f"{method} returned a malformed result: {result!r}")
        return result["value"], result

    # ------------------------------------------------------------------
    # LedgerClientProtocol
    # ------------------------------------------------------------------

    async def fetch_account_state(self, address: str) -> AccountState | None:
        value, result = await self._rpc_value(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": self._commitment}],
        )
        if value is None:
            return None
        try:
            raw_data = value["data"]
            encoded = raw_data[0] if isinstance(raw_data, list) else raw_data
            return AccountState(
                address=address,
                lamports=int(value["lamports"]),
                owner=value["owner"],
                data=base64.b64decode(encoded),
                executable=bool(value.get("executable", False)),
                rent_epoch=value.get("rentEpoch"),
                slot=int((result.get("context") or {}).get("slot", 0)),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise TransientLedgerError(f"getAccountInfo returned a malformed account: {exc}") from exc

    async def account_exists(self, address: str) -> bool:
        return await self.fetch_account_state(address) is not None

    async def get_settlement_status(self, reference: str) -> SettlementStatus:
        # Anything that is not a signature can never appear on chain
        if not is_valid_signature(reference):
            return SettlementStatus(reference=reference, state=SettlementState.UNKNOWN)
        values, _ = await self._rpc_value(
            "getSignatureStatuses",
            [[reference], {"searchTransactionHistory": True}],
        )
        if not isinstance(values, list) or len(values) != 1:
            raise TransientLedgerError(f"getSignatureStatuses returned malformed value: {values!r}")
        status = values[0]
        if status is None:
            return SettlementStatus(reference=reference, state=SettlementState.UNKNOWN)
        if not isinstance(status, dict):
            raise TransientLedgerError(f"getSignatureStatuses returned malformed status: {status!r}")

        slot = status.get("slot")
        if status.get("err") is not None:
            return SettlementStatus(
                reference=reference,
                state=SettlementState.FAILED,
                slot=slot,
                error=str(status["err"]),
            )
        reached = _COMMITMENT_RANK.get(status.get("confirmationStatus") or "processed", 0)
        if reached >= _COMMITMENT_RANK[self._commitment]:
            return SettlementStatus(reference=reference, state=SettlementState.CONFIRMED, slot=slot)
        return SettlementStatus(reference=reference, state=SettlementState.PENDING, slot=slot)
