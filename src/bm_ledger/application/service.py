"""Ledger access helpers shared by the market link flow and reconciliation."""

from src.bm_common.errors import LedgerAccountMissingError
from src.bm_ledger.application.retry import call_with_retry
from src.bm_ledger.domain.client import LedgerClientProtocol
from src.bm_ledger.infrastructure.solana_rpc import SolanaRpcLedgerClient

_client: SolanaRpcLedgerClient | None = None


def get_ledger_client() -> LedgerClientProtocol:
    """FastAPI dependency / process-wide client with a pooled httpx connection."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = SolanaRpcLedgerClient()
    return _client


async def close_ledger_client() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


async def ensure_accounts_exist(ledger: LedgerClientProtocol, *addresses: str) -> None:
    """Raise LedgerAccountMissingError for the first address the ledger does not know.

    TransientLedgerError propagates after retries are exhausted; it is never
    read as "account missing".
    """
    for address in addresses:
        if not await call_with_retry(ledger.account_exists, address):
            raise LedgerAccountMissingError(address)
