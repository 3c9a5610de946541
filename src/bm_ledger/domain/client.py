"""LedgerClient Protocol — read-only access to the external ledger.

Contract shared by every implementation:
  * "not found" is a definitive negative result (False / None / UNKNOWN);
  * network errors, timeouts and node-side failures raise TransientLedgerError
    and must be retried by the caller (see application.retry.call_with_retry).
"""

from typing import Protocol

from src.bm_ledger.domain.models import AccountState, SettlementStatus


class LedgerClientProtocol(Protocol):
    async def account_exists(self, address: str) -> bool: ...

    async def fetch_account_state(self, address: str) -> AccountState | None: ...

    async def get_settlement_status(self, reference: str) -> SettlementStatus: ...
