"""bm_market REST endpoints.

POST /markets                               — create (optionally verify + link ledger accounts)
GET  /markets                               — list with offset pagination
GET  /markets/{market_id}                   — detail
PUT  /markets/{market_id}/ledger-accounts   — verify on the ledger and attach (idempotent)
PUT  /markets/{market_id}/status            — active/paused/matured transitions
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.bm_common.database import get_db_session
from src.bm_common.enums import MarketStatus
from src.bm_common.response import ApiResponse, Pagination, success_response
from src.bm_ledger.application.service import get_ledger_client
from src.bm_ledger.domain.client import LedgerClientProtocol
from src.bm_market.application.schemas import (
    AttachLedgerAccountsRequest,
    CreateMarketRequest,
    MarketOut,
    SetMarketStatusRequest,
)
from src.bm_market.application.service import MarketRegistry

router = APIRouter(prefix="/markets", tags=["markets"])

_service = MarketRegistry()


def get_market_registry() -> MarketRegistry:
    return _service


def _respond(request: Request, resp: ApiResponse) -> ApiResponse:
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("", status_code=201)
async def create_market(
    body: CreateMarketRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    registry: Annotated[MarketRegistry, Depends(get_market_registry)],
    ledger: Annotated[LedgerClientProtocol, Depends(get_ledger_client)],
) -> ApiResponse:
    if body.market_account is not None or body.bond_mint is not None:
        market = await registry.create_and_link_market(db, body, ledger)
    else:
        market = await registry.create_market(db, body)
    return _respond(request, success_response(MarketOut.from_domain(market).to_wire()))


@router.get("")
async def list_markets(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    registry: Annotated[MarketRegistry, Depends(get_market_registry)],
    issuer: str | None = Query(None),
    status: MarketStatus | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> ApiResponse:
    markets, total = await registry.list_markets(
        db, issuer, status.value if status else None, limit, offset
    )
    data = [MarketOut.from_domain(m).to_wire() for m in markets]
    return _respond(request, success_response(data, Pagination.build(total, limit, offset)))


@router.get("/{market_id}")
async def get_market(
    market_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    registry: Annotated[MarketRegistry, Depends(get_market_registry)],
) -> ApiResponse:
    market = await registry.get_market(db, market_id)
    return _respond(request, success_response(MarketOut.from_domain(market).to_wire()))


@router.put("/{market_id}/ledger-accounts")
async def attach_ledger_accounts(
    market_id: str,
    body: AttachLedgerAccountsRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    registry: Annotated[MarketRegistry, Depends(get_market_registry)],
    ledger: Annotated[LedgerClientProtocol, Depends(get_ledger_client)],
) -> ApiResponse:
    market = await registry.link_ledger_accounts(
        db, market_id, body.market_account, body.bond_mint, ledger
    )
    return _respond(request, success_response(MarketOut.from_domain(market).to_wire()))


@router.put("/{market_id}/status")
async def set_market_status(
    market_id: str,
    body: SetMarketStatusRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    registry: Annotated[MarketRegistry, Depends(get_market_registry)],
) -> ApiResponse:
    market = await registry.set_status(db, market_id, body.status)
    return _respond(request, success_response(MarketOut.from_domain(market).to_wire()))
