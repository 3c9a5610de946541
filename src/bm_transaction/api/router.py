# src/bm_transaction/api/router.py
"""bm_transaction REST endpoints.

POST /transactions                            — record trade intent (idempotent by settlementReference)
GET  /transactions                            — list with offset pagination
GET  /transactions/{transaction_id}           — detail
PUT  /transactions/{transaction_id}/status    — confirmed | failed
"""
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from src.bm_common.database import get_db_session
from src.bm_common.enums import TransactionStatus, TransactionType
from src.bm_common.response import ApiResponse, Pagination, success_response
from src.bm_transaction.application.schemas import (
    CreateTransactionRequest,
    TransactionOut,
    UpdateTransactionStatusRequest,
)
from src.bm_transaction.application.service import TransactionLedger
from src.bm_transaction.domain.models import TransactionFilter

router = APIRouter(prefix="/transactions", tags=["transactions"])

_service = TransactionLedger()


def get_transaction_ledger() -> TransactionLedger:
    return _service


def _respond(request: Request, resp: ApiResponse) -> ApiResponse:
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("", status_code=201)
async def create_transaction(
    body: CreateTransactionRequest,
    request: Request,
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    ledger: Annotated[TransactionLedger, Depends(get_transaction_ledger)],
) -> ApiResponse:
    txn, created = await ledger.record_intent(db, body)
    if not created:
        response.status_code = 200
    return _respond(request, success_response(TransactionOut.from_domain(txn).to_wire()))


@router.get("")
async def list_transactions(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    ledger: Annotated[TransactionLedger, Depends(get_transaction_ledger)],
    market_id: str | None = Query(None, alias="marketId"),
    buyer: str | None = Query(None),
    seller: str | None = Query(None),
    transaction_type: TransactionType | None = Query(None, alias="transactionType"),
    status: TransactionStatus | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> ApiResponse:
    filters = TransactionFilter(
        market_id=market_id,
        buyer=buyer,
        seller=seller,
        transaction_type=transaction_type.value if transaction_type else None,
        status=status.value if status else None,
    )
    items, total = await ledger.list_transactions(db, filters, limit, offset)
    data = [TransactionOut.from_domain(t).to_wire() for t in items]
    return _respond(request, success_response(data, Pagination.build(total, limit, offset)))


@router.get("/{transaction_id}")
async def get_transaction(
    transaction_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    ledger: Annotated[TransactionLedger, Depends(get_transaction_ledger)],
) -> ApiResponse:
    txn = await ledger.get_transaction(db, transaction_id)
    return _respond(request, success_response(TransactionOut.from_domain(txn).to_wire()))


@router.put("/{transaction_id}/status")
async def update_transaction_status(
    transaction_id: str,
    body: UpdateTransactionStatusRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    ledger: Annotated[TransactionLedger, Depends(get_transaction_ledger)],
) -> ApiResponse:
    txn = await ledger.update_status(db, transaction_id, body.status, body.block_number)
    return _respond(request, success_response(TransactionOut.from_domain(txn).to_wire()))
