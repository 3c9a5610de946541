"""bm_reconciliation REST endpoints.

POST /reconciliation/run — run one sweep now and return its report
"""
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.bm_common.database import async_session_factory
from src.bm_common.response import ApiResponse, success_response
from src.bm_ledger.application.service import get_ledger_client
from src.bm_ledger.domain.client import LedgerClientProtocol
from src.bm_reconciliation.application.engine import ReconciliationEngine
from src.bm_reconciliation.application.schemas import ReconciliationReportOut

router = APIRouter(prefix="/reconciliation", tags=["reconciliation"])


def get_reconciliation_engine(
    ledger: Annotated[LedgerClientProtocol, Depends(get_ledger_client)],
) -> ReconciliationEngine:
    return ReconciliationEngine(async_session_factory, ledger)


@router.post("/run")
async def run_reconciliation(
    request: Request,
    engine: Annotated[ReconciliationEngine, Depends(get_reconciliation_engine)],
) -> ApiResponse:
    report = await engine.run_once()
    resp = success_response(ReconciliationReportOut.from_domain(report).to_wire())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
