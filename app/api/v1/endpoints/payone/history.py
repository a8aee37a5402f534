"""
PAYONE Transaction History Route.

Endpoint:
  GET /api/v1/payone/transaction-history — Ledger entries, newest first
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_payone_service
from app.schemas.payone import TransactionHistoryFilters, TransactionHistoryResponse
from app.services.payone_service import PayoneService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/transaction-history",
    response_model=TransactionHistoryResponse,
    summary="List logged PAYONE transactions",
    description="All filters are optional and combined with AND. Dates are inclusive.",
)
async def get_transaction_history(
    status: Optional[str] = Query(None, description="e.g. APPROVED, ERROR, REDIRECT"),
    request_type: Optional[str] = Query(None, description="preauthorization, authorization, capture, refund"),
    txid: Optional[str] = Query(None, description="PAYONE transaction id"),
    reference: Optional[str] = Query(None, description="Merchant reference"),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    service: PayoneService = Depends(get_payone_service),
):
    filters = TransactionHistoryFilters(
        status=status,
        request_type=request_type,
        txid=txid,
        reference=reference,
        date_from=date_from,
        date_to=date_to,
    )
    entries = await service.get_transaction_history(filters)
    return TransactionHistoryResponse(data=entries)
