"""
PAYONE Refund Route.

Endpoint:
  POST /api/v1/payone/refund — Refund a captured payment

The amount is sent as a negative number regardless of the sign given.
"""

import logging

from fastapi import APIRouter, Depends

from app.api.deps import get_payone_service
from app.schemas.payone import PaymentOperationResponse, RefundRequest
from app.services.payone_service import PayoneService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/refund",
    response_model=PaymentOperationResponse,
    summary="Refund a captured PAYONE payment",
    tags=["payments"],
)
async def refund(
    body: RefundRequest,
    service: PayoneService = Depends(get_payone_service),
):
    result = await service.refund(body.model_dump(exclude_none=True))
    return PaymentOperationResponse(data=result)
