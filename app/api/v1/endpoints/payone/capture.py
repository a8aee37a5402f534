"""
PAYONE Capture Route.

Endpoint:
  POST /api/v1/payone/capture — Capture a preauthorized payment

Requires the txid of the preauthorization. PAYONE rejects a reference on
capture, so any reference in the body is dropped.
"""

import logging

from fastapi import APIRouter, Depends

from app.api.deps import get_payone_service
from app.schemas.payone import CaptureRequest, PaymentOperationResponse
from app.services.payone_service import PayoneService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/capture",
    response_model=PaymentOperationResponse,
    summary="Capture a preauthorized PAYONE payment",
    tags=["payments"],
)
async def capture(
    body: CaptureRequest,
    service: PayoneService = Depends(get_payone_service),
):
    """
    POST /api/v1/payone/capture

    Returns 400 MISSING_TXID when no txid is given; nothing is sent.
    """
    result = await service.capture(body.model_dump(exclude_none=True))
    return PaymentOperationResponse(data=result)
