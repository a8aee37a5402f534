"""
PAYONE Payment Routes.

Endpoints:
  POST /api/v1/payone/preauthorization — Reserve funds
  POST /api/v1/payone/authorization    — Reserve and capture in one step

Processor declines and 3DS redirects come back as 200 responses; read
``status``, ``errorCode`` and ``requires3DSRedirect`` in ``data``.
"""

import logging

from fastapi import APIRouter, Depends

from app.api.deps import get_payone_service
from app.schemas.payone import (
    AuthorizationRequest,
    PaymentOperationResponse,
    PreauthorizationRequest,
)
from app.services.payone_service import PayoneService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/preauthorization",
    response_model=PaymentOperationResponse,
    summary="PAYONE preauthorization",
    description=(
        "Sends request=preauthorization. Missing demo fields (amount, currency, "
        "reference, customer identity) are filled with test placeholders."
    ),
    tags=["payments"],
)
async def preauthorization(
    body: PreauthorizationRequest,
    service: PayoneService = Depends(get_payone_service),
):
    """
    POST /api/v1/payone/preauthorization
    """
    result = await service.preauthorization(body.model_dump(exclude_none=True))
    return PaymentOperationResponse(data=result)


@router.post(
    "/authorization",
    response_model=PaymentOperationResponse,
    summary="PAYONE authorization",
    tags=["payments"],
)
async def authorization(
    body: AuthorizationRequest,
    service: PayoneService = Depends(get_payone_service),
):
    result = await service.authorization(body.model_dump(exclude_none=True))
    return PaymentOperationResponse(data=result)
