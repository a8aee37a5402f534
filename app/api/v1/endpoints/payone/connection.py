"""
PAYONE Connection Check Route.

Endpoint:
  POST /api/v1/payone/test-connection — Check the stored credentials

Always answers 200; ``data.success`` says whether PAYONE accepted them.
"""

import logging

from fastapi import APIRouter, Depends

from app.api.deps import get_payone_service
from app.schemas.payone import ConnectionCheckResponse
from app.services.payone_service import PayoneService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/test-connection",
    response_model=ConnectionCheckResponse,
    summary="Check PAYONE credentials",
)
async def test_connection(service: PayoneService = Depends(get_payone_service)):
    result = await service.test_connection()
    logger.info(f"[payone] connection check — success={result.success}, errorcode={result.errorcode}")
    return ConnectionCheckResponse(data=result)
