"""
Apple Pay Merchant Validation Route.

Endpoint:
  POST /api/v1/payone/validate-apple-pay-merchant

Called from the Apple Pay ``onvalidatemerchant`` handler. The returned
``data`` is passed unchanged to ``session.completeMerchantValidation``.
"""

import logging

from fastapi import APIRouter, Depends

from app.api.deps import get_apple_pay_service
from app.core.exceptions import SessionInvalidError
from app.schemas.payone import ApplePayValidationRequest, MerchantSessionResponse
from app.services.apple_pay_service import ApplePayService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/validate-apple-pay-merchant",
    response_model=MerchantSessionResponse,
    summary="Validate an Apple Pay merchant through PAYONE",
    tags=["apple-pay"],
)
async def validate_apple_pay_merchant(
    body: ApplePayValidationRequest,
    service: ApplePayService = Depends(get_apple_pay_service),
):
    session = await service.validate_apple_pay_merchant(body)
    if session is None:
        raise SessionInvalidError(
            "PAYONE did not return a valid Apple Pay merchant session",
            details={"domain": body.domain},
        )
    return MerchantSessionResponse(data=session.model_dump(by_alias=True, exclude_none=True))
