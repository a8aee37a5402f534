"""
PAYONE 3-D Secure Callback Routes.

Endpoints:
  POST /api/v1/payone/3ds-callback        — Callback relayed by the frontend
  GET  /api/v1/payone/payment/{result}    — Browser return from the ACS
  POST /api/v1/payone/payment/{result}    — Form-post return from the ACS

``result`` is one of success / error / back and comes from the
successurl / errorurl / backurl given on the original request. The path
decides the outcome; PAYONE's payload is only read for txid and reference.

GET requests redirect the browser back to the admin page with
``?3ds=<result>&txid=<txid>&status=<status>``.
"""

import logging
from enum import Enum
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from app.api.deps import get_payone_service
from app.core.config import settings
from app.schemas.payone import ThreeDSCallbackResponse
from app.services.payone_service import PayoneService

logger = logging.getLogger(__name__)

router = APIRouter()


class CallbackResult(str, Enum):
    success = "success"
    error = "error"
    back = "back"


# The back URL means the customer abandoned the challenge
RESULT_TYPES = {
    CallbackResult.success: "success",
    CallbackResult.error: "error",
    CallbackResult.back: "cancelled",
}


@router.post(
    "/3ds-callback",
    response_model=ThreeDSCallbackResponse,
    summary="Handle a PAYONE 3DS callback",
    tags=["3ds"],
)
async def three_ds_callback(
    request: Request,
    service: PayoneService = Depends(get_payone_service),
):
    body = await request.body()
    result = service.handle_3ds_callback(body, "callback")
    return ThreeDSCallbackResponse(data=result)


@router.get(
    "/payment/{result}",
    summary="Browser return after 3DS authentication",
    response_class=RedirectResponse,
    status_code=302,
    tags=["3ds"],
)
async def three_ds_return(
    result: CallbackResult,
    request: Request,
    service: PayoneService = Depends(get_payone_service),
):
    """
    GET /api/v1/payone/payment/{success|error|back}
    """
    result_type = RESULT_TYPES[result]
    callback = service.handle_3ds_callback(dict(request.query_params), result_type)

    query = {"3ds": result_type}
    if callback.txid:
        query["txid"] = callback.txid
    if callback.status:
        query["status"] = callback.status

    redirect_url = f"{settings.PAYONE_ADMIN_REDIRECT_PATH}?{urlencode(query)}"
    logger.info(f"[payone] 3DS {result_type} (GET) — redirecting to {redirect_url}")
    return RedirectResponse(redirect_url, status_code=302)


@router.post(
    "/payment/{result}",
    response_model=ThreeDSCallbackResponse,
    summary="Form-post return after 3DS authentication",
    tags=["3ds"],
)
async def three_ds_return_post(
    result: CallbackResult,
    request: Request,
    service: PayoneService = Depends(get_payone_service),
):
    body = await request.body()
    callback = service.handle_3ds_callback(body, RESULT_TYPES[result])
    return ThreeDSCallbackResponse(data=callback)
