"""
PAYONE Settings Routes.

Endpoints:
  GET /api/v1/payone/settings         — Merchant settings (portal key masked)
  GET /api/v1/payone/settings/public  — mid and mode only, for storefronts
  PUT /api/v1/payone/settings         — Partial settings update
"""

import logging

from fastapi import APIRouter, Depends

from app.api.deps import get_payone_service
from app.schemas.payone import (
    MerchantSettingsUpdate,
    PublicSettings,
    PublicSettingsResponse,
    SettingsResponse,
)
from app.services.payone_service import PayoneService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/settings",
    response_model=SettingsResponse,
    summary="Get PAYONE merchant settings",
    description="Returns the stored merchant settings. The portal key is replaced by ***HIDDEN***.",
)
async def get_settings(service: PayoneService = Depends(get_payone_service)):
    return SettingsResponse(data=await service.get_settings())


@router.get(
    "/settings/public",
    response_model=PublicSettingsResponse,
    summary="Get public PAYONE settings",
)
async def get_public_settings(service: PayoneService = Depends(get_payone_service)):
    merchant = await service.get_settings()
    return PublicSettingsResponse(
        data=PublicSettings(mid=merchant.mid or None, mode=merchant.mode or None)
    )


@router.put(
    "/settings",
    response_model=SettingsResponse,
    summary="Update PAYONE merchant settings",
    description=(
        "Merges the given fields over the stored settings. "
        "An empty or masked key keeps the stored portal key."
    ),
)
async def update_settings(
    body: MerchantSettingsUpdate,
    service: PayoneService = Depends(get_payone_service),
):
    return SettingsResponse(data=await service.update_settings(body))
