from fastapi import APIRouter

from app.api.v1.endpoints.payone.router import payone_router

api_router = APIRouter()

# PAYONE payment gateway routes, prefix /payone
# Full paths: /api/v1/payone/preauthorization, /api/v1/payone/capture, etc.
api_router.include_router(
    payone_router,
    prefix="/payone",
    tags=["payone"],
)
