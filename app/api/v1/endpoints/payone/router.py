"""
PAYONE Router Aggregator.

Combines all PAYONE sub-routers. Registered in api.py under /payone, so
the full paths become:

  GET  /api/v1/payone/settings                     — Merchant settings (key masked)
  GET  /api/v1/payone/settings/public              — mid / mode
  PUT  /api/v1/payone/settings                     — Update settings
  GET  /api/v1/payone/transaction-history          — Ledger
  POST /api/v1/payone/test-connection              — Credentials check
  POST /api/v1/payone/preauthorization             — Reserve funds
  POST /api/v1/payone/authorization                — Reserve and capture
  POST /api/v1/payone/capture                      — Capture preauthorization
  POST /api/v1/payone/refund                       — Refund
  POST /api/v1/payone/3ds-callback                 — 3DS callback
  GET  /api/v1/payone/payment/{success|error|back} — 3DS browser return
  POST /api/v1/payone/payment/{success|error|back} — 3DS form-post return
  POST /api/v1/payone/validate-apple-pay-merchant  — Apple Pay merchant session
"""

from fastapi import APIRouter

from app.api.v1.endpoints.payone.apple_pay import router as apple_pay_router
from app.api.v1.endpoints.payone.capture import router as capture_router
from app.api.v1.endpoints.payone.connection import router as connection_router
from app.api.v1.endpoints.payone.history import router as history_router
from app.api.v1.endpoints.payone.payment import router as payment_router
from app.api.v1.endpoints.payone.refund import router as refund_router
from app.api.v1.endpoints.payone.settings import router as settings_router
from app.api.v1.endpoints.payone.three_ds import router as three_ds_router

# Main PAYONE router; the /payone prefix is applied in api.py
payone_router = APIRouter()

payone_router.include_router(settings_router)
payone_router.include_router(history_router)
payone_router.include_router(connection_router)
payone_router.include_router(payment_router)
payone_router.include_router(capture_router)
payone_router.include_router(refund_router)
payone_router.include_router(three_ds_router)
payone_router.include_router(apple_pay_router)
