"""
PAYONE Payment Gateway Service.

Runs the four payment operations (preauthorization, authorization,
capture, refund) against the PAYONE Server API, handles 3-D Secure
callbacks and the credentials check used by the admin panel.

Every operation is single-shot:
  settings → build → POST form → parse → classify → ledger → return
Configuration / precondition errors are raised before any I/O; transport
errors propagate and are never written to the ledger; processor declines
are ordinary return values.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import settings
from app.core.exceptions import MissingTxIdError, PreconditionError, TransportError
from app.core.store import KeyValueStore
from app.schemas.payone import (
    ConnectionCheckResult,
    MerchantSettings,
    MerchantSettingsUpdate,
    ThreeDSCallbackResult,
    TransactionHistoryFilters,
    TransactionLogEntry,
)
from app.services.payone_request import (
    add_payment_method_params,
    build_client_request_params,
    mask_request_params,
    normalize_reference,
    to_form_data,
)
from app.services.payone_response import (
    apply_classification,
    classify_response,
    extract_txid,
    parse_response,
)
from app.services.settings_service import SettingsService, validate_settings
from app.services.transaction_service import TransactionService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════
# Constants
# ══════════════════════════════════════════════════════════════════════

DEFAULT_AMOUNT = 1000
DEFAULT_CURRENCY = "EUR"

# Placeholder identity so demo preauthorizations never fail on missing data
PREAUTH_PLACEHOLDERS: Dict[str, str] = {
    "firstname": "Test",
    "lastname": "User",
    "street": "Test Street 1",
    "zip": "12345",
    "city": "Test City",
    "country": "DE",
    "email": "test@example.com",
}

# 3DS callback path suffix → status
CALLBACK_STATUSES: Dict[str, str] = {
    "success": "APPROVED",
    "error": "ERROR",
    "back": "CANCELLED",
    "cancelled": "CANCELLED",
}

# Error codes PAYONE uses for rejected credentials
AUTH_ERROR_CODES = {"2006", "920", "921", "922", "401", "403"}
# Card-level rejection: credentials were accepted
CREDENTIALS_OK_ERROR_CODE = "911"

AUTH_ERROR_KEYWORDS = [
    "key incorrect", "invalid key", "portal key", "unauthorized",
    "not authorized", "unknown aid", "unknown account", "unknown portal",
    "unknown merchant", "invalid aid", "invalid mid", "invalid portalid",
]

TEST_CONNECTION_PARAMS: Dict[str, Any] = {
    "request": "authorization",
    "amount": 100,
    "currency": "EUR",
    "clearingtype": "cc",
    "cardtype": "V",
    "cardpan": "4111111111111111",
    "cardexpiredate": "2512",
    "cardcvc2": "123",
    **PREAUTH_PLACEHOLDERS,
}


def _now_ms() -> int:
    return int(time.time() * 1000)


def _present(params: Dict[str, Any]) -> Dict[str, Any]:
    """Caller params without None values, so they never shadow defaults."""
    return {k: v for k, v in params.items() if v is not None}


def _negative_amount(amount: Any) -> int:
    try:
        return -abs(int(amount))
    except (TypeError, ValueError) as e:
        raise PreconditionError(
            "Refund amount must be an integer number of minor units",
            details={"amount": amount},
        ) from e


class PayoneService:
    """
    Operation orchestrator for the PAYONE Server API.

    ``transport`` is handed to httpx and lets tests replace the network.
    """

    def __init__(
        self,
        store: KeyValueStore,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings_service = SettingsService(store)
        self.transaction_service = TransactionService(store)
        self._transport = transport

    @property
    def gateway_url(self) -> str:
        return settings.PAYONE_GATEWAY_URL

    # ──────────────────────────────────────────────────────────────
    # Transport
    # ──────────────────────────────────────────────────────────────

    async def post_form(self, url: str, request_params: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST the form-encoded request and decode the response body.

        Network failures and timeouts surface as TransportError.
        """
        try:
            async with httpx.AsyncClient(
                timeout=settings.PAYONE_TIMEOUT,
                transport=self._transport,
            ) as client:
                resp = await client.post(
                    url,
                    content=to_form_data(request_params),
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
                resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(
                f"[payone] POST {url} failed — request={request_params.get('request')}: {e!r}"
            )
            raise TransportError(
                f"PAYONE gateway request failed: {e}",
                details={"url": url, "request": request_params.get("request")},
            ) from e

        return parse_response(resp.text)

    # ──────────────────────────────────────────────────────────────
    # Core pipeline
    # ──────────────────────────────────────────────────────────────

    async def send_request(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Build, send, classify and log one processor call.
        """
        merchant = await self.settings_service.require_settings()

        request_params = build_client_request_params(merchant, params)
        masked_request = mask_request_params(request_params)

        logger.info(
            f"[payone] POST {params.get('request')} — amount={params.get('amount')} "
            f"{params.get('currency')}, clearingtype={request_params.get('clearingtype')}, "
            f"reference={params.get('reference')}, txid={params.get('txid')}"
        )

        response_data = await self.post_form(self.gateway_url, request_params)
        classification = classify_response(response_data)

        logger.info(
            f"[payone] {params.get('request')} result — status={classification.status}, "
            f"outcome={classification.outcome}, txid={classification.txid}, "
            f"errorcode={classification.error_code}"
        )
        if classification.outcome == "error":
            logger.warning(
                f"[payone] {params.get('request')} declined — "
                f"errorcode={classification.error_code}, "
                f"errormessage={classification.error_message}"
            )

        await self.transaction_service.log_transaction(
            txid=classification.txid or _as_optional_str(params.get("txid")),
            reference=params.get("reference"),
            status=classification.status,
            request_type=params.get("request"),
            amount=params.get("amount"),
            currency=params.get("currency") or DEFAULT_CURRENCY,
            raw_request=masked_request,
            raw_response=response_data,
            error_code=classification.error_code,
            error_message=classification.error_message,
            customer_message=classification.customer_message,
        )

        return apply_classification(response_data, classification)

    # ──────────────────────────────────────────────────────────────
    # Payment operations
    # ──────────────────────────────────────────────────────────────

    async def preauthorization(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Reserve funds. Missing demo data is filled with placeholders."""
        caller = _present(params)
        required: Dict[str, Any] = {
            "clearingtype": "cc",
            "amount": DEFAULT_AMOUNT,
            "currency": DEFAULT_CURRENCY,
            "reference": f"PREAUTH-{_now_ms()}",
            **PREAUTH_PLACEHOLDERS,
            **caller,
            "request": "preauthorization",
        }
        merchant = await self.settings_service.get_settings()
        return await self.send_request(add_payment_method_params(required, merchant))

    async def authorization(self, params: Dict[str, Any]) -> Dict[str, Any]:
        caller = _present(params)
        required: Dict[str, Any] = {
            "clearingtype": "cc",
            **caller,
            "request": "authorization",
        }
        merchant = await self.settings_service.get_settings()
        return await self.send_request(add_payment_method_params(required, merchant))

    async def capture(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Capture a preauthorized amount. PAYONE rejects a reference here."""
        caller = _present(params)
        if not caller.get("txid"):
            raise MissingTxIdError("capture")

        required: Dict[str, Any] = {
            "amount": DEFAULT_AMOUNT,
            "currency": DEFAULT_CURRENCY,
            **caller,
            "request": "capture",
            "txid": str(caller["txid"]),
        }
        required.pop("reference", None)
        return await self.send_request(required)

    async def refund(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Refund a captured amount. The amount is always sent negative."""
        caller = _present(params)
        if not caller.get("txid"):
            raise MissingTxIdError("refund")

        required: Dict[str, Any] = {
            "amount": DEFAULT_AMOUNT,
            "currency": DEFAULT_CURRENCY,
            "reference": f"REFUND-{_now_ms()}",
            **caller,
            "request": "refund",
            "txid": str(caller["txid"]),
        }
        required["amount"] = _negative_amount(required["amount"])
        return await self.send_request(required)

    # ──────────────────────────────────────────────────────────────
    # 3-D Secure callback
    # ──────────────────────────────────────────────────────────────

    def handle_3ds_callback(
        self,
        callback_data: Any,
        result_type: str = "callback",
    ) -> ThreeDSCallbackResult:
        """
        Resolve the outcome of a 3DS redirect.

        PAYONE's redirect rarely carries a status, so the matched URL path
        (success / error / back) decides it. The payload is only mined for
        txid and reference. Not written to the transaction ledger.
        """
        parsed = parse_response(callback_data) if callback_data else {}
        txid = extract_txid(parsed)
        reference = parsed.get("reference") or parsed.get("Reference")

        status = CALLBACK_STATUSES.get(result_type)
        if status is None:
            status = str(parsed.get("status") or parsed.get("Status") or "PENDING").upper()

        logger.info(
            f"[payone] 3DS callback processed — resultType={result_type}, "
            f"status={status}, txid={txid}, reference={reference}, keys={list(parsed.keys())}"
        )

        return ThreeDSCallbackResult(
            success=result_type == "success",
            status=status,
            txid=txid,
            reference=_as_optional_str(reference),
            data=parsed,
        )

    # ──────────────────────────────────────────────────────────────
    # Settings / history passthroughs
    # ──────────────────────────────────────────────────────────────

    async def get_settings(self) -> MerchantSettings:
        return await self.settings_service.get_masked_settings()

    async def update_settings(self, patch: MerchantSettingsUpdate) -> MerchantSettings:
        updated = await self.settings_service.update_settings(patch)
        return updated.masked()

    async def get_transaction_history(
        self,
        filters: Optional[TransactionHistoryFilters] = None,
    ) -> List[TransactionLogEntry]:
        return await self.transaction_service.get_transaction_history(filters)

    # ──────────────────────────────────────────────────────────────
    # Credentials check
    # ──────────────────────────────────────────────────────────────

    async def test_connection(self) -> ConnectionCheckResult:
        """
        Send a small test-card authorization to check the credentials.

        Diagnostic only: never raises for gateway problems and is not
        written to the transaction ledger.
        """
        merchant = await self.settings_service.get_settings()
        if not validate_settings(merchant):
            return ConnectionCheckResult(
                success=False,
                message="Payone settings not configured. Please fill in all required fields.",
            )

        test_params = {
            **TEST_CONNECTION_PARAMS,
            "reference": normalize_reference(None, "TEST"),
        }
        request_params = build_client_request_params(merchant, test_params)

        try:
            result = await self.post_form(self.gateway_url, request_params)
        except TransportError as e:
            logger.error(f"[payone] test connection error: {e.message}")
            return ConnectionCheckResult(
                success=False,
                message=f"Connection error: {e.message}",
                details={"errorType": type(e.__cause__ or e).__name__},
            )

        classification = classify_response(result)
        status = classification.status
        error_code = classification.error_code or ""
        error_message = classification.error_message or ""
        customer_message = classification.customer_message or ""
        credentials = {
            "mode": merchant.mode,
            "aid": merchant.aid,
            "portalid": merchant.portalid,
            "mid": merchant.mid,
        }

        if status == "APPROVED":
            return ConnectionCheckResult(
                success=True,
                message="Connection successful! Your Payone credentials are valid.",
                details=credentials,
            )

        if status == "ERROR":
            if error_code in AUTH_ERROR_CODES:
                return ConnectionCheckResult(
                    success=False,
                    message=f"Authentication failed: {customer_message or error_message or 'Invalid credentials'}",
                    errorcode=error_code,
                )

            if any(keyword in error_message.lower() for keyword in AUTH_ERROR_KEYWORDS):
                return ConnectionCheckResult(
                    success=False,
                    message=f"Authentication failed: {error_message}",
                    errorcode=error_code or "AUTH",
                )

            if error_code == CREDENTIALS_OK_ERROR_CODE:
                return ConnectionCheckResult(
                    success=True,
                    message="Connection successful! Your Payone credentials are valid.",
                    details=credentials,
                )

            return ConnectionCheckResult(
                success=False,
                message=f"Connection failed: {customer_message or error_message or 'Unknown error'}",
                errorcode=error_code or None,
                details={"status": status, "errorCode": error_code},
            )

        return ConnectionCheckResult(
            success=False,
            message="Unexpected response format from Payone API",
            details={"status": status, "keys": sorted(result.keys())},
        )


def _as_optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)
