"""
Apple Pay merchant validation through PAYONE.

PAYONE validates the merchant with Apple on our behalf: a
``request=genericpayment`` call with ``add_paydata[action]=init_applepay_session``
returns the Apple merchant session as a base64-encoded JSON blob.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from app.core.config import settings
from app.schemas.payone import ApplePayValidationRequest, MerchantSession
from app.services.payone_request import build_generic_payment_params, mask_request_params
from app.services.payone_response import (
    APPROVED_STATUSES,
    extract_error_code,
    extract_error_message,
    extract_status,
)
from app.services.payone_service import PayoneService

logger = logging.getLogger(__name__)

SESSION_BLOB_KEYS = [
    "add_paydata[applepay_payment_session]",
    "add_paydata_applepay_payment_session",
]

# Anything above this is a millisecond epoch (ms values passed it in 2001)
MILLISECOND_EPOCH_THRESHOLD = 10**12

DEFAULT_DISPLAY_NAME = "Test Store"
DEFAULT_DOMAIN = "localhost"


def _decode_session_blob(blob: str) -> Optional[Dict[str, Any]]:
    try:
        decoded = base64.b64decode(blob, validate=False).decode("utf-8")
        session = json.loads(decoded)
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        logger.error(f"[apple-pay] could not decode merchant session blob: {e}")
        return None
    if not isinstance(session, dict):
        logger.error("[apple-pay] merchant session blob is not a JSON object")
        return None
    return session


def _to_seconds(value: Any) -> Any:
    if isinstance(value, (int, float)) and value > MILLISECOND_EPOCH_THRESHOLD:
        return int(value // 1000)
    return value


class ApplePayService:
    def __init__(self, payone: PayoneService):
        self.payone = payone

    @property
    def session_url(self) -> str:
        return settings.apple_pay_session_url

    async def validate_apple_pay_merchant(
        self,
        params: ApplePayValidationRequest,
    ) -> Optional[MerchantSession]:
        """
        Obtain an Apple Pay merchant session from PAYONE.

        Returns None when PAYONE did not approve the session or the
        returned session carries no merchant identifier.
        """
        merchant = await self.payone.settings_service.require_settings()

        display_name = params.display_name or merchant.merchant_name or merchant.display_name or DEFAULT_DISPLAY_NAME
        domain_name = params.domain or merchant.domain_name or DEFAULT_DOMAIN

        request_params = build_generic_payment_params(
            merchant,
            {
                "mid": params.mid or merchant.mid or merchant.merchant_identifier,
                "portalid": params.portalid or merchant.portalid,
                "clearingtype": "wlt",
                "wallettype": "APL",
                "currency": params.currency or "EUR",
                "add_paydata[action]": "init_applepay_session",
                "add_paydata[display_name]": display_name,
                "add_paydata[domain_name]": domain_name,
            },
        )

        logger.info(
            f"[apple-pay] init session — domain={domain_name}, displayName={display_name}, "
            f"validationURL={params.validation_url}, params={mask_request_params(request_params)}"
        )

        response = await self.payone.post_form(self.session_url, request_params)

        status = extract_status(response)
        blob = next((response[k] for k in SESSION_BLOB_KEYS if response.get(k)), None)

        if status not in APPROVED_STATUSES or not blob:
            logger.warning(
                f"[apple-pay] session init not approved — status={status}, "
                f"errorcode={extract_error_code(response)}, "
                f"errormessage={extract_error_message(response)}, hasSession={bool(blob)}"
            )
            return None

        raw_session = _decode_session_blob(blob)
        if raw_session is None:
            return None

        for field in ("epochTimestamp", "expiresAt"):
            if field in raw_session:
                raw_session[field] = _to_seconds(raw_session[field])

        try:
            session = MerchantSession.model_validate(raw_session)
        except ValidationError as e:
            logger.error(f"[apple-pay] invalid merchant session: {e}")
            return None

        if not (session.merchant_identifier or session.merchant_session_identifier):
            logger.warning("[apple-pay] merchant session has no merchant identifier")
            return None

        logger.info(
            f"[apple-pay] merchant session issued — merchantIdentifier={session.merchant_identifier}, "
            f"domainName={session.domain_name}, expiresAt={session.expires_at}"
        )
        return session
