"""
PAYONE request pipeline.

Pure functions that turn caller parameters plus stored merchant settings
into the flat key/value body the PAYONE Server API expects:

  normalize_*                  → provider-legal identifiers
  add_payment_method_params    → clearingtype-specific field set
  build_client_request_params  → final parameter map incl. key hash / 3DS
  to_form_data                 → x-www-form-urlencoded body

No network I/O happens here.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
import logging
import random
import re
import string
import time
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode

from pydantic import BaseModel, TypeAdapter

from app.core.config import settings
from app.schemas.payone import (
    HIDDEN_KEY,
    CommonCustomerFields,
    MerchantSettings,
    PaymentMethodFields,
)

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════
# Constants
# ══════════════════════════════════════════════════════════════════════

CUSTOMER_ID_MAX_LENGTH = 17
REFERENCE_MAX_LENGTH = 20

WALLET_CLEARING_TYPE = "wlt"
CARD_CLEARING_TYPE = "cc"

WALLET_TYPE_PAYPAL = "PPE"
WALLET_TYPE_GOOGLE_PAY = "GGP"
WALLET_TYPE_APPLE_PAY = "APL"

# Logical wallet method → wallettype sub-code
WALLET_METHODS: Dict[str, str] = {
    "gpp": WALLET_TYPE_GOOGLE_PAY,
    "apl": WALLET_TYPE_APPLE_PAY,
}

# Bank redirect method → (bankcountry, onlinebanktransfertype)
BANK_TRANSFER_TYPES: Dict[str, Tuple[str, str]] = {
    "sb": ("DE", "PNT"),
    "gp": ("DE", "GPY"),
    "idl": ("NL", "IDL"),
    "bct": ("BE", "BCT"),
}

# Methods whose default set is a single type field
SINGLE_FIELD_METHODS = {"rec", "fnc", "iv"}

# Caller token key → (add_paydata[paymentmethod], add_paydata[paymentmethod_type])
WALLET_TOKEN_KEYS: Dict[str, Tuple[str, str]] = {
    "googlePayToken": (WALLET_TYPE_GOOGLE_PAY, "GOOGLEPAY"),
    "applePayToken": (WALLET_TYPE_APPLE_PAY, "APPLEPAY"),
}

WALLET_GATEWAY_ID = "payonegmbh"
TOKEN_DATA_KEY = "add_paydata[paymentmethod_token_data]"
PAYMENT_METHOD_KEY = "add_paydata[paymentmethod]"

THREE_DS_OPERATIONS = {"preauthorization", "authorization"}

# Values never written verbatim to logs or the ledger
SECRET_FIELDS = {
    "key",
    "cardcvc2",
    TOKEN_DATA_KEY,
    "add_paydata[paymentdata_token_data]",
    "add_paydata[paymentdata_token_signature]",
}

_METHOD_FIELDS = TypeAdapter(PaymentMethodFields)


# ══════════════════════════════════════════════════════════════════════
# Normalizer
# ══════════════════════════════════════════════════════════════════════


def _now_ms() -> int:
    return int(time.time() * 1000)


def normalize_customer_id(customer_id: Any = None) -> str:
    """
    PAYONE caps customerid at 17 characters.

    A missing id is synthesized from the clock plus a random suffix; an
    over-long one is truncated with a warning.
    """
    if not customer_id:
        timestamp = str(_now_ms())[-10:]
        suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=4))
        return f"{timestamp}{suffix}"[:CUSTOMER_ID_MAX_LENGTH]

    raw = str(customer_id)
    normalized = raw[:CUSTOMER_ID_MAX_LENGTH]
    if len(raw) > CUSTOMER_ID_MAX_LENGTH:
        logger.warning(
            f"[payone] customerid exceeds {CUSTOMER_ID_MAX_LENGTH} characters: "
            f"{len(raw)}, truncated to: {normalized}"
        )
    return normalized


def normalize_reference(value: Any, fallback_prefix: str = "REF") -> str:
    """Alphanumerics only, max 20 characters, never empty, never raises."""
    try:
        raw = "" if value is None else str(value)
        normalized = re.sub(r"[^A-Za-z0-9]", "", raw)
    except Exception as e:
        logger.warning(f"[payone] reference could not be normalized, using fallback: {e}")
        normalized = ""
    if not normalized:
        normalized = f"{fallback_prefix}{_now_ms()}"
    return normalized[:REFERENCE_MAX_LENGTH]


# ══════════════════════════════════════════════════════════════════════
# Payment-method parameter resolver
# ══════════════════════════════════════════════════════════════════════


def _is_unset(value: Any) -> bool:
    return value is None or value == ""


def _fill_unset(target: Dict[str, Any], defaults: Dict[str, Any]) -> None:
    """Copy defaults into target without overwriting caller values."""
    for key, value in defaults.items():
        if _is_unset(target.get(key)):
            target[key] = value


def _method_fields(method: str, params: Dict[str, Any]) -> BaseModel:
    """Default field group for a logical payment method code."""
    if method == WALLET_CLEARING_TYPE or method in WALLET_METHODS:
        group = {
            "clearingtype": WALLET_CLEARING_TYPE,
            "wallettype": WALLET_METHODS.get(method, WALLET_TYPE_PAYPAL),
        }
    elif method == "elv":
        holder = f"{params.get('firstname') or 'Test'} {params.get('lastname') or 'User'}"
        group = {"clearingtype": "elv", "bankaccountholder": holder}
    elif method in BANK_TRANSFER_TYPES:
        country, transfer_type = BANK_TRANSFER_TYPES[method]
        group = {
            "clearingtype": method,
            "bankcountry": country,
            "onlinebanktransfertype": transfer_type,
        }
    elif method in SINGLE_FIELD_METHODS:
        group = {"clearingtype": method}
    else:
        # Unknown codes fall back to the card set
        group = {"clearingtype": CARD_CLEARING_TYPE}
    return _METHOD_FIELDS.validate_python(group)


def _serialize_token(token: Any) -> str:
    if isinstance(token, str):
        return token
    return json.dumps(token, separators=(",", ":"))


def _decode_apple_pay_token(token: Any) -> Optional[Dict[str, Any]]:
    """Apple Pay tokens arrive as a dict, a JSON string or base64-encoded JSON."""
    if isinstance(token, dict):
        return token
    if not isinstance(token, str):
        return None
    try:
        decoded = json.loads(base64.b64decode(token, validate=True).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        try:
            decoded = json.loads(token)
        except ValueError as e:
            logger.error(f"[apple-pay] could not decode payment token: {e}")
            return None
    return decoded if isinstance(decoded, dict) else None


def _apple_pay_payment_data(token: Any) -> Dict[str, str]:
    """
    Split the Apple Pay paymentData envelope into PAYONE's
    add_paydata[paymentdata_token_*] fields.
    """
    token_data = _decode_apple_pay_token(token)
    if token_data is None:
        return {}

    payment_data = token_data.get("paymentData")
    if not isinstance(payment_data, dict):
        logger.error("[apple-pay] invalid token structure: missing paymentData field")
        return {}

    header = payment_data.get("header") or {}
    fields = {
        "add_paydata[paymentdata_token_version]": payment_data.get("version") or "EC_v1",
        "add_paydata[paymentdata_token_data]": payment_data.get("data") or "",
        "add_paydata[paymentdata_token_signature]": payment_data.get("signature") or "",
        "add_paydata[paymentdata_token_ephemeral_publickey]": header.get("ephemeralPublicKey") or "",
        "add_paydata[paymentdata_token_publickey_hash]": header.get("publicKeyHash") or "",
    }
    transaction_id = payment_data.get("transactionId") or header.get("transactionId")
    if transaction_id:
        fields["add_paydata[paymentdata_token_transaction_id]"] = transaction_id

    missing = [key for key, value in fields.items() if value == ""]
    if missing:
        logger.error(f"[apple-pay] missing required token fields: {missing}")
    return fields


def _inject_wallet_token(
    params: Dict[str, Any],
    merchant: Optional[MerchantSettings],
) -> None:
    """Rewrite a wallet SDK token into PAYONE's add_paydata[...] fields."""
    for token_key, (payment_method, payment_method_type) in WALLET_TOKEN_KEYS.items():
        token = params.pop(token_key, None)
        if _is_unset(token):
            continue

        params[TOKEN_DATA_KEY] = _serialize_token(token)
        params[PAYMENT_METHOD_KEY] = payment_method
        params["add_paydata[paymentmethod_type]"] = payment_method_type
        params["add_paydata[gatewayid]"] = WALLET_GATEWAY_ID

        if token_key == "applePayToken":
            params.update(_apple_pay_payment_data(token))

        gateway_merchant_id = (merchant.mid or merchant.portalid) if merchant else ""
        if gateway_merchant_id:
            params["add_paydata[gateway_merchantid]"] = gateway_merchant_id

        logger.info(
            f"[payone] wallet token injected from {token_key} "
            f"(paymentmethod={payment_method})"
        )


def add_payment_method_params(
    params: Dict[str, Any],
    merchant: Optional[MerchantSettings] = None,
) -> Dict[str, Any]:
    """
    Merge the clearingtype-specific field set into caller params.

    Caller-supplied values always win over defaults. Returns a new dict.
    """
    updated: Dict[str, Any] = dict(params)
    method = updated.get("clearingtype") or CARD_CLEARING_TYPE

    # Wallet variants resolve to the generic wallet clearing type first so
    # the generic wallet default below cannot override the sub-code.
    if method in WALLET_METHODS:
        updated["clearingtype"] = WALLET_CLEARING_TYPE
        updated["wallettype"] = WALLET_METHODS[method]

    defaults = _method_fields(method, updated).model_dump(exclude={"clearingtype"})
    if not _is_unset(updated.get("wallettype")):
        defaults.pop("wallettype", None)
    _fill_unset(updated, defaults)

    _inject_wallet_token(updated, merchant)

    if updated.get("clearingtype") == WALLET_CLEARING_TYPE:
        if _is_unset(updated.get("wallettype")):
            hint = updated.get("paymentMethod")
            if method == "gpp" or hint == "gpp" or updated.get(PAYMENT_METHOD_KEY) == WALLET_TYPE_GOOGLE_PAY:
                updated["wallettype"] = WALLET_TYPE_GOOGLE_PAY
            elif method == "apl" or hint == "apl" or updated.get(PAYMENT_METHOD_KEY) == WALLET_TYPE_APPLE_PAY:
                updated["wallettype"] = WALLET_TYPE_APPLE_PAY
            else:
                updated["wallettype"] = WALLET_TYPE_PAYPAL

        # Card and wallet fields are never sent together
        updated.pop("cardtype", None)

    _fill_unset(updated, CommonCustomerFields().model_dump())
    return updated


# ══════════════════════════════════════════════════════════════════════
# Request builder
# ══════════════════════════════════════════════════════════════════════


def compute_key_hash(portal_key: str) -> str:
    """Hex MD5 of the portal key, as the PAYONE Server API expects."""
    return hashlib.md5(portal_key.encode("utf-8")).hexdigest()


def _seed_params(merchant: MerchantSettings, params: Dict[str, Any]) -> Dict[str, Any]:
    seeded: Dict[str, Any] = {
        "request": params.get("request"),
        "aid": merchant.aid,
        "mid": merchant.mid,
        "portalid": merchant.portalid,
        "mode": merchant.mode or "test",
        "encoding": "UTF-8",
    }
    if merchant.api_version:
        seeded["api_version"] = merchant.api_version
    seeded.update(params)
    seeded["key"] = compute_key_hash(merchant.key)
    return seeded


def build_client_request_params(
    merchant: MerchantSettings,
    params: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Build the final flat parameter map for a payment request.
    """
    request_params = _seed_params(merchant, params)
    request_params["customerid"] = normalize_customer_id(request_params.get("customerid"))

    operation = params.get("request")
    is_credit_card = request_params.get("clearingtype") == CARD_CLEARING_TYPE

    if is_credit_card and merchant.enable_3d_secure and operation in THREE_DS_OPERATIONS:
        request_params["3dsecure"] = "yes"
        request_params["ecommercemode"] = params.get("ecommercemode") or "internet"
        _fill_unset(
            request_params,
            {
                "successurl": settings.PAYONE_3DS_SUCCESS_URL,
                "errorurl": settings.PAYONE_3DS_ERROR_URL,
                "backurl": settings.PAYONE_3DS_BACK_URL,
            },
        )
        logger.info(
            f"[payone] 3DS redirect URLs — success={request_params['successurl']}, "
            f"error={request_params['errorurl']}, back={request_params['backurl']}"
        )
    elif is_credit_card and not merchant.enable_3d_secure:
        request_params["3dsecure"] = "no"

    _fill_unset(request_params, CommonCustomerFields().model_dump())

    if request_params.get("clearingtype") == WALLET_CLEARING_TYPE:
        request_params.pop("cardtype", None)
        if _is_unset(request_params.get("wallettype")):
            request_params["wallettype"] = (
                WALLET_TYPE_GOOGLE_PAY
                if request_params.get(TOKEN_DATA_KEY)
                else WALLET_TYPE_PAYPAL
            )

    return request_params


def build_generic_payment_params(
    merchant: MerchantSettings,
    params: Dict[str, Any],
) -> Dict[str, Any]:
    """Reduced builder for request=genericpayment calls (identifiers + key only)."""
    return _seed_params(merchant, {"request": "genericpayment", **params})


# ══════════════════════════════════════════════════════════════════════
# Transport encoding
# ══════════════════════════════════════════════════════════════════════


def to_form_data(request_params: Dict[str, Any]) -> str:
    """x-www-form-urlencoded body; None values are omitted."""
    return urlencode(
        [(key, str(value)) for key, value in request_params.items() if value is not None]
    )


def mask_request_params(request_params: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of the request with secrets hidden, for logs and the ledger."""
    masked = dict(request_params)
    for key in SECRET_FIELDS:
        if not _is_unset(masked.get(key)):
            masked[key] = HIDDEN_KEY
    cardpan = masked.get("cardpan")
    if not _is_unset(cardpan):
        pan = str(cardpan)
        masked["cardpan"] = "*" * max(len(pan) - 4, 0) + pan[-4:]
    if not _is_unset(masked.get("iban")):
        iban = str(masked["iban"])
        masked["iban"] = iban[:4] + "*" * max(len(iban) - 8, 0) + iban[-4:]
    return masked
