"""
PAYONE response decoding and classification.

The Server API answers with key=value lines or URL-encoded text (JSON on some
endpoints); field casing is not stable across request types, so every
lookup goes through a list of aliases.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Union
from urllib.parse import parse_qsl

from pydantic import BaseModel

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════
# Constants
# ══════════════════════════════════════════════════════════════════════

# PAYONE's "3-D Secure authentication required" error code
THREE_DS_REQUIRED_ERROR_CODE = "4219"

ERROR_CODE_KEYS = ["errorcode", "ErrorCode", ("Error", "ErrorCode"), "error_code"]
ERROR_MESSAGE_KEYS = ["errormessage", "ErrorMessage", ("Error", "ErrorMessage"), "error_message"]
CUSTOMER_MESSAGE_KEYS = [
    "customermessage", "CustomerMessage", ("Error", "CustomerMessage"), "customer_message",
]

TXID_KEYS = ["txid", "TxId", "tx_id", "transactionid", "transaction_id", "id"]

REDIRECT_URL_KEYS = [
    "redirecturl", "RedirectUrl", "redirect_url", "redirectUrl",
    "RedirectURL", "redirectURL", "url", "Url", "URL",
]
REDIRECT_URL_EXTRACT_KEYS = REDIRECT_URL_KEYS + ["redirect", "Redirect"]

ERROR_STATUSES = {"ERROR", "INVALID"}
APPROVED_STATUSES = {"APPROVED", "OK"}


class Outcome:
    APPROVED = "approved"
    ERROR = "error"
    REDIRECT = "redirect"
    PENDING = "pending"


class ResponseClassification(BaseModel):
    """Normalized view of a decoded PAYONE response."""

    status: str
    outcome: str
    txid: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    customer_message: Optional[str] = None
    requires_3ds_redirect: bool = False
    is_3ds_required: bool = False
    redirect_url: Optional[str] = None


# ══════════════════════════════════════════════════════════════════════
# Decoding
# ══════════════════════════════════════════════════════════════════════


def _flatten_add_paydata(key: str) -> str:
    return key.replace("[", "_").replace("]", "")


def _store_field(response: Dict[str, Any], key: str, value: Any) -> None:
    response[key.lower()] = value
    response[key] = value
    if "add_paydata" in key or "addPaydata" in key:
        response[_flatten_add_paydata(key)] = value


def _try_json_object(text: str) -> Optional[Dict[str, Any]]:
    if not text.strip().startswith("{"):
        return None
    try:
        parsed = json.loads(text)
    except ValueError as e:
        logger.error(f"[payone] parse_response JSON error: {e}")
        return None
    return parsed if isinstance(parsed, dict) else None


def _parse_lines(text: str) -> List[tuple]:
    """
    The post-gateway answers one ``key=value`` per line, values unencoded
    (a redirecturl keeps its own ``&``).
    """
    pairs = []
    for line in text.strip().splitlines():
        key, sep, value = line.partition("=")
        if sep and key.strip():
            pairs.append((key.strip(), value.strip()))
    return pairs


def parse_response(body: Union[str, bytes, Mapping[str, Any], None]) -> Dict[str, Any]:
    """
    Decode a PAYONE response (or callback payload) into a flat dict.

    Every field is reachable by its original key and by its lower-cased
    key; ``add_paydata[x]`` is also reachable as ``add_paydata_x``.
    """
    if body is None:
        return {}

    if isinstance(body, Mapping):
        pairs = list(body.items())
    else:
        text = body.decode("utf-8") if isinstance(body, bytes) else str(body)
        parsed = _try_json_object(text)
        if parsed is not None:
            pairs = list(parsed.items())
        elif "\n" in text.strip():
            pairs = _parse_lines(text)
        else:
            pairs = parse_qsl(text.strip(), keep_blank_values=True)

    response: Dict[str, Any] = {}
    for key, value in pairs:
        _store_field(response, str(key), value)
    return response


# ══════════════════════════════════════════════════════════════════════
# Field extraction
# ══════════════════════════════════════════════════════════════════════


def _lookup(data: Mapping[str, Any], key: Union[str, tuple]) -> Any:
    if isinstance(key, tuple):
        parent, child = key
        nested = data.get(parent)
        return nested.get(child) if isinstance(nested, Mapping) else None
    return data.get(key)


def _first_present(data: Mapping[str, Any], keys: List[Union[str, tuple]]) -> Any:
    """First value that is neither None nor an empty string."""
    for key in keys:
        value = _lookup(data, key)
        if value is not None and value != "":
            return value
    return None


def _as_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def extract_error_code(data: Mapping[str, Any]) -> Optional[str]:
    return _as_str(_first_present(data, ERROR_CODE_KEYS))


def extract_error_message(data: Mapping[str, Any]) -> Optional[str]:
    return _as_str(_first_present(data, ERROR_MESSAGE_KEYS))


def extract_customer_message(data: Mapping[str, Any]) -> Optional[str]:
    return _as_str(_first_present(data, CUSTOMER_MESSAGE_KEYS))


def extract_txid(data: Mapping[str, Any]) -> Optional[str]:
    return _as_str(_first_present(data, TXID_KEYS))


def extract_status(data: Mapping[str, Any]) -> str:
    status = _first_present(data, ["status", "Status"])
    return str(status if status is not None else "unknown").upper()


def _is_3ds_required_error(data: Mapping[str, Any]) -> bool:
    return extract_error_code(data) == THREE_DS_REQUIRED_ERROR_CODE


def requires_3ds_redirect(data: Mapping[str, Any]) -> bool:
    """REDIRECT status with a redirect URL, or the 4219 step-up sentinel."""
    has_redirect_url = _first_present(data, REDIRECT_URL_KEYS) is not None
    return (extract_status(data) == "REDIRECT" and has_redirect_url) or _is_3ds_required_error(data)


def get_3ds_redirect_url(data: Mapping[str, Any]) -> Optional[str]:
    """
    Redirect target for step-up authentication.

    Returns None when PAYONE signalled 4219 without a URL; a secondary
    3dscheck call would then be needed.
    """
    return _as_str(_first_present(data, REDIRECT_URL_EXTRACT_KEYS))


def is_error_response(data: Mapping[str, Any]) -> bool:
    return extract_status(data) in ERROR_STATUSES or extract_error_code(data) is not None


# ══════════════════════════════════════════════════════════════════════
# Classification
# ══════════════════════════════════════════════════════════════════════


def classify_response(data: Mapping[str, Any]) -> ResponseClassification:
    status = extract_status(data)
    error_code = extract_error_code(data)
    is_3ds_required = error_code == THREE_DS_REQUIRED_ERROR_CODE
    needs_redirect = requires_3ds_redirect(data)
    redirect_url = get_3ds_redirect_url(data) if needs_redirect else None

    if needs_redirect:
        outcome = Outcome.REDIRECT
        if is_3ds_required and not redirect_url:
            logger.warning(
                "[payone] 3DS authentication required (error 4219) but no "
                "redirect URL found; a 3dscheck request may be needed"
            )
    elif status in ERROR_STATUSES or error_code is not None:
        outcome = Outcome.ERROR
    elif status in APPROVED_STATUSES:
        outcome = Outcome.APPROVED
    else:
        outcome = Outcome.PENDING

    return ResponseClassification(
        status=status,
        outcome=outcome,
        txid=extract_txid(data),
        error_code=error_code,
        error_message=extract_error_message(data),
        customer_message=extract_customer_message(data),
        requires_3ds_redirect=needs_redirect,
        is_3ds_required=is_3ds_required,
        redirect_url=redirect_url,
    )


def apply_classification(
    data: Dict[str, Any],
    classification: ResponseClassification,
) -> Dict[str, Any]:
    """Annotate the decoded response with the normalized fields callers read."""
    annotated = dict(data)
    if classification.requires_3ds_redirect:
        annotated["requires3DSRedirect"] = True
        annotated["redirectUrl"] = classification.redirect_url
        annotated["is3DSRequired"] = classification.is_3ds_required
    annotated["errorCode"] = classification.error_code
    annotated["errorMessage"] = classification.error_message
    annotated["customerMessage"] = classification.customer_message
    annotated["status"] = classification.status
    return annotated
