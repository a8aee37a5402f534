"""
Pydantic models for the PAYONE adapter: merchant settings, payment-method
field groups, transaction log entries and API request/response bodies.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


HIDDEN_KEY = "***HIDDEN***"


# ──────────────────────────────────────────────────────────────────────
#  Merchant settings, stored under key "settings"
# ──────────────────────────────────────────────────────────────────────


class MerchantSettings(BaseModel):
    """
    Merchant credentials and wallet metadata.

    Stored and returned with the camelCase names the admin UI uses.
    """

    aid: str = ""
    portalid: str = ""
    mid: str = ""
    key: str = ""
    mode: Literal["test", "live"] = "test"
    api_version: str = "3.10"
    enable_3d_secure: bool = Field(True, alias="enable3DSecure")

    # Wallet metadata
    merchant_name: str = Field("", alias="merchantName")
    display_name: str = Field("", alias="displayName")
    domain_name: str = Field("", alias="domainName")
    merchant_identifier: str = Field("", alias="merchantIdentifier")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def is_complete(self) -> bool:
        return bool(self.aid and self.portalid and self.key)

    def masked(self) -> "MerchantSettings":
        if not self.key:
            return self.model_copy()
        return self.model_copy(update={"key": HIDDEN_KEY})


class MerchantSettingsUpdate(BaseModel):
    """Partial update; a masked or empty key keeps the stored one."""

    aid: Optional[str] = None
    portalid: Optional[str] = None
    mid: Optional[str] = None
    key: Optional[str] = None
    mode: Optional[Literal["test", "live"]] = None
    api_version: Optional[str] = None
    enable_3d_secure: Optional[bool] = Field(None, alias="enable3DSecure")
    merchant_name: Optional[str] = Field(None, alias="merchantName")
    display_name: Optional[str] = Field(None, alias="displayName")
    domain_name: Optional[str] = Field(None, alias="domainName")
    merchant_identifier: Optional[str] = Field(None, alias="merchantIdentifier")

    model_config = ConfigDict(populate_by_name=True)


class PublicSettings(BaseModel):
    mid: Optional[str] = None
    mode: Optional[str] = None


class SettingsResponse(BaseModel):
    data: MerchantSettings


class PublicSettingsResponse(BaseModel):
    data: PublicSettings


# ──────────────────────────────────────────────────────────────────────
#  Payment-method field groups, keyed by clearingtype
# ──────────────────────────────────────────────────────────────────────


class CardFields(BaseModel):
    """Credit card (cc). Defaults are the PAYONE test Visa card."""

    clearingtype: Literal["cc"] = "cc"
    cardpan: str = "4111111111111111"
    cardexpiredate: str = "2512"
    cardcvc2: str = "123"
    cardtype: str = "V"


class WalletFields(BaseModel):
    """PayPal, Google Pay and Apple Pay all travel as clearingtype wlt."""

    clearingtype: Literal["wlt"] = "wlt"
    wallettype: str = "PPE"


class BankTransferFields(BaseModel):
    """Online bank transfer redirects (Sofort, giropay, iDEAL, Bancontact)."""

    clearingtype: Literal["sb", "gp", "idl", "bct"] = "sb"
    bankcountry: str = "DE"
    onlinebanktransfertype: str = "PNT"


class DirectDebitFields(BaseModel):
    """SEPA direct debit (elv)."""

    clearingtype: Literal["elv"] = "elv"
    bankcountry: str = "DE"
    iban: str = "DE89370400440532013000"
    bic: str = "COBADEFFXXX"
    bankaccountholder: str = "Test User"


class RecurringFields(BaseModel):
    clearingtype: Literal["rec"] = "rec"
    recurrence: str = "recurring"


class FinancingFields(BaseModel):
    clearingtype: Literal["fnc"] = "fnc"
    financingtype: str = "fnc"


class InvoiceFields(BaseModel):
    """Open invoice (iv)."""

    clearingtype: Literal["iv"] = "iv"
    invoicetype: str = "invoice"


PaymentMethodFields = Annotated[
    Union[
        CardFields,
        WalletFields,
        BankTransferFields,
        DirectDebitFields,
        RecurringFields,
        FinancingFields,
        InvoiceFields,
    ],
    Field(discriminator="clearingtype"),
]


class CommonCustomerFields(BaseModel):
    """Defaults applied to every request for fields the caller left unset."""

    salutation: str = "Herr"
    gender: str = "m"
    telephonenumber: str = "01752345678"
    ip: str = "127.0.0.1"
    language: str = "de"
    customer_is_present: str = "yes"


# ──────────────────────────────────────────────────────────────────────
#  Operation request bodies
# ──────────────────────────────────────────────────────────────────────


class PaymentRequestBase(BaseModel):
    """
    Caller parameters for a processor call.

    Only the common fields are declared; any other PAYONE parameter
    (``add_paydata[...]``, ``3dsecure``, shipping fields...) passes through.
    """

    amount: Optional[int] = None
    currency: Optional[str] = None
    reference: Optional[str] = None
    clearingtype: Optional[str] = None
    customerid: Optional[str] = None
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    email: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class PreauthorizationRequest(PaymentRequestBase):
    pass


class AuthorizationRequest(PaymentRequestBase):
    pass


class CaptureRequest(PaymentRequestBase):
    txid: Optional[Union[str, int]] = None


class RefundRequest(PaymentRequestBase):
    txid: Optional[Union[str, int]] = None


class PaymentOperationResponse(BaseModel):
    """Classified processor response (flat map)."""

    data: Dict[str, Any] = {}


# ──────────────────────────────────────────────────────────────────────
#  Transaction ledger, stored under key "transactionHistory"
# ──────────────────────────────────────────────────────────────────────


class TransactionLogEntry(BaseModel):
    id: str
    timestamp: str
    txid: Optional[str] = None
    reference: Optional[str] = None
    request_type: str = "unknown"
    amount: Optional[Any] = None
    currency: str = "EUR"
    status: str = "unknown"
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    customer_message: Optional[str] = None
    raw_request: Optional[Dict[str, Any]] = None
    raw_response: Optional[Dict[str, Any]] = None
    created_at: str
    updated_at: str

    model_config = ConfigDict(frozen=True)


class TransactionHistoryFilters(BaseModel):
    status: Optional[str] = None
    request_type: Optional[str] = None
    txid: Optional[str] = None
    reference: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None


class TransactionHistoryResponse(BaseModel):
    data: List[TransactionLogEntry] = []


# ──────────────────────────────────────────────────────────────────────
#  3-D Secure callback
# ──────────────────────────────────────────────────────────────────────


class ThreeDSCallbackResult(BaseModel):
    success: bool
    status: str  # APPROVED, ERROR, CANCELLED, PENDING
    txid: Optional[str] = None
    reference: Optional[str] = None
    data: Dict[str, Any] = {}


class ThreeDSCallbackResponse(BaseModel):
    data: ThreeDSCallbackResult


# ──────────────────────────────────────────────────────────────────────
#  Apple Pay merchant validation
# ──────────────────────────────────────────────────────────────────────


class ApplePayValidationRequest(BaseModel):
    validation_url: Optional[str] = Field(None, alias="validationURL")
    domain: Optional[str] = None
    display_name: Optional[str] = Field(None, alias="displayName")
    mid: Optional[str] = None
    portalid: Optional[str] = None
    currency: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class MerchantSession(BaseModel):
    """Apple Pay merchant session issued through PAYONE."""

    merchant_identifier: Optional[str] = Field(None, alias="merchantIdentifier")
    merchant_session_identifier: Optional[str] = Field(
        None, alias="merchantSessionIdentifier"
    )
    epoch_timestamp: Optional[int] = Field(None, alias="epochTimestamp")
    expires_at: Optional[int] = Field(None, alias="expiresAt")
    nonce: Optional[str] = None
    domain_name: Optional[str] = Field(None, alias="domainName")
    display_name: Optional[str] = Field(None, alias="displayName")
    signature: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class MerchantSessionResponse(BaseModel):
    data: Dict[str, Any]


# ──────────────────────────────────────────────────────────────────────
#  Connection check
# ──────────────────────────────────────────────────────────────────────


class ConnectionCheckResult(BaseModel):
    success: bool
    message: str
    errorcode: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class ConnectionCheckResponse(BaseModel):
    data: ConnectionCheckResult
