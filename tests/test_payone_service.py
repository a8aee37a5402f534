"""
Tests for the PAYONE operation orchestrator.

The gateway is replaced by httpx.MockTransport (see conftest.FakeGateway);
nothing leaves the process.
"""

import hashlib

import httpx
import pytest

from app.core.exceptions import (
    ConfigurationError,
    MissingTxIdError,
    PreconditionError,
    TransportError,
)
from app.schemas.payone import HIDDEN_KEY, MerchantSettingsUpdate


async def _history(service):
    return await service.get_transaction_history()


# ===========================================================================
# Preauthorization / authorization
# ===========================================================================


class TestPreauthorization:
    @pytest.mark.asyncio
    async def test_end_to_end_request(self, payone, gateway, merchant):
        result = await payone.preauthorization({})

        sent = gateway.sent_params()
        assert str(gateway.requests[0].url) == "https://api.pay1.de/post-gateway/"
        assert gateway.requests[0].headers["content-type"] == "application/x-www-form-urlencoded"
        assert sent["request"] == "preauthorization"
        assert sent["clearingtype"] == "cc"
        assert sent["cardpan"] == "4111111111111111"
        assert sent["cardtype"] == "V"
        assert sent["key"] == hashlib.md5(merchant.key.encode()).hexdigest()
        assert sent["3dsecure"] == "yes"
        assert sent["amount"] == "1000"
        assert sent["currency"] == "EUR"
        assert sent["reference"].startswith("PREAUTH-")
        assert sent["firstname"] == "Test"
        assert sent["city"] == "Test City"

        assert result["status"] == "APPROVED"
        assert result["txid"] == "987654321"
        assert result["errorCode"] is None

    @pytest.mark.asyncio
    async def test_caller_values_win_over_placeholders(self, payone, gateway):
        await payone.preauthorization(
            {"amount": 2500, "currency": "USD", "firstname": "Erika", "reference": "ORDER1"}
        )
        sent = gateway.sent_params()
        assert sent["amount"] == "2500"
        assert sent["currency"] == "USD"
        assert sent["firstname"] == "Erika"
        assert sent["reference"] == "ORDER1"
        assert sent["lastname"] == "User"

    @pytest.mark.asyncio
    async def test_logged_with_masked_secrets(self, payone):
        await payone.preauthorization({"reference": "ORDER1"})

        history = await _history(payone)
        assert len(history) == 1
        entry = history[0]
        assert entry.request_type == "preauthorization"
        assert entry.status == "APPROVED"
        assert entry.txid == "987654321"
        assert entry.reference == "ORDER1"
        assert entry.raw_request["key"] == HIDDEN_KEY
        assert entry.raw_request["cardcvc2"] == HIDDEN_KEY
        assert entry.raw_request["cardpan"].endswith("1111")
        assert entry.raw_response["status"] == "APPROVED"

    @pytest.mark.asyncio
    async def test_unconfigured_raises_before_sending(self, unconfigured_payone, gateway):
        with pytest.raises(ConfigurationError):
            await unconfigured_payone.preauthorization({})
        assert gateway.requests == []
        assert await _history(unconfigured_payone) == []


class TestAuthorization:
    @pytest.mark.asyncio
    async def test_defaults_to_card(self, payone, gateway):
        await payone.authorization({"amount": 100, "currency": "EUR", "reference": "A1"})
        sent = gateway.sent_params()
        assert sent["request"] == "authorization"
        assert sent["clearingtype"] == "cc"
        assert sent["3dsecure"] == "yes"

    @pytest.mark.asyncio
    async def test_3ds_disabled_in_settings(self, payone, gateway):
        await payone.update_settings(MerchantSettingsUpdate(enable3DSecure=False))
        await payone.authorization({"amount": 100})
        sent = gateway.sent_params()
        assert sent["3dsecure"] == "no"
        assert "successurl" not in sent

    @pytest.mark.asyncio
    async def test_google_pay_token(self, payone, gateway, merchant):
        await payone.authorization(
            {
                "clearingtype": "gpp",
                "amount": 100,
                "currency": "EUR",
                "reference": "W1",
                "googlePayToken": {"signature": "sig"},
            }
        )
        sent = gateway.sent_params()
        assert sent["clearingtype"] == "wlt"
        assert sent["wallettype"] == "GGP"
        assert "cardtype" not in sent
        assert "cardpan" not in sent
        assert "3dsecure" not in sent
        assert sent["add_paydata[paymentmethod_token_data]"] == '{"signature":"sig"}'
        assert sent["add_paydata[gateway_merchantid]"] == merchant.mid

        entry = (await _history(payone))[0]
        assert entry.raw_request["add_paydata[paymentmethod_token_data]"] == HIDDEN_KEY


# ===========================================================================
# Capture / refund
# ===========================================================================


class TestCapture:
    @pytest.mark.asyncio
    async def test_requires_txid(self, payone, gateway):
        with pytest.raises(MissingTxIdError) as exc_info:
            await payone.capture({"amount": 1000})
        assert exc_info.value.status_code == 400
        assert exc_info.value.error_code == "MISSING_TXID"
        assert gateway.requests == []
        assert await _history(payone) == []

    @pytest.mark.asyncio
    async def test_reference_is_dropped(self, payone, gateway):
        await payone.capture({"txid": 123, "amount": 500, "reference": "NOPE"})
        sent = gateway.sent_params()
        assert sent["request"] == "capture"
        assert sent["txid"] == "123"
        assert sent["amount"] == "500"
        assert "reference" not in sent
        assert "3dsecure" not in sent

    @pytest.mark.asyncio
    async def test_ledger_txid_falls_back_to_request(self, payone, gateway):
        gateway.respond("status=APPROVED")
        await payone.capture({"txid": "555"})
        entry = (await _history(payone))[0]
        assert entry.txid == "555"
        assert entry.request_type == "capture"
        assert entry.amount == 1000


class TestRefund:
    @pytest.mark.asyncio
    async def test_requires_txid(self, payone, gateway):
        with pytest.raises(MissingTxIdError):
            await payone.refund({"amount": 100})
        assert gateway.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [500, -500])
    async def test_amount_is_negative(self, payone, gateway, amount):
        await payone.refund({"txid": "1", "amount": amount})
        sent = gateway.sent_params()
        assert sent["request"] == "refund"
        assert sent["amount"] == "-500"
        assert sent["reference"].startswith("REFUND-")

    @pytest.mark.asyncio
    async def test_invalid_amount(self, payone, gateway):
        with pytest.raises(PreconditionError):
            await payone.refund({"txid": "1", "amount": "lots"})
        assert gateway.requests == []


# ===========================================================================
# Outcomes and transport failures
# ===========================================================================


class TestOutcomes:
    @pytest.mark.asyncio
    async def test_decline_is_returned_and_logged(self, payone, gateway):
        gateway.respond(
            "status=ERROR\nerrorcode=2003\nerrormessage=Declined\ncustomermessage=Card declined"
        )
        result = await payone.authorization({"amount": 100})

        assert result["status"] == "ERROR"
        assert result["errorCode"] == "2003"
        assert result["customerMessage"] == "Card declined"

        entry = (await _history(payone))[0]
        assert entry.status == "ERROR"
        assert entry.error_code == "2003"
        assert entry.error_message == "Declined"

    @pytest.mark.asyncio
    async def test_3ds_redirect(self, payone, gateway):
        gateway.respond(
            "status=REDIRECT\ntxid=55\nredirecturl=https://acs.example/challenge?md=1&x=2"
        )
        result = await payone.preauthorization({})

        assert result["requires3DSRedirect"] is True
        assert result["redirectUrl"] == "https://acs.example/challenge?md=1&x=2"
        assert result["is3DSRequired"] is False

        entry = (await _history(payone))[0]
        assert entry.status == "REDIRECT"
        assert entry.txid == "55"

    @pytest.mark.asyncio
    async def test_connection_failure_is_not_logged(self, payone, gateway):
        gateway.fail(httpx.ConnectError("connection refused"))
        with pytest.raises(TransportError) as exc_info:
            await payone.authorization({"amount": 100})

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert exc_info.value.status_code == 502
        assert await _history(payone) == []

    @pytest.mark.asyncio
    async def test_http_error_status(self, payone, gateway):
        gateway.respond("Service Unavailable", status_code=503)
        with pytest.raises(TransportError):
            await payone.capture({"txid": "1"})
        assert await _history(payone) == []


# ===========================================================================
# 3-D Secure callback
# ===========================================================================


class TestThreeDSCallback:
    def test_success(self, unconfigured_payone):
        result = unconfigured_payone.handle_3ds_callback({"txid": "77", "reference": "R1"}, "success")
        assert result.success is True
        assert result.status == "APPROVED"
        assert result.txid == "77"
        assert result.reference == "R1"

    @pytest.mark.parametrize("result_type", ["back", "cancelled"])
    def test_cancelled(self, unconfigured_payone, result_type):
        result = unconfigured_payone.handle_3ds_callback({"status": "APPROVED"}, result_type)
        assert result.success is False
        assert result.status == "CANCELLED"

    def test_error(self, unconfigured_payone):
        result = unconfigured_payone.handle_3ds_callback({}, "error")
        assert result.status == "ERROR"
        assert result.success is False

    def test_callback_uses_payload_status(self, unconfigured_payone):
        result = unconfigured_payone.handle_3ds_callback(b"status=approved&TxId=9&Reference=ORD9", "callback")
        assert result.status == "APPROVED"
        assert result.success is False
        assert result.txid == "9"
        assert result.reference == "ORD9"

    def test_callback_without_status_is_pending(self, unconfigured_payone):
        assert unconfigured_payone.handle_3ds_callback(None, "callback").status == "PENDING"

    @pytest.mark.asyncio
    async def test_not_logged(self, unconfigured_payone):
        unconfigured_payone.handle_3ds_callback({"txid": "1"}, "success")
        assert await _history(unconfigured_payone) == []


# ===========================================================================
# Connection check
# ===========================================================================


class TestConnectionCheck:
    @pytest.mark.asyncio
    async def test_unconfigured(self, unconfigured_payone, gateway):
        result = await unconfigured_payone.test_connection()
        assert result.success is False
        assert "not configured" in result.message
        assert gateway.requests == []

    @pytest.mark.asyncio
    async def test_approved(self, payone, gateway, merchant):
        result = await payone.test_connection()
        assert result.success is True
        assert result.details["aid"] == merchant.aid

        sent = gateway.sent_params()
        assert sent["request"] == "authorization"
        assert sent["amount"] == "100"
        assert sent["reference"].startswith("TEST")
        assert await _history(payone) == []

    @pytest.mark.asyncio
    async def test_card_rejection_means_valid_credentials(self, payone, gateway):
        gateway.respond("status=ERROR\nerrorcode=911\nerrormessage=Card expired")
        assert (await payone.test_connection()).success is True

    @pytest.mark.asyncio
    async def test_auth_error_code(self, payone, gateway):
        gateway.respond("status=ERROR\nerrorcode=2006\nerrormessage=Wrong key")
        result = await payone.test_connection()
        assert result.success is False
        assert result.errorcode == "2006"
        assert result.message.startswith("Authentication failed")

    @pytest.mark.asyncio
    async def test_auth_error_keyword(self, payone, gateway):
        gateway.respond("status=ERROR\nerrorcode=1234\nerrormessage=Unknown portal id")
        result = await payone.test_connection()
        assert result.success is False
        assert result.message == "Authentication failed: Unknown portal id"

    @pytest.mark.asyncio
    async def test_other_error(self, payone, gateway):
        gateway.respond("status=ERROR\nerrorcode=1077\nerrormessage=Amount too high")
        result = await payone.test_connection()
        assert result.success is False
        assert result.message == "Connection failed: Amount too high"

    @pytest.mark.asyncio
    async def test_transport_error_does_not_raise(self, payone, gateway):
        gateway.fail(httpx.ReadTimeout("timed out"))
        result = await payone.test_connection()
        assert result.success is False
        assert result.message.startswith("Connection error")
        assert result.details["errorType"] == "ReadTimeout"


class TestSettingsPassthrough:
    @pytest.mark.asyncio
    async def test_settings_are_masked(self, payone):
        assert (await payone.get_settings()).key == HIDDEN_KEY
        updated = await payone.update_settings(MerchantSettingsUpdate(mode="live"))
        assert updated.key == HIDDEN_KEY
        assert updated.mode == "live"
