"""
Tests for merchant settings persistence.
"""

import pytest

from app.core.exceptions import ConfigurationError
from app.schemas.payone import HIDDEN_KEY, MerchantSettingsUpdate
from app.services.settings_service import SETTINGS_KEY, SettingsService, validate_settings


class TestValidateSettings:
    def test_complete(self, merchant):
        assert validate_settings(merchant)

    def test_missing_fields(self, merchant):
        assert not validate_settings(None)
        assert not validate_settings(merchant.model_copy(update={"key": ""}))
        assert not validate_settings(merchant.model_copy(update={"portalid": ""}))

    def test_mid_is_optional(self, merchant):
        assert validate_settings(merchant.model_copy(update={"mid": ""}))


class TestSettingsService:
    @pytest.mark.asyncio
    async def test_no_settings(self, store):
        service = SettingsService(store)
        assert await service.get_settings() is None
        with pytest.raises(ConfigurationError) as exc_info:
            await service.require_settings()
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_ensure_defaults_only_once(self, store):
        service = SettingsService(store)
        await service.ensure_defaults()
        defaults = await service.get_settings()
        assert defaults.aid == ""
        assert defaults.mode == "test"
        assert defaults.enable_3d_secure is True

        await service.update_settings(MerchantSettingsUpdate(aid="1"))
        await service.ensure_defaults()
        assert (await service.get_settings()).aid == "1"

    @pytest.mark.asyncio
    async def test_stored_with_camel_case_names(self, configured_store):
        raw = await configured_store.get(SETTINGS_KEY)
        assert "enable3DSecure" in raw
        assert "merchantIdentifier" in raw

    @pytest.mark.asyncio
    async def test_update_merges(self, configured_store, merchant):
        service = SettingsService(configured_store)
        updated = await service.update_settings(
            MerchantSettingsUpdate(mode="live", enable3DSecure=False, merchantName="Shop")
        )
        assert updated.mode == "live"
        assert updated.enable_3d_secure is False
        assert updated.merchant_name == "Shop"
        assert updated.aid == merchant.aid
        assert updated.key == merchant.key

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", [HIDDEN_KEY, "", None])
    async def test_masked_or_empty_key_keeps_stored_key(self, configured_store, merchant, key):
        service = SettingsService(configured_store)
        await service.update_settings(MerchantSettingsUpdate(key=key, aid="999"))

        stored = await service.get_settings()
        assert stored.key == merchant.key
        assert stored.aid == "999"

    @pytest.mark.asyncio
    async def test_new_key_replaces_stored_key(self, configured_store):
        service = SettingsService(configured_store)
        await service.update_settings(MerchantSettingsUpdate(key="rotated"))
        assert (await service.get_settings()).key == "rotated"

    @pytest.mark.asyncio
    async def test_masked_settings(self, configured_store):
        masked = await SettingsService(configured_store).get_masked_settings()
        assert masked.key == HIDDEN_KEY

    @pytest.mark.asyncio
    async def test_masked_settings_without_key(self, store):
        masked = await SettingsService(store).get_masked_settings()
        assert masked.key == ""
