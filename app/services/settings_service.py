"""
Merchant settings persisted in the plugin key-value store under "settings".
"""

import logging
from typing import Optional

from app.core.exceptions import ConfigurationError
from app.core.store import KeyValueStore
from app.schemas.payone import HIDDEN_KEY, MerchantSettings, MerchantSettingsUpdate

logger = logging.getLogger(__name__)

SETTINGS_KEY = "settings"


def validate_settings(merchant: Optional[MerchantSettings]) -> bool:
    return bool(merchant and merchant.is_complete())


class SettingsService:
    def __init__(self, store: KeyValueStore):
        self.store = store

    async def get_settings(self) -> Optional[MerchantSettings]:
        raw = await self.store.get(SETTINGS_KEY)
        if not raw:
            return None
        return MerchantSettings.model_validate(raw)

    async def get_masked_settings(self) -> MerchantSettings:
        """Settings safe to hand out: the portal key is hidden."""
        merchant = await self.get_settings() or MerchantSettings()
        return merchant.masked()

    async def require_settings(self) -> MerchantSettings:
        """Current settings, or ConfigurationError when incomplete."""
        merchant = await self.get_settings()
        if not validate_settings(merchant):
            logger.error("[payone] settings not configured (aid, portalid and key are required)")
            raise ConfigurationError()
        return merchant

    async def update_settings(self, patch: MerchantSettingsUpdate) -> MerchantSettings:
        """
        Merge the patch over the stored record and write the whole record.

        A missing, empty or masked key keeps the stored portal key.
        """
        current = await self.get_settings() or MerchantSettings()
        changes = patch.model_dump(exclude_none=True)
        if changes.get("key") in ("", HIDDEN_KEY):
            changes.pop("key")

        updated = current.model_copy(update=changes)
        # Re-validate so the stored record always matches the schema
        updated = MerchantSettings.model_validate(updated.model_dump())
        await self.store.set(SETTINGS_KEY, updated.model_dump(by_alias=True))

        logger.info(
            f"[payone] settings updated — mode={updated.mode}, aid={updated.aid}, "
            f"portalid={updated.portalid}, mid={updated.mid}"
        )
        return updated

    async def ensure_defaults(self) -> None:
        """Write empty default settings on first start."""
        if await self.store.get(SETTINGS_KEY) is None:
            await self.store.set(SETTINGS_KEY, MerchantSettings().model_dump(by_alias=True))
            logger.info("[payone] initialized default settings")
