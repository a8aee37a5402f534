from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "PAYONE Gateway Adapter"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: str = "*"
    CORS_CREDENTIALS: bool = True

    # ── PAYONE Server API ──
    PAYONE_GATEWAY_URL: str = "https://api.pay1.de/post-gateway/"
    # Apple Pay session init is posted to a sub-path of the gateway URL
    PAYONE_APPLE_PAY_SESSION_PATH: str = "genericpayment/"
    PAYONE_TIMEOUT: float = 30.0
    PAYONE_PLUGIN_NAME: str = "strapi-plugin-payone-provider"
    PAYONE_TRANSACTION_HISTORY_LIMIT: int = 1000
    # 3DS redirect defaults when the caller supplies none
    PAYONE_3DS_SUCCESS_URL: str = "https://www.example.com/success"
    PAYONE_3DS_ERROR_URL: str = "https://www.example.com/error"
    PAYONE_3DS_BACK_URL: str = "https://www.example.com/back"
    # Where GET 3DS callbacks send the browser afterwards
    PAYONE_ADMIN_REDIRECT_PATH: str = "/admin/plugins/strapi-plugin-payone-provider"

    # ── Key-value store ──
    # "memory" or "redis"
    STORE_BACKEND: str = "memory"
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_PASSWORD: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def apple_pay_session_url(self) -> str:
        return self.PAYONE_GATEWAY_URL.rstrip("/") + "/" + self.PAYONE_APPLE_PAY_SESSION_PATH.lstrip("/")

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = ["development", "staging", "production"]
        if v.lower() not in allowed:
            raise ValueError(f"ENVIRONMENT must be one of: {allowed}")
        return v.lower()

    @field_validator("STORE_BACKEND")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        allowed = ["memory", "redis"]
        if v.lower() not in allowed:
            raise ValueError(f"STORE_BACKEND must be one of: {allowed}")
        return v.lower()

    @field_validator("PAYONE_TRANSACTION_HISTORY_LIMIT")
    @classmethod
    def validate_history_limit(cls, v: int) -> int:
        if v < 1:
            raise ValueError("PAYONE_TRANSACTION_HISTORY_LIMIT must be positive")
        return v

settings = Settings()
