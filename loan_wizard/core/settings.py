from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    sacco_api_base_url: str = Field(default="http://localhost:8080", alias="SACCO_API_BASE_URL")
    # Unset means the upstream client never times out a phase call.
    sacco_api_timeout_seconds: float | None = Field(default=None, alias="SACCO_API_TIMEOUT_SECONDS")
    loan_products_page_size: int = Field(default=20, alias="LOAN_PRODUCTS_PAGE_SIZE")
    currency_label: str = Field(default="KES", alias="CURRENCY_LABEL")
    default_applicant_type: Literal["MEMBER", "LOANEE", "GROUP"] = Field(
        default="MEMBER", alias="DEFAULT_APPLICANT_TYPE"
    )
    wizard_session_limit_per_user: int = Field(default=5, alias="WIZARD_SESSION_LIMIT_PER_USER")
    wizard_anonymous_session_limit: int = Field(default=200, alias="WIZARD_ANONYMOUS_SESSION_LIMIT")
    allowed_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173"], alias="ALLOWED_ORIGINS"
    )
    rate_limit_per_minute: int = Field(default=120, alias="RATE_LIMIT_PER_MINUTE")
    rate_limit_storage_uri: str = Field(default="memory://", alias="RATE_LIMIT_STORAGE_URI")
    enable_hsts: bool = Field(default=False, alias="ENABLE_HSTS")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
