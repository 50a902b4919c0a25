from functools import lru_cache
import json
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Values shipped in sample .env files; treated the same as a missing key.
PLACEHOLDER_API_KEYS = frozenset(
    {
        "sk-proj-IhrOpenAIKeyHier",
        "sk-your-key-here",
        "your-openai-api-key",
        "changeme",
    }
)


def _parse_list_value(value: str) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        raw = value.strip()
        if raw == "":
            return []
        try:
            parsed = json.loads(raw)
            if isinstance(parsed, list):
                return [str(item).strip() for item in parsed if str(item).strip()]
        except Exception:
            pass
        return [item.strip() for item in raw.split(",") if item.strip()]
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    return []


def is_placeholder_credential(api_key: str | None) -> bool:
    """True when *api_key* is absent, a sample placeholder, or obviously malformed."""
    if not api_key:
        return True
    key = api_key.strip()
    if not key or key in PLACEHOLDER_API_KEYS:
        return True
    return not key.startswith("sk-")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="forbid",
        validate_by_name=True,
        populate_by_name=True,
    )

    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL"))
    docs_enabled: bool = Field(default=True)
    openapi_enabled: bool = Field(default=True)
    expose_error_details: bool = False

    enable_analysis_api: bool = Field(
        default=True,
        validation_alias=AliasChoices("ENABLE_ANALYSIS_API"),
    )
    cors_allow_origins_raw: str = Field(
        default="",
        validation_alias=AliasChoices("CORS_ALLOW_ORIGINS"),
    )

    # --- Vision provider ---
    ai_provider: str = Field(default="openai", validation_alias=AliasChoices("AI_PROVIDER"))
    ai_allowed_providers_raw: str = Field(
        default="openai,mock",
        validation_alias=AliasChoices("AI_ALLOWED_PROVIDERS"),
    )
    openai_api_key: str = Field(default="", validation_alias=AliasChoices("OPENAI_API_KEY"))
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        validation_alias=AliasChoices("OPENAI_BASE_URL"),
    )
    ai_vision_model: str = Field(default="gpt-4o", validation_alias=AliasChoices("AI_VISION_MODEL"))
    ai_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    ai_max_tokens: int = Field(default=1500, ge=1)
    ai_debug_store_raw: bool = False

    # --- Timeouts ---
    ai_timeout_seconds: float = Field(default=30.0, gt=0)
    ai_probe_timeout_seconds: float = Field(default=5.0, gt=0)
    ai_probe_enabled: bool = True

    # --- Retry / pacing ---
    ai_max_attempts: int = Field(default=3, ge=1, le=10)
    ai_retry_base_delay_seconds: float = Field(default=1.0, ge=0)
    ai_inter_call_delay_seconds: float = Field(default=1.0, ge=0)

    # --- Analysis ---
    analysis_max_images: int = Field(default=3, ge=1, le=10)
    analysis_fallback_jitter: bool = True
    analysis_skip_real_calls: bool = Field(
        default=False,
        validation_alias=AliasChoices("ANALYSIS_SKIP_REAL_CALLS", "DEMO_MODE"),
    )
    analysis_cache_ttl_seconds: int = Field(default=0, ge=0)

    @field_validator("ai_provider", mode="before")
    @classmethod
    def _normalize_provider(cls, value):
        if value is None:
            return "openai"
        return str(value).lower().strip() or "openai"

    @property
    def cors_allow_origins(self) -> list[str]:
        return _parse_list_value(self.cors_allow_origins_raw)

    @property
    def ai_allowed_providers(self) -> list[str]:
        return [p.lower() for p in _parse_list_value(self.ai_allowed_providers_raw)]


@lru_cache
def get_settings() -> Settings:
    return Settings()
