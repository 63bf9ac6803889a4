"""Configuration management."""
import os
from typing import Optional, List
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv(override=False)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"  # Ignore extra environment variables
    )

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./cryptofolio.db")

    # API
    api_secret_key: str = os.getenv("API_SECRET_KEY", "dev-secret-key-change-in-production")

    # JWT Authentication
    jwt_secret: str = os.getenv("JWT_SECRET", os.getenv("API_SECRET_KEY", "dev-jwt-secret-change-in-production"))
    jwt_issuer: str = os.getenv("JWT_ISSUER", "cryptofolio")
    jwt_audience: str = os.getenv("JWT_AUDIENCE", "cryptofolio")
    jwt_exp_minutes: int = int(os.getenv("JWT_EXP_MINUTES", "60"))

    # Dev Auth (local only): accept X-Dev-User instead of a bearer token
    enable_dev_auth: bool = os.getenv("ENABLE_DEV_AUTH", "false").lower() == "true"

    # Gemini (generateContent). The key is read from the environment by
    # pydantic-settings at construction and handed to the gateway from there.
    gemini_api_key: Optional[str] = None
    gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-2.0-flash-exp")
    gemini_base_url: str = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta")
    gemini_temperature: float = float(os.getenv("GEMINI_TEMPERATURE", "0.7"))
    gemini_top_k: int = int(os.getenv("GEMINI_TOP_K", "40"))
    gemini_top_p: float = float(os.getenv("GEMINI_TOP_P", "0.95"))
    gemini_max_output_tokens: int = int(os.getenv("GEMINI_MAX_OUTPUT_TOKENS", "1024"))
    # Unset means no client-side timeout; the hosting environment bounds the call
    gemini_timeout_seconds: Optional[float] = None

    # Chat
    chat_window_size: int = int(os.getenv("CHAT_WINDOW_SIZE", "10"))
    require_portfolio_for_chat: bool = os.getenv("REQUIRE_PORTFOLIO_FOR_CHAT", "true").lower() != "false"
    default_tracked_coins: str = os.getenv("DEFAULT_TRACKED_COINS", "bitcoin,ethereum,cardano")

    @property
    def default_tracked_coins_list(self) -> List[str]:
        """Parse default tracked coins into a list of coin ids."""
        return [c.strip().lower() for c in self.default_tracked_coins.split(",") if c.strip()]

    # CORS
    cors_allow_headers: str = os.getenv("CORS_ALLOW_HEADERS", "authorization, x-client-info, apikey, content-type")

    @property
    def cors_allow_headers_list(self) -> List[str]:
        return [h.strip() for h in self.cors_allow_headers.split(",") if h.strip()]

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "cryptofolio")
    service_version: str = os.getenv("SERVICE_VERSION", "0.1.0")


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get settings singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings singleton. Used for test isolation."""
    global _settings
    _settings = None
