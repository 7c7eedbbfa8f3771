"""Configuration management using Pydantic Settings"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database (chat history + suggestions)
    database_url: str = "sqlite:///./portfolio_assistant.db"

    # Portfolio backend (command RPC)
    backend_base_url: str = "http://localhost:8001"

    # Service
    service_name: str = "portfolio-assistant"
    log_level: str = "INFO"

    # HTTP Client
    http_timeout_seconds: float = 30.0
    read_max_retries: int = 3
    read_backoff_base: float = 0.5  # Exponential backoff base in seconds

    # Assistant
    chat_context_size: int = 20
    delivery_mode: bool = False
    base_currency: str = "EUR"
    ai_provider: str = "claude"
    ai_model: str = "claude-sonnet-4-5"
    ai_api_key: Optional[str] = None
    alpha_vantage_api_key: Optional[str] = None
    user_name: Optional[str] = None

    # Currencies whose issuing region writes dates month-first
    month_first_currencies: List[str] = ["USD"]


settings = Settings()


@dataclass(frozen=True)
class AssistantConfig:
    """Per-call configuration threaded through chat, enrichment and execution"""

    delivery_mode: bool = False
    chat_context_size: int = 20
    base_currency: str = "EUR"
    ai_provider: str = "claude"
    ai_model: str = "claude-sonnet-4-5"
    ai_api_key: Optional[str] = None
    alpha_vantage_api_key: Optional[str] = None
    user_name: Optional[str] = None
    month_first_currencies: Tuple[str, ...] = ("USD",)

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> "AssistantConfig":
        source = source or settings
        return cls(
            delivery_mode=source.delivery_mode,
            chat_context_size=source.chat_context_size,
            base_currency=source.base_currency,
            ai_provider=source.ai_provider,
            ai_model=source.ai_model,
            ai_api_key=source.ai_api_key,
            alpha_vantage_api_key=source.alpha_vantage_api_key,
            user_name=source.user_name,
            month_first_currencies=tuple(c.upper() for c in source.month_first_currencies),
        )
