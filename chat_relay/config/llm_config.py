from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "meta-llama/llama-3.3-70b-instruct:free"


class LlmConfig(BaseSettings):
    """Configuration for the upstream completion provider.

    The API key is optional at load time so the relay can start without
    it; requests are refused with ``ServerMisconfigured`` until it is set.
    """

    api_key: Optional[str] = Field(default=None, alias="LLM_API_KEY")
    base_url: Optional[str] = Field(default=DEFAULT_BASE_URL, alias="LLM_BASE_URL")
    model: str = Field(DEFAULT_MODEL, alias="LLM_MODEL")
    temperature: float = Field(0.7, alias="LLM_TEMPERATURE")
    max_tokens: Optional[int] = Field(None, alias="LLM_MAX_TOKENS")
    timeout: float = Field(30.0, alias="LLM_TIMEOUT")
    max_retries: int = Field(2, alias="LLM_MAX_RETRIES")

    @field_validator("api_key")
    def normalise_api_key(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    @field_validator("temperature")
    def validate_temperature(cls, value: float) -> float:
        if not 0.0 <= value <= 2.0:
            raise ValueError("LLM_TEMPERATURE must be between 0.0 and 2.0")
        return value

    @field_validator("timeout")
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("LLM_TIMEOUT must be positive")
        return value

    @field_validator("max_tokens")
    def validate_max_tokens(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value <= 0:
            raise ValueError("LLM_MAX_TOKENS must be positive")
        return value

    @field_validator("max_retries")
    def validate_max_retries(cls, value: int) -> int:
        if value < 0:
            raise ValueError("LLM_MAX_RETRIES must not be negative")
        return value

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)


@lru_cache()
def get_llm_config() -> LlmConfig:
    """Return a cached language model configuration.

    The credential is read once per process and treated as read-only.
    """

    return LlmConfig()
