from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class ClientConfig(BaseSettings):
    """Settings for the chat client side: relay endpoint, notices and cache."""

    relay_url: str = Field("http://localhost:8501/chat", alias="RELAY_URL")
    relay_timeout: float = Field(60.0, alias="RELAY_TIMEOUT")
    notice_timeout: float = Field(5.0, alias="NOTICE_TIMEOUT")
    cache_type: str = Field("in_memory", alias="CACHE_TYPE")
    cache_dir: str = Field(".chat_cache", alias="CACHE_DIR")

    @field_validator("cache_type")
    def validate_cache_type(cls, value: str) -> str:
        if value not in ["in_memory", "file"]:
            raise ValueError("CACHE_TYPE must be in_memory or file")
        return value

    @field_validator("relay_timeout", "notice_timeout")
    def validate_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeouts must be positive")
        return value

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)


@lru_cache()
def get_client_config() -> ClientConfig:
    """Return a cached client configuration."""

    return ClientConfig()
