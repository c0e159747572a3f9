"""
FastAPI application configuration module
"""

from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# 加载.env文件；进程环境变量优先
load_dotenv()


LOG_LEVELS = ("false", "info", "debug")


class Settings(BaseSettings):
    """Application settings, read once at startup"""

    # Upstream Configuration - any OpenAI-compatible chat completions API
    OPENAI_API_BASE: str = "https://api.openai.com/v1"
    OPENAI_MODEL: str = "gpt-4.1-mini"
    # 未配置时仍然发起请求，由上游返回鉴权错误
    OPENAI_API_KEY: Optional[str] = None

    # Only the connect phase is bounded; reads may wait on the upstream indefinitely
    UPSTREAM_CONNECT_TIMEOUT: float = 10.0

    # Server Configuration
    PORT: int = 3000
    STATIC_DIR: str = "public"

    # Logging Configuration - 支持三个等级：false, info, debug
    LOG_LEVEL: str = "info"

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _normalize_log_level(cls, value) -> str:
        level = str(value or "").strip().lower()
        return level if level in LOG_LEVELS else "info"

    @property
    def chat_completions_url(self) -> str:
        return f"{self.OPENAI_API_BASE.rstrip('/')}/chat/completions"

    model_config = SettingsConfigDict(frozen=True, extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
