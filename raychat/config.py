"""
FastAPI application configuration module
"""

import os
from pathlib import Path
from functools import lru_cache
from typing import Annotated

import structlog
from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode

# 加载.env文件,覆盖电脑自身环境变量
load_dotenv(override=True)


logger = structlog.get_logger("config")


def _split_env_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


@lru_cache(maxsize=1)
def _load_proxy_list() -> list[str]:
    """
    从环境变量和proxys.txt文件加载代理列表，并去重合并

    Returns:
        list: 去重后的代理列表（保持首次出现的顺序）
    """
    proxies: list[str] = []

    # 1. 环境变量（HTTPS_PROXY优先）
    for env_name in ("HTTPS_PROXY", "HTTP_PROXY"):
        proxies.extend(_split_env_list(os.getenv(env_name, "")))

    # 2. proxys.txt（可选）
    proxys_file = Path("proxys.txt")
    if proxys_file.exists():
        try:
            with open(proxys_file, 'r', encoding='utf-8') as f:
                file_proxies = [line.strip() for line in f if line.strip() and not line.strip().startswith("#")]
            proxies.extend(file_proxies)
            if file_proxies:
                logger.info("[PROXY] 从proxys.txt加载代理", count=len(file_proxies))
        except OSError as e:
            logger.error("[PROXY] 读取proxys.txt失败", error=str(e))

    proxy_list = list(dict.fromkeys(proxies))
    if proxy_list:
        logger.info("[PROXY] 代理池初始化完成", count=len(proxy_list))
    return proxy_list


def _get_proxy_list() -> list[str]:
    return list(_load_proxy_list())


class Settings(BaseSettings):
    """Application settings"""

    # Backend Configuration
    API_ENDPOINT: str = os.getenv("API_ENDPOINT", "https://backend.raycast.com/api/v1/ai/chat_completions")
    RAYCAST_TOKEN: str = os.getenv("RAYCAST_TOKEN", "")
    USER_AGENT: str = os.getenv("USER_AGENT", "Raycast/1.94.2 (macOS Version 15.3 (Build 24D60))")

    # Client authentication
    AUTH_TOKEN: str = os.getenv("AUTH_TOKEN", "sk-your-api-key")
    SKIP_AUTH_TOKEN: bool = os.getenv("SKIP_AUTH_TOKEN", "false").lower() == "true"

    # Entitlements - 调用方额外授权的模型和高级模型资格
    ENTITLED_MODELS: Annotated[list[str], NoDecode] = Field(default_factory=list)
    ELIGIBLE_FOR_GPT4: bool = os.getenv("ELIGIBLE_FOR_GPT4", "false").lower() == "true"

    # Model Configuration
    DEFAULT_MODEL: str = os.getenv("DEFAULT_MODEL", "gpt-3.5-turbo")
    MODEL_CATALOG_FILE: str = os.getenv("MODEL_CATALOG_FILE", "models.json")

    # Server Configuration
    LISTEN_PORT: int = int(os.getenv("LISTEN_PORT", "8080"))

    # Logging Configuration - 支持三个等级：false, info, debug
    _log_level_str: str = os.getenv("LOG_LEVEL", "info").lower()
    LOG_LEVEL: str = _log_level_str if _log_level_str in ["false", "info", "debug"] else "info"

    # Proxy Configuration - 从环境变量和proxys.txt加载，轮询使用
    PROXY_LIST: Annotated[list[str], NoDecode] = Field(default_factory=_get_proxy_list)

    @field_validator("ENTITLED_MODELS", "PROXY_LIST", mode="before")
    @classmethod
    def _split_comma_list(cls, value):
        # 环境变量中的列表使用逗号分隔
        if isinstance(value, str):
            return _split_env_list(value)
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()


# Static model catalog - 后端模型 -> provider 映射
MODEL_CATALOG_TABLE = {
    "gpt-3.5-turbo": "openai",
    "gpt-4": "openai",
    "gpt-4-turbo": "openai",
    "gpt-4o": "openai",
    "gpt-4o-mini": "openai",
    "o1-preview": "openai_o1",
    "o1-mini": "openai_o1",
    "o3-mini": "openai_o1",
    "claude-haiku": "anthropic",
    "claude-sonnet": "anthropic",
    "claude-opus": "anthropic",
    "sonar": "perplexity",
    "sonar-pro": "perplexity",
    "sonar-reasoning": "perplexity",
    "llama-3.3-70b-versatile": "groq",
    "llama-3.1-8b-instant": "groq",
    "llama3-70b-8192": "groq",
    "mixtral-8x7b-32768": "groq",
    "deepseek-r1-distill-llama-70b": "groq",
    "meta-llama/Meta-Llama-3.1-405B-Instruct-Turbo": "together",
    "deepseek-ai/DeepSeek-R1": "together",
    "open-mistral-nemo": "mistral",
    "mistral-large-latest": "mistral",
    "mistral-small-latest": "mistral",
    "codestral-latest": "mistral",
    "gemini-1.5-flash": "google",
    "gemini-1.5-pro": "google",
    "gemini-2.0-flash": "google",
    "gemini-2.0-flash-thinking": "google",
    "grok-2-latest": "xai",
}
