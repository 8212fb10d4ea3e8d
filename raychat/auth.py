"""
Client authentication and caller context
"""

from dataclasses import dataclass, field
from typing import Optional

from fastapi import Header, HTTPException

from .config import settings
from .helpers import debug_log, error_log


@dataclass(frozen=True)
class CallerContext:
    """调用方上下文：后端令牌和模型授权"""
    backend_token: str = ""
    entitled_models: tuple[str, ...] = field(default_factory=tuple)
    eligible_for_gpt4: bool = False


def caller_from_settings() -> CallerContext:
    return CallerContext(
        backend_token=settings.RAYCAST_TOKEN,
        entitled_models=tuple(settings.ENTITLED_MODELS),
        eligible_for_gpt4=settings.ELIGIBLE_FOR_GPT4,
    )


async def authenticate(authorization: Optional[str] = Header(None)) -> CallerContext:
    """FastAPI dependency: validate the client API key and build the caller context"""
    if not settings.SKIP_AUTH_TOKEN:
        if not authorization or not authorization.startswith("Bearer "):
            error_log("[AUTH] 缺少或无效的 Authorization 头")
            raise HTTPException(status_code=401, detail="Missing or invalid Authorization header")

        api_key = authorization[7:]
        if api_key != settings.AUTH_TOKEN:
            error_log("[AUTH] API key 校验失败")
            raise HTTPException(status_code=401, detail="Invalid API key")

    caller = caller_from_settings()
    debug_log(
        "[AUTH] 调用方上下文已建立",
        entitled_models=len(caller.entitled_models),
        eligible_for_gpt4=caller.eligible_for_gpt4,
    )
    return caller
