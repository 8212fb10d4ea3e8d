#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
RayChat格式转换器 - OpenAI 请求 -> 后端请求
"""

from typing import Any, Dict, List, Optional, Tuple

from .auth import CallerContext
from .config import settings
from .helpers import info_log, debug_log, perf_timer, perf_track
from .message_processor import MessageProcessor, message_processor
from .model_resolver import ModelResolver, ResolvedModel, model_resolver
from .schemas import BackendMessage, BackendRequest, CanonicalMessage, ChatRequest


BACKEND_LOCALE = "en-CN"
SYSTEM_INSTRUCTION = "markdown"
DEFAULT_TEMPERATURE = 1.0


def resolve_temperature(temperature: Optional[float]) -> float:
    """
    缺省或为 0 的温度替换为 1.0

    注意：客户端显式传入的 0 与未传入无法区分，两者都会变成 1.0。
    """
    if not temperature:
        return DEFAULT_TEMPERATURE
    return temperature


def split_system_messages(messages: List[CanonicalMessage]) -> Tuple[List[str], List[CanonicalMessage]]:
    """
    拆分 system 消息和对话消息，均保持原始顺序

    Returns:
        (system 内容片段列表, 非 system 消息列表)
    """
    system_fragments = []
    conversation = []
    for message in messages:
        if message.role == "system":
            system_fragments.append(message.content)
        else:
            conversation.append(message)
    return system_fragments, conversation


def build_backend_headers(token: str) -> Dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        "Accept": "text/event-stream",
        "User-Agent": settings.USER_AGENT,
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


class RayChatTransformer:
    """RayChat转换器类"""

    def __init__(
        self,
        resolver: ModelResolver = model_resolver,
        processor: MessageProcessor = message_processor,
    ):
        self.name = "raychat"
        self.resolver = resolver
        self.processor = processor

    def build_backend_request(self, request: ChatRequest, caller: CallerContext) -> Tuple[BackendRequest, ResolvedModel]:
        """
        构建后端请求体

        system 消息只进入 additional_system_instructions，不会重复出现在 messages 中。
        """
        with perf_timer("normalize_messages", threshold_ms=5):
            canonical = self.processor.normalize_messages(request.messages)

        system_fragments, conversation = split_system_messages(canonical)
        backend_messages: List[BackendMessage] = [m.to_backend_message() for m in conversation]

        resolved = self.resolver.resolve(request.model, caller)
        if resolved.substituted:
            info_log(
                "[MODEL] 请求模型不可用，已回退到默认模型",
                requested=resolved.requested,
                model=resolved.model,
            )
        debug_log(f"  模型映射: {resolved.requested} -> {resolved.model}", provider=resolved.provider)

        body = BackendRequest(
            debug=False,
            locale=BACKEND_LOCALE,
            messages=backend_messages,
            provider=resolved.provider,
            model=resolved.model,
            temperature=resolve_temperature(request.temperature),
            system_instruction=SYSTEM_INSTRUCTION,
            additional_system_instructions="\n\n".join(system_fragments) if system_fragments else None,
        )
        return body, resolved

    @perf_track("transform_request_in", log_result=True, threshold_ms=10)
    def transform_request_in(self, request: ChatRequest, caller: CallerContext, upstream_url: str = None) -> Dict[str, Any]:
        """
        转换OpenAI请求为后端格式

        Args:
            request: OpenAI格式的请求
            caller: 调用方上下文
            upstream_url: 后端地址（为None则使用默认配置）

        Returns:
            {"body": BackendRequest, "config": {"url", "headers"}, "resolved": ResolvedModel}
        """
        info_log(f"开始转换 OpenAI 请求到后端格式: {request.model or '<empty>'}")

        body, resolved = self.build_backend_request(request, caller)

        api_url = upstream_url or settings.API_ENDPOINT
        debug_log(f"  使用后端地址: {api_url}")

        info_log(
            "请求转换完成",
            messages=len(body.messages),
            has_system=body.additional_system_instructions is not None,
        )
        return {
            "body": body,
            "config": {
                "url": api_url,
                "headers": build_backend_headers(caller.backend_token),
            },
            "resolved": resolved,
        }
