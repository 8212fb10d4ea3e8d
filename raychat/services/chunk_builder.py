#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
响应块构建器模块 - 后端事件 -> OpenAI 流式块 / 非流式完整响应
"""

import time
from typing import Any, Dict, Iterable, Optional

from ..id_generator import generate_completion_id
from ..schemas import (
    BackendEvent,
    Choice,
    Delta,
    OpenAIChunk,
    OpenAICompletion,
    ResponseMessage,
    StreamChoice,
    Usage,
)


class ChunkBuilder:
    """响应块构建器类"""

    def build_stream_chunk(self, event: BackendEvent, model: str) -> OpenAIChunk:
        """
        单个后端事件 -> 单个流式块

        choice 始终存在；只有 text 或 reasoning 非空时才填充 delta。
        """
        delta = Delta()
        if event.text or event.reasoning:
            delta = Delta(
                role="assistant",
                content=event.text or None,
                reasoning_content=event.reasoning or None,
            )
        return OpenAIChunk(
            id=generate_completion_id(),
            created=int(time.time()),
            model=model,
            choices=[StreamChoice(index=0, delta=delta, finish_reason=event.finish_reason)],
        )

    def aggregate(self, events: Iterable[BackendEvent], model: str) -> OpenAICompletion:
        """
        有序事件序列 -> 单个完整响应

        finish_reason 固定为 "stop"，usage 固定为 0。
        """
        content = ""
        reasoning = ""
        for event in events:
            content += event.text
            reasoning += event.reasoning

        return OpenAICompletion(
            id=generate_completion_id(),
            created=int(time.time()),
            model=model,
            choices=[
                Choice(
                    index=0,
                    message=ResponseMessage(
                        role="assistant",
                        content=content,
                        reasoning_content=reasoning or None,
                    ),
                    finish_reason="stop",
                )
            ],
            usage=Usage(),
        )

    def build_error(self, message: str, error_type: str, code: Optional[int] = None, details: str = None) -> Dict[str, Any]:
        """终止流时发送的错误对象"""
        error: Dict[str, Any] = {"message": message, "type": error_type}
        if code is not None:
            error["code"] = code
        if details:
            error["details"] = details
        return {"error": error}


# 全局单例实例
chunk_builder = ChunkBuilder()
