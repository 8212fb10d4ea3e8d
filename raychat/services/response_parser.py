#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
SSE 编解码模块 - OpenAI 对象 <-> `data: ` 行

- 输出：OpenAI 响应对象序列化为 `data: <紧凑JSON>`
- 输入：后端 `data: {...}` 行解析为 BackendEvent
- 反向：自身输出的 `data: ` 行还原为 OpenAIChunk / OpenAICompletion
"""

from typing import Dict, Type, Union

import orjson
from pydantic import BaseModel, ValidationError

from ..helpers import error_log
from ..schemas import BackendEvent, OpenAIChunk, OpenAICompletion

DATA_PREFIX = "data: "
DONE_MARKER = "[DONE]"

ENVELOPES: Dict[str, Type[BaseModel]] = {
    "chat.completion.chunk": OpenAIChunk,
    "chat.completion": OpenAICompletion,
}


class EventDecodeError(ValueError):
    """Payload is not valid JSON or does not fit the expected shape."""

    def __init__(self, message: str, payload: str):
        super().__init__(message)
        self.payload = payload


class ResponseParser:
    """SSE 行的序列化与解析"""

    def to_event_string(self, obj: Union[BaseModel, dict]) -> str:
        """序列化为 `data: ` 行（不含结尾空行）"""
        data = obj.model_dump() if isinstance(obj, BaseModel) else obj
        return DATA_PREFIX + orjson.dumps(data).decode("utf-8")

    def to_sse(self, obj: Union[BaseModel, dict]) -> str:
        """序列化为完整的 SSE 事件（以空行结束）"""
        return self.to_event_string(obj) + "\n\n"

    def strip_prefix(self, line: str) -> str:
        # 只去掉开头的一次前缀
        if line.startswith(DATA_PREFIX):
            return line[len(DATA_PREFIX):]
        return line

    def is_done(self, line: str) -> bool:
        return self.strip_prefix(line).strip() == DONE_MARKER

    def parse_event_line(self, line: str) -> BackendEvent:
        """
        解析后端的一行 `data: {...}`

        - 去掉前缀后为空：返回空事件
        - JSON 无效：抛出 EventDecodeError，由调用方终止当前请求
        - 事件带 error 字段：记录错误并按空事件处理，流不中断

        Raises:
            EventDecodeError: payload 不是合法的事件 JSON
        """
        payload = self.strip_prefix(line)
        if not payload:
            return BackendEvent()

        try:
            event = BackendEvent.model_validate(orjson.loads(payload))
        except orjson.JSONDecodeError as exc:
            raise EventDecodeError(f"malformed event JSON: {exc}", payload) from exc
        except ValidationError as exc:
            raise EventDecodeError(f"unexpected event shape: {exc.error_count()} error(s)", payload) from exc

        if event.error:
            error_log("[UPSTREAM_ERROR] 后端事件携带错误，已忽略该事件", error=str(event.error), body=line[:500])
            return BackendEvent()
        return event

    def parse_completion_line(self, line: str) -> Union[OpenAIChunk, OpenAICompletion]:
        """
        to_event_string 的逆操作：按 `object` 字段还原流式块或完整响应

        Raises:
            EventDecodeError: payload 不是 JSON，或不是已知的 OpenAI 响应对象
        """
        payload = self.strip_prefix(line)
        try:
            data = orjson.loads(payload)
        except orjson.JSONDecodeError as exc:
            raise EventDecodeError(f"malformed completion JSON: {exc}", payload) from exc

        envelope = ENVELOPES.get(data.get("object")) if isinstance(data, dict) else None
        if envelope is None:
            raise EventDecodeError("unknown completion object", payload)
        try:
            return envelope.model_validate(data)
        except ValidationError as exc:
            raise EventDecodeError(f"unexpected completion shape: {exc.error_count()} error(s)", payload) from exc


# 全局单例实例
response_parser = ResponseParser()
