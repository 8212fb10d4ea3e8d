"""Service layer orchestrating OpenAI-compatible chat completions."""

from __future__ import annotations

import asyncio
import time
from contextlib import aclosing
from typing import Any, AsyncIterator, Dict, Optional, Tuple

import httpx
from fastapi import HTTPException

from ..auth import CallerContext
from ..helpers import (
    info_log,
    debug_log,
    error_log,
    bind_request_context,
    reset_request_context,
    request_stage_log,
)
from ..raychat_transformer import RayChatTransformer
from ..schemas import BackendEvent, ChatRequest
from .chunk_builder import chunk_builder
from .network_manager import network_manager
from .response_parser import EventDecodeError, response_parser


class UpstreamStatusError(Exception):
    """Backend answered with a non-200 status."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(f"{status_code}: {detail[:200]}")
        self.status_code = status_code
        self.detail = detail


class ChatCompletionService:
    """Encapsulate chat completion workflow independent of FastAPI layer."""

    def __init__(self) -> None:
        self.transformer = RayChatTransformer()
        self.parser = response_parser
        self.chunk = chunk_builder

    def build_transformed(self, request: ChatRequest, caller: CallerContext) -> dict:
        request_stage_log("transform_in", "开始转换请求格式: OpenAI -> RayChat")
        return self.transformer.transform_request_in(request, caller)

    async def get_request_context(self) -> Tuple[httpx.AsyncClient, Optional[str]]:
        client, proxy = await network_manager.get_request_client()
        bind_request_context(proxy=proxy)
        debug_log("[REQUEST] 获取请求上下文", proxy=proxy or "直连")
        return client, proxy

    async def iter_backend_events(self, client: httpx.AsyncClient, transformed: dict) -> AsyncIterator[BackendEvent]:
        """
        向后端发起请求并逐行产出事件

        每一行在被消费后才读取下一行；生成器关闭时上游连接随之关闭。

        Raises:
            UpstreamStatusError: 后端返回非 200
            EventDecodeError: 某一行不是合法的事件 JSON
        """
        request_start_time = time.perf_counter()
        async with client.stream(
            "POST",
            transformed["config"]["url"],
            json=transformed["body"].to_payload(),
            headers=transformed["config"]["headers"],
        ) as response:
            ttfb = (time.perf_counter() - request_start_time) * 1000
            debug_log("⏱️ 上游TTFB (首字节时间)", ttfb_ms=f"{ttfb:.2f}ms")

            if response.status_code != 200:
                error_text = await response.aread()
                error_msg = error_text.decode("utf-8", errors="ignore")
                error_log("上游返回错误", status_code=response.status_code, error_detail=error_msg[:200])
                raise UpstreamStatusError(response.status_code, error_msg)

            request_stage_log("upstream_response", "后端响应成功，开始读取事件", status="success")

            async for line in response.aiter_lines():
                # SSE 事件之间的空行
                if not line.strip():
                    continue
                if self.parser.is_done(line):
                    break
                yield self.parser.parse_event_line(line)

    async def handle_non_stream_request(
        self,
        transformed: dict,
        request_client: httpx.AsyncClient,
    ) -> Dict[str, Any]:
        bind_request_context(mode="non_stream")
        request_stage_log("non_stream_pipeline", "进入非流式处理流程")
        model = transformed["resolved"].model
        events = []

        try:
            async with aclosing(self.iter_backend_events(request_client, transformed)) as stream:
                async for event in stream:
                    events.append(event)
        except UpstreamStatusError as exc:
            raise HTTPException(status_code=exc.status_code, detail=f"Upstream error: {exc.detail[:500]}")
        except EventDecodeError as exc:
            error_log("[UPSTREAM] 后端事件解析失败", error=str(exc), payload=exc.payload[:200])
            raise HTTPException(status_code=502, detail=f"Malformed upstream event: {exc}")
        except httpx.HTTPError as exc:
            error_log("[UPSTREAM] 后端请求失败", error=str(exc))
            raise HTTPException(status_code=502, detail=f"Upstream request failed: {exc}")
        finally:
            reset_request_context("mode")

        completion = self.chunk.aggregate(events, model)
        message = completion.choices[0].message
        request_stage_log(
            "non_stream_completed",
            "非流式响应完成",
            events=len(events),
            has_reasoning=bool(message.reasoning_content),
        )
        return completion.model_dump()

    async def stream_response(
        self,
        transformed: dict,
        request_client: httpx.AsyncClient,
    ) -> AsyncIterator[str]:
        bind_request_context(mode="stream")
        request_stage_log("stream_pipeline", "进入流式处理流程")
        model = transformed["resolved"].model
        chunk_count = 0

        try:
            async with aclosing(self.iter_backend_events(request_client, transformed)) as stream:
                async for event in stream:
                    chunk = self.chunk.build_stream_chunk(event, model)
                    chunk_count += 1
                    yield self.parser.to_sse(chunk)

            yield "data: [DONE]\n\n"
            request_stage_log("stream_completed", "流式响应完成", chunks=chunk_count, has_error=False)

        except UpstreamStatusError as exc:
            yield self.parser.to_sse(self.chunk.build_error(
                f"Upstream error: {exc.status_code}",
                "upstream_error",
                code=exc.status_code,
                details=exc.detail[:500],
            ))
            yield "data: [DONE]\n\n"
        except EventDecodeError as exc:
            error_log("[UPSTREAM] 后端事件解析失败，终止当前流", error=str(exc), payload=exc.payload[:200])
            yield self.parser.to_sse(self.chunk.build_error(
                f"Malformed upstream event: {exc}",
                "stream_decode_error",
            ))
            yield "data: [DONE]\n\n"
        except asyncio.CancelledError:
            info_log("[REQUEST] 客户端已断开，关闭上游连接", chunks=chunk_count)
            raise
        except Exception as exc:
            error_log("流处理错误", error=str(exc))
            yield self.parser.to_sse(self.chunk.build_error(
                f"Stream processing failed: {exc}",
                "stream_error",
            ))
            yield "data: [DONE]\n\n"
        finally:
            reset_request_context("mode")


chat_completion_service = ChatCompletionService()
