"""
OpenAI API endpoints
"""

import time

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse

from .auth import CallerContext, authenticate
from .helpers import (
    error_log,
    debug_log,
    bind_request_context,
    reset_request_context,
    request_stage_log,
)
from .id_generator import generate_random_string
from .model_resolver import model_catalog
from .schemas import ChatRequest, Model, ModelsResponse
from .services.openai_service import chat_completion_service

router = APIRouter(prefix="/hf/v1")

service = chat_completion_service

_CONTEXT_KEYS = ("request_id", "proxy", "model")


@router.get("/models")
async def list_models():
    """List available models"""
    current_time = int(time.time())
    return ModelsResponse(
        data=[
            Model(id=entry.model, created=current_time, owned_by=entry.provider)
            for entry in model_catalog
        ]
    )


@router.options("/chat/completions")
async def chat_completions_options():
    """CORS preflight"""
    return JSONResponse(
        {"message": "pong"},
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "POST",
            "Access-Control-Allow-Headers": "*",
        },
    )


@router.post("/chat/completions")
async def chat_completions(request: ChatRequest, caller: CallerContext = Depends(authenticate)):
    """处理 chat completion 请求，支持流式和非流式"""
    request_id = generate_random_string(12)
    bind_request_context(request_id=request_id, model=request.model)
    request_stage_log(
        "received",
        "收到客户端请求",
        model=request.model,
        stream=request.stream,
        message_count=len(request.messages),
    )
    debug_log("客户端请求体详情", request_body=request.model_dump())

    try:
        request_client, current_proxy = await service.get_request_context()
        transformed = service.build_transformed(request, caller)
        request_stage_log(
            "transformed",
            "请求已转换为后端所需格式",
            model=transformed["resolved"].model,
            provider=transformed["resolved"].provider,
            proxy=current_proxy or "direct",
        )

        if not request.stream:
            try:
                result = await service.handle_non_stream_request(transformed, request_client)
                request_stage_log("non_stream_ready", "非流式结果已生成")
                return result
            finally:
                reset_request_context(*_CONTEXT_KEYS)

        async def stream_response():
            try:
                async for chunk in service.stream_response(transformed, request_client):
                    yield chunk
                request_stage_log("stream_finished", "流式响应生成器完成")
            finally:
                reset_request_context(*_CONTEXT_KEYS)

        return StreamingResponse(
            stream_response(),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
            },
        )

    except HTTPException:
        reset_request_context(*_CONTEXT_KEYS)
        error_log("[REQUEST] 处理HTTPException")
        raise
    except Exception as e:
        reset_request_context(*_CONTEXT_KEYS)
        error_log("处理请求时发生错误", error=str(e))
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")
