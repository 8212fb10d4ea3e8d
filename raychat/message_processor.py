#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
消息处理器模块 - 将 OpenAI 消息（两种 content 形态）解析为统一的内部消息
"""

from typing import Any, List, Optional

from pydantic import ValidationError

from .helpers import debug_log, warning_log
from .schemas import (
    CanonicalMessage,
    InboundMessage,
    PartedContentMessage,
    StringContentMessage,
)


class MessageProcessor:
    """
    消息处理器类

    按顺序尝试解析：先字符串 content，再分段 content。
    两种都失败的消息会被跳过，不影响同一请求中的其他消息。
    """

    shapes = (StringContentMessage, PartedContentMessage)

    def normalize_message(self, raw: Any, index: int = 0) -> Optional[InboundMessage]:
        """
        解析单条原始消息

        Args:
            raw: 客户端传入的原始消息（任意 JSON 值）
            index: 消息在请求中的位置，仅用于日志

        Returns:
            解析成功的消息；两种形态都不匹配时返回 None
        """
        errors = []
        for shape in self.shapes:
            try:
                return shape.model_validate(raw)
            except ValidationError as exc:
                errors.append(f"{shape.__name__}: {exc.error_count()} error(s)")

        warning_log(
            "[MESSAGE] 无法解析消息，已跳过",
            index=index,
            raw_type=type(raw).__name__,
            errors=errors,
        )
        return None

    def normalize_messages(self, raw_messages: List[Any]) -> List[CanonicalMessage]:
        """
        解析消息列表，保持原始顺序

        Args:
            raw_messages: 原始消息列表

        Returns:
            规范化后的消息列表（无法解析的消息已被丢弃）
        """
        canonical = []
        for idx, raw in enumerate(raw_messages):
            message = self.normalize_message(raw, index=idx)
            if message is None:
                continue
            debug_log(f"    消息[{idx}]: 解析为 {type(message).__name__}", role=message.role)
            canonical.append(message.to_canonical())
        return canonical


# 全局单例实例
message_processor = MessageProcessor()
