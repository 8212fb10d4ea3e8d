"""
Application data models
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


# ============================================================================
# Inbound (OpenAI) request
# ============================================================================

class ChatMessagePart(BaseModel):
    """Content part of a parted message (text and/or reasoning)"""
    type: Optional[str] = None
    text: Optional[str] = None
    reasoning: Optional[str] = None


class CanonicalMessage(BaseModel):
    """Shape-independent chat message, immutable once built"""
    model_config = ConfigDict(frozen=True)

    role: str
    content: str
    reasoning_content: Optional[str] = None

    def to_backend_message(self) -> "BackendMessage":
        # 后端没有 system 角色，兜底映射为 user
        author = "user" if self.role == "system" else self.role
        return BackendMessage(author=author, content=BackendContent(text=self.content))


class StringContentMessage(BaseModel):
    """Message whose content is a single text blob"""
    role: Optional[str] = None
    content: Optional[str] = None
    reasoning_content: Optional[str] = None

    def text_content(self) -> str:
        return self.content or ""

    def to_canonical(self) -> CanonicalMessage:
        return CanonicalMessage(
            role=self.role or "",
            content=self.text_content(),
            reasoning_content=self.reasoning_content,
        )


class PartedContentMessage(BaseModel):
    """Message whose content is an ordered list of parts"""
    role: Optional[str] = None
    content: List[ChatMessagePart] = Field(default_factory=list)
    reasoning_content: Optional[str] = None

    def text_content(self) -> str:
        return "\n\n".join(part.text for part in self.content if part.text is not None)

    def to_canonical(self) -> CanonicalMessage:
        return CanonicalMessage(
            role=self.role or "",
            content=self.text_content(),
            reasoning_content=self.reasoning_content,
        )


InboundMessage = Union[StringContentMessage, PartedContentMessage]


class ChatRequest(BaseModel):
    """OpenAI-compatible request model"""
    model_config = ConfigDict(extra="allow")

    model: str = ""
    # 原始消息，逐条交给 message_processor 尝试解析
    messages: List[Any] = Field(default_factory=list)
    stream: Optional[bool] = False
    temperature: Optional[float] = None

    @field_validator("model", mode="before")
    @classmethod
    def _null_model(cls, value):
        # null 等同于未填写，交给模型解析回退到默认模型
        return "" if value is None else value

    @field_validator("messages", mode="before")
    @classmethod
    def _null_messages(cls, value):
        return [] if value is None else value


# ============================================================================
# Backend request / events
# ============================================================================

class BackendContent(BaseModel):
    text: str


class BackendMessage(BaseModel):
    content: BackendContent
    author: str


class BackendRequest(BaseModel):
    """Request body sent to the backend chat endpoint"""
    debug: bool = False
    locale: str = "en-CN"
    messages: List[BackendMessage] = Field(default_factory=list)
    provider: str
    model: str
    temperature: float
    system_instruction: str = "markdown"
    additional_system_instructions: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready body; additional_system_instructions is omitted when unset"""
        return self.model_dump(exclude_none=True)


class BackendEvent(BaseModel):
    """One event of the backend stream"""
    text: str = ""
    reasoning: str = ""
    finish_reason: Optional[str] = None
    error: Optional[Any] = None

    @field_validator("text", "reasoning", mode="before")
    @classmethod
    def _null_as_empty(cls, value):
        return "" if value is None else value


# ============================================================================
# OpenAI response envelopes
# ============================================================================

class Delta(BaseModel):
    role: Optional[str] = None
    content: Optional[str] = None
    reasoning_content: Optional[str] = None


class StreamChoice(BaseModel):
    index: int = 0
    delta: Delta = Field(default_factory=Delta)
    finish_reason: Optional[str] = None

    @field_serializer("delta")
    def _serialize_delta(self, delta: Delta) -> Dict[str, Any]:
        return delta.model_dump(exclude_none=True)


class OpenAIChunk(BaseModel):
    id: str
    object: str = "chat.completion.chunk"
    created: int
    model: str
    choices: List[StreamChoice]


class ResponseMessage(BaseModel):
    role: str = "assistant"
    content: str = ""
    reasoning_content: Optional[str] = None


class Choice(BaseModel):
    index: int = 0
    message: ResponseMessage
    finish_reason: Optional[str] = None

    @field_serializer("message")
    def _serialize_message(self, message: ResponseMessage) -> Dict[str, Any]:
        return message.model_dump(exclude_none=True)


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class OpenAICompletion(BaseModel):
    id: str
    object: str = "chat.completion"
    created: int
    model: str
    choices: List[Choice]
    usage: Usage = Field(default_factory=Usage)


# ============================================================================
# Model listing / metadata
# ============================================================================

class Model(BaseModel):
    """Model information for listing"""
    id: str
    object: str = "model"
    created: int
    owned_by: str


class ModelsResponse(BaseModel):
    """Models list response model"""
    object: str = "list"
    data: List[Model]


class ModelCapabilities(BaseModel):
    web_search: Optional[str] = None
    image_generation: Optional[str] = None


class ModelInfo(BaseModel):
    """Backend model metadata entry"""
    id: str = ""
    name: str = ""
    description: str = ""
    status: Any = None
    features: List[str] = Field(default_factory=list)
    suggestions: List[Any] = Field(default_factory=list)
    in_better_ai_subscription: bool = False
    model: str
    provider: str
    provider_name: str = ""
    provider_brand: str = ""
    speed: int = 0
    intelligence: float = 0
    requires_better_ai: bool = False
    context: int = 0
    capabilities: Optional[ModelCapabilities] = None


class DefaultModels(BaseModel):
    chat: str = ""
    quick_ai: str = ""
    commands: str = ""
    api: str = ""
    emoji_search: str = ""


class AIInfoResponse(BaseModel):
    """Backend model metadata listing"""
    models: List[ModelInfo] = Field(default_factory=list)
    default_models: DefaultModels = Field(default_factory=DefaultModels)

    def supported_models(self) -> Dict[str, str]:
        """model -> provider"""
        return {info.model: info.provider for info in self.models}
