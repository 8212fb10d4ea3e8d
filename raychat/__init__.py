"""
raychat package - OpenAI-compatible gateway for the RayChat backend
"""

from .config import settings, MODEL_CATALOG_TABLE
from .helpers import debug_log
from .schemas import ChatRequest, BackendRequest, BackendEvent, OpenAIChunk, OpenAICompletion
from .model_resolver import ModelCatalog, ModelResolver, model_catalog, model_resolver
from .raychat_transformer import RayChatTransformer

__all__ = [
    "settings",
    "MODEL_CATALOG_TABLE",
    "debug_log",
    "ChatRequest",
    "BackendRequest",
    "BackendEvent",
    "OpenAIChunk",
    "OpenAICompletion",
    "ModelCatalog",
    "ModelResolver",
    "model_catalog",
    "model_resolver",
    "RayChatTransformer",
]
