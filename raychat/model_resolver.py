#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
模型解析模块 - 根据请求模型和调用方授权决定实际使用的模型及其 provider

模型目录在进程启动时构建一次，之后只读。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Iterator, Mapping, NamedTuple, Optional

import orjson
from pydantic import ValidationError

from .config import settings, MODEL_CATALOG_TABLE
from .helpers import info_log, error_log
from .schemas import AIInfoResponse

if TYPE_CHECKING:
    from .auth import CallerContext


PREMIUM_MODEL = "gpt-4"


class ModelCatalogEntry(NamedTuple):
    model: str
    provider: str


@dataclass(frozen=True)
class ModelCatalog:
    """Read-only model -> provider table"""

    _providers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_providers", MappingProxyType(dict(self._providers)))

    @classmethod
    def from_table(cls, table: Mapping[str, str], ai_info: Optional[AIInfoResponse] = None) -> "ModelCatalog":
        providers = dict(table)
        if ai_info is not None:
            providers.update(ai_info.supported_models())
        return cls(providers)

    def __contains__(self, model: object) -> bool:
        return model in self._providers

    def __iter__(self) -> Iterator[ModelCatalogEntry]:
        for model, provider in self._providers.items():
            yield ModelCatalogEntry(model, provider)

    def __len__(self) -> int:
        return len(self._providers)

    def models(self) -> list[str]:
        return list(self._providers)

    def provider_for(self, model: str) -> str:
        """Catalog provider, empty string on a miss"""
        return self._providers.get(model, "")


def load_ai_info(path: Path) -> Optional[AIInfoResponse]:
    """
    读取后端模型元数据文件（可选）

    Returns:
        解析结果；文件不存在或内容无效时返回 None
    """
    if not path.exists():
        return None
    try:
        ai_info = AIInfoResponse.model_validate(orjson.loads(path.read_bytes()))
    except (OSError, orjson.JSONDecodeError, ValidationError) as e:
        error_log("[CATALOG] 读取模型元数据文件失败", path=str(path), error=str(e))
        return None
    info_log("[CATALOG] 从模型元数据文件加载模型", path=str(path), count=len(ai_info.models))
    return ai_info


def build_model_catalog(catalog_file: Optional[str] = None) -> ModelCatalog:
    """静态模型表 + 可选的模型元数据文件"""
    ai_info = load_ai_info(Path(catalog_file)) if catalog_file else None
    catalog = ModelCatalog.from_table(MODEL_CATALOG_TABLE, ai_info)
    info_log("[CATALOG] 模型目录初始化完成", count=len(catalog))
    return catalog


class ResolvedModel(NamedTuple):
    model: str
    provider: str
    requested: str
    substituted: bool


class ModelResolver:
    """Resolve (model, provider) for a request"""

    def __init__(self, catalog: ModelCatalog, default_model: str = "gpt-3.5-turbo") -> None:
        self.catalog = catalog
        self.default_model = default_model

    def eligible_models(self, caller: "CallerContext") -> set[str]:
        eligible = set(self.catalog.models())
        eligible.update(caller.entitled_models)
        if caller.eligible_for_gpt4:
            eligible.add(PREMIUM_MODEL)
        return eligible

    def resolve(self, requested: str, caller: "CallerContext") -> ResolvedModel:
        """
        不在可用集合中的模型静默回退到默认模型，从不抛出异常

        Args:
            requested: 客户端请求的模型名
            caller: 调用方上下文（授权模型 + 高级资格）

        Returns:
            ResolvedModel，substituted 表示是否发生了回退
        """
        if requested in self.eligible_models(caller):
            return ResolvedModel(requested, self.catalog.provider_for(requested), requested, False)
        return ResolvedModel(
            self.default_model,
            self.catalog.provider_for(self.default_model),
            requested,
            True,
        )


model_catalog = build_model_catalog(settings.MODEL_CATALOG_FILE)
model_resolver = ModelResolver(model_catalog, default_model=settings.DEFAULT_MODEL)
