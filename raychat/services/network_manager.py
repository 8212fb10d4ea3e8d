"""Shared HTTP clients and proxy selection for backend calls."""

from __future__ import annotations

import asyncio
from typing import Optional, Dict, Tuple

import httpx

from ..helpers import info_log, debug_log, error_log
from ..config import settings


_CONNECTION_POOL_CONFIG: Dict[str, object] = {
    "limits": httpx.Limits(
        max_keepalive_connections=20,
        max_connections=100,
        keepalive_expiry=30,
    ),
    "timeout": httpx.Timeout(
        connect=10.0,
        read=120.0,
        write=30.0,
        pool=10.0,
    ),
    "http2": True,
}


class NetworkManager:
    """Manage pooled HTTP clients (one per proxy) and round-robin proxy selection."""

    def __init__(self, proxy_list: Optional[list[str]] = None) -> None:
        self._proxy_clients: Dict[str, httpx.AsyncClient] = {}
        self._default_client: Optional[httpx.AsyncClient] = None
        self._client_lock = asyncio.Lock()

        self._proxy_lock = asyncio.Lock()
        self._proxy_list = list(settings.PROXY_LIST if proxy_list is None else proxy_list)
        self._proxy_index = 0

        if self._proxy_list:
            info_log("[PROXY] 初始化代理池", count=len(self._proxy_list))

    async def get_or_create_client(self, proxy_url: Optional[str] = None) -> httpx.AsyncClient:
        async with self._client_lock:
            if proxy_url is None:
                if self._default_client is None:
                    info_log("[CLIENT] 创建默认客户端（无代理）")
                    self._default_client = httpx.AsyncClient(**_CONNECTION_POOL_CONFIG)
                return self._default_client

            if proxy_url not in self._proxy_clients:
                info_log("[CLIENT] 为代理创建新客户端", proxy=proxy_url)
                self._proxy_clients[proxy_url] = httpx.AsyncClient(
                    proxy=proxy_url,
                    **_CONNECTION_POOL_CONFIG,
                )

            return self._proxy_clients[proxy_url]

    async def cleanup_clients(self) -> None:
        async with self._client_lock:
            clients_to_close = list(self._proxy_clients.values())
            self._proxy_clients.clear()
            if self._default_client is not None:
                clients_to_close.append(self._default_client)
            self._default_client = None

        for client in clients_to_close:
            try:
                await client.aclose()
            except Exception as exc:  # pragma: no cover - 问题记录即可
                error_log("[CLIENT] 关闭客户端失败", error=str(exc))

        info_log("[CLIENT] 所有客户端已清理")

    async def get_next_proxy(self) -> Optional[str]:
        if not self._proxy_list:
            return None

        async with self._proxy_lock:
            proxy = self._proxy_list[self._proxy_index]
            self._proxy_index = (self._proxy_index + 1) % len(self._proxy_list)
            debug_log("[PROXY] Round-robin选择代理", index=self._proxy_index, proxy=proxy)
            return proxy

    async def get_request_client(self) -> Tuple[httpx.AsyncClient, Optional[str]]:
        proxy = await self.get_next_proxy()
        client = await self.get_or_create_client(proxy)
        return client, proxy


network_manager = NetworkManager()
