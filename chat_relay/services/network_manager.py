"""Shared upstream HTTP client management."""

from __future__ import annotations

import asyncio
from typing import Dict, Optional

import httpx

from ..helpers import info_log, error_log
from ..config import settings


_CONNECTION_POOL_CONFIG: Dict[str, object] = {
    "limits": httpx.Limits(
        max_keepalive_connections=20,
        max_connections=None,
        keepalive_expiry=30,
    ),
    # 只限制建连时间；上游无响应时请求会一直挂起
    "timeout": httpx.Timeout(
        None,
        connect=settings.UPSTREAM_CONNECT_TIMEOUT,
    ),
    "http2": True,
}


class NetworkManager:
    """Own the pooled httpx client used for every upstream call."""

    def __init__(self) -> None:
        self._default_client: Optional[httpx.AsyncClient] = None
        self._client_lock = asyncio.Lock()

    async def get_or_create_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._default_client is None:
                info_log("[CLIENT] 创建默认客户端", upstream=settings.OPENAI_API_BASE)
                self._default_client = httpx.AsyncClient(**_CONNECTION_POOL_CONFIG)
            return self._default_client

    async def cleanup_clients(self) -> None:
        async with self._client_lock:
            client = self._default_client
            self._default_client = None

        if client:
            try:
                await client.aclose()
                info_log("[CLIENT] 默认客户端已关闭")
            except Exception as exc:  # pragma: no cover - 问题记录即可
                error_log("[CLIENT] 关闭默认客户端失败", error=str(exc))


network_manager = NetworkManager()


async def get_http_client() -> httpx.AsyncClient:
    """FastAPI dependency returning the shared upstream client."""
    return await network_manager.get_or_create_client()
