from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

from knowledge_fusion.config import AppConfig, ServerConfig, load_server_configs
from knowledge_fusion.errors import (
    KnowledgeFusionError,
    ToolConnectionError,
    ToolInvocationError,
)
from knowledge_fusion.tools.client import SessionOpener, ToolClient

LOGGER = logging.getLogger(__name__)


class ToolManager:
    def __init__(
        self,
        config: AppConfig,
        server_configs: Mapping[str, ServerConfig] | None = None,
        session_opener: SessionOpener | None = None,
    ) -> None:
        self._config = config
        self._server_configs: dict[str, ServerConfig] | None = (
            dict(server_configs) if server_configs is not None else None
        )
        self._session_opener = session_opener
        self._clients: dict[str, ToolClient] = {}

    def load_config(self) -> dict[str, ServerConfig]:
        if self._server_configs is None:
            self._server_configs = load_server_configs(self._config)
        return self._server_configs

    def reload_config(self) -> None:
        self._server_configs = None

    def server_names(self) -> list[str]:
        return list(self.load_config())

    def is_server_configured(self, server_name: str) -> bool:
        return server_name in self.load_config()

    def connected_servers(self) -> list[str]:
        return [name for name, client in self._clients.items() if client.connected]

    async def connect_to_server(self, server_name: str) -> ToolClient:
        existing = self._clients.get(server_name)
        if existing is not None and existing.connected:
            return existing

        server_config = self.load_config().get(server_name)
        if server_config is None:
            raise ToolConnectionError(server_name, "server not found in MCP config")

        client = existing or ToolClient(
            server_name, server_config, session_opener=self._session_opener
        )
        self._clients[server_name] = client
        try:
            await client.connect()
        except Exception:
            self._clients.pop(server_name, None)
            raise
        return client

    async def call_tool(
        self,
        server_name: str,
        tool_name: str,
        arguments: Mapping[str, Any] | None = None,
    ) -> Any:
        try:
            client = await self.connect_to_server(server_name)
            return await client.call_tool(tool_name, arguments)
        except KnowledgeFusionError:
            raise
        except Exception as exc:
            raise ToolInvocationError(server_name, tool_name, exc) from exc

    async def list_all_tools(self) -> dict[str, list[str]]:
        all_tools: dict[str, list[str]] = {}
        for server_name in self.server_names():
            try:
                client = await self.connect_to_server(server_name)
                all_tools[server_name] = await client.list_tools()
            except Exception as exc:  # noqa: BLE001
                LOGGER.warning(
                    "Failed to list tools",
                    extra={"server": server_name},
                    exc_info=exc,
                )
                all_tools[server_name] = []
        return all_tools

    async def test_connection(self, server_name: str) -> bool:
        try:
            await self.connect_to_server(server_name)
        except Exception as exc:  # noqa: BLE001
            LOGGER.debug(
                "Connection test failed",
                extra={"server": server_name},
                exc_info=exc,
            )
            return False
        return True

    async def disconnect_server(self, server_name: str) -> None:
        client = self._clients.pop(server_name, None)
        if client is not None:
            await client.disconnect()

    async def disconnect(self) -> None:
        clients = list(self._clients.items())
        self._clients.clear()
        outcomes = await asyncio.gather(
            *(client.disconnect() for _, client in clients),
            return_exceptions=True,
        )
        for (server_name, _), outcome in zip(clients, outcomes):
            if isinstance(outcome, BaseException):
                LOGGER.warning(
                    "Error disconnecting tool server",
                    extra={"server": server_name},
                    exc_info=outcome,
                )
