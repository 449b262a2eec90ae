from __future__ import annotations

import json
import logging
from contextlib import AsyncExitStack
from types import SimpleNamespace
from typing import Any

import pytest
from mcp.types import CallToolResult, TextContent

from knowledge_fusion.config import AppConfig, ServerConfig
from knowledge_fusion.service import KnowledgeService
from knowledge_fusion.tools import ToolManager


class _BackendSession:
    """Answers tool calls the way the vector and graph servers would."""

    def __init__(self, responses: dict[str, Any]) -> None:
        self._responses = responses

    async def call_tool(
        self, name: str, arguments: dict[str, Any] | None = None
    ) -> CallToolResult:
        _ = arguments
        payload = self._responses[name]
        return CallToolResult(content=[TextContent(type="text", text=json.dumps(payload))])

    async def list_tools(self) -> Any:
        return SimpleNamespace(
            tools=[SimpleNamespace(name=name) for name in self._responses]
        )


def _service(app_config: AppConfig, graph_command: str = "graph") -> KnowledgeService:
    sessions = {
        "vector": _BackendSession(
            {
                "search": {
                    "results": [
                        {"content": "login()", "payload": {"file_path": "auth.ts"}, "score": 0.8},
                        {"content": "noise", "payload": {"file_path": "noise.ts"}, "score": 0.2},
                    ]
                },
                "list_collections": {"collections": [{"name": "demo-project-docs"}]},
            }
        ),
        "graph": _BackendSession(
            {
                "search_memories": [
                    {
                        "memory": {
                            "_id": 7,
                            "_labels": ["File"],
                            "properties": {"name": "auth", "path": "auth.ts"},
                        }
                    }
                ]
            }
        ),
    }

    async def opener(server_config: ServerConfig, exit_stack: AsyncExitStack) -> Any:
        _ = exit_stack
        if server_config.command not in sessions:
            raise OSError(f"{server_config.command} not installed")
        return sessions[server_config.command]

    manager = ToolManager(
        app_config,
        server_configs={
            "qdrant": ServerConfig(command="vector"),
            "neo4j-agent-memory": ServerConfig(command=graph_command),
        },
        session_opener=opener,
    )
    return KnowledgeService(app_config, tool_manager=manager)


@pytest.mark.asyncio
async def test_service_semantic_search_through_tool_manager(
    app_config: AppConfig,
) -> None:
    service = _service(app_config)

    results = await service.search("login")

    assert [result.locator for result in results] == ["auth.ts"]
    assert service.tool_manager.connected_servers() == ["qdrant"]


@pytest.mark.asyncio
async def test_service_hybrid_search_fuses_both_backends(
    app_config: AppConfig,
) -> None:
    service = _service(app_config)

    results = await service.search("login", hybrid=True)

    assert len(results) == 1
    assert results[0].score == pytest.approx(1.0)
    assert results[0].metadata["hybrid_match"] is True


@pytest.mark.asyncio
async def test_service_hybrid_search_degrades_without_graph_backend(
    app_config: AppConfig,
) -> None:
    service = _service(app_config, graph_command="missing")

    results = await service.search("login", hybrid=True)

    assert [result.locator for result in results] == ["auth.ts"]
    assert results[0].score == pytest.approx(0.96)


@pytest.mark.asyncio
async def test_service_emits_search_telemetry(
    app_config: AppConfig, caplog: pytest.LogCaptureFixture
) -> None:
    service = _service(app_config)

    with caplog.at_level(logging.INFO, logger="knowledge_fusion.service"):
        await service.search("login")

    messages = [record.getMessage() for record in caplog.records]
    assert any(
        message.startswith("search_event") and '"operation": "search"' in message
        for message in messages
    )


@pytest.mark.asyncio
async def test_service_reports_tools_and_connection_status(
    app_config: AppConfig,
) -> None:
    service = _service(app_config, graph_command="missing")

    tools = await service.list_tools()
    status = await service.connection_status()
    await service.close()

    assert tools == {
        "qdrant": ["search", "list_collections"],
        "neo4j-agent-memory": [],
    }
    assert status == {"qdrant": True, "neo4j-agent-memory": False}
    assert service.tool_manager.connected_servers() == []


@pytest.mark.asyncio
async def test_service_lists_collections(app_config: AppConfig) -> None:
    service = _service(app_config)

    assert await service.list_collections() == ["demo-project-docs"]
    assert await service.collection_stats() == {
        "collection": "demo-project-docs",
        "status": "unknown",
    }
