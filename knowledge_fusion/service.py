from __future__ import annotations

import logging
from typing import Any
from uuid import uuid4

from knowledge_fusion.config import AppConfig
from knowledge_fusion.models import SearchOptions, SearchResult
from knowledge_fusion.retrievers.graph import GraphSearch
from knowledge_fusion.retrievers.hybrid import HybridSearch
from knowledge_fusion.retrievers.semantic import SemanticSearch
from knowledge_fusion.telemetry import build_search_event, emit_search_telemetry
from knowledge_fusion.tools.manager import ToolManager

LOGGER = logging.getLogger(__name__)


class KnowledgeService:
    def __init__(
        self,
        config: AppConfig,
        tool_manager: ToolManager | None = None,
    ) -> None:
        self._config = config
        self._tool_manager = tool_manager or ToolManager(config)
        self._semantic = SemanticSearch(self._tool_manager, config)
        self._graph = GraphSearch(self._tool_manager, config)
        self._hybrid = HybridSearch(self._semantic, self._graph, config)

    @property
    def tool_manager(self) -> ToolManager:
        return self._tool_manager

    async def search(
        self,
        query: str,
        options: SearchOptions | None = None,
        hybrid: bool = False,
    ) -> list[SearchResult]:
        if hybrid:
            results = await self._hybrid.hybrid_search(query, options)
        else:
            results = await self._semantic.search(query, options)
        _emit("hybrid_search" if hybrid else "search", query, results)
        return results

    async def search_similar_code(
        self,
        snippet: str,
        language: str | None = None,
        limit: int = 5,
    ) -> list[SearchResult]:
        results = await self._semantic.search_similar_code(snippet, language, limit)
        _emit("code_search", snippet, results)
        return results

    async def list_collections(self) -> list[str]:
        return await self._semantic.list_collections()

    async def collection_stats(self, collection: str | None = None) -> dict[str, Any]:
        return await self._semantic.get_collection_stats(collection)

    async def list_tools(self) -> dict[str, list[str]]:
        return await self._tool_manager.list_all_tools()

    async def connection_status(self) -> dict[str, bool]:
        return {
            server_name: await self._tool_manager.test_connection(server_name)
            for server_name in self._tool_manager.server_names()
        }

    async def close(self) -> None:
        await self._tool_manager.disconnect()


def _emit(operation: str, query: str, results: list[SearchResult]) -> None:
    emit_search_telemetry(
        build_search_event(
            operation=operation,
            query=query,
            result_count=len(results),
            request_id=uuid4().hex,
        ),
        logger=LOGGER,
    )
