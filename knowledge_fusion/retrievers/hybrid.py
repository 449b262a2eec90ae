from __future__ import annotations

import asyncio
import logging
from dataclasses import replace

from knowledge_fusion.config import AppConfig
from knowledge_fusion.errors import SearchError
from knowledge_fusion.models import SearchOptions, SearchResult
from knowledge_fusion.retrievers.graph import GraphSearch
from knowledge_fusion.retrievers.merge import fuse_results
from knowledge_fusion.retrievers.semantic import SemanticSearch

LOGGER = logging.getLogger(__name__)


class HybridSearch:
    """Answers a query from both the vector and graph backends.

    Vector results are the primary signal, so their failure fails the query.
    The graph path only enriches and degrades to no results on failure.
    """

    def __init__(
        self,
        semantic: SemanticSearch,
        graph: GraphSearch,
        config: AppConfig,
    ) -> None:
        self._semantic = semantic
        self._graph = graph
        self._config = config

    async def hybrid_search(
        self,
        query: str,
        options: SearchOptions | None = None,
    ) -> list[SearchResult]:
        options = options or SearchOptions()
        limit = options.limit or self._config.default_limit
        semantic_options = replace(options, limit=self._config.hybrid_semantic_limit)

        try:
            semantic_results, graph_results = await asyncio.gather(
                self._semantic.search(query, semantic_options),
                self._graph.search(query),
            )
        except SearchError as exc:
            raise SearchError("hybrid_search", query, exc.cause) from exc

        fused = fuse_results(semantic_results, graph_results, limit=limit)
        LOGGER.debug(
            "Hybrid search completed",
            extra={
                "semantic_count": len(semantic_results),
                "graph_count": len(graph_results),
                "fused_count": len(fused),
            },
        )
        return fused
