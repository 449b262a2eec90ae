from __future__ import annotations

import logging
from typing import Any, Mapping

from knowledge_fusion.config import AppConfig
from knowledge_fusion.models import SearchResult
from knowledge_fusion.retrievers.semantic import ToolCaller

LOGGER = logging.getLogger(__name__)

SEARCH_MEMORIES_TOOL = "search_memories"
GRAPH_LOCATOR = "neo4j://memory"
GRAPH_CHUNK_TYPE = "graph_entity"
TOP_RANK_SCORE = 0.8
RANK_SCORE_STEP = 0.1

# (property, label) pairs appended to the entity summary when non-empty.
DETAIL_FIELDS: tuple[tuple[str, str], ...] = (
    ("description", "Description"),
    ("observations", "Observations"),
    ("functionality", "Functionality"),
    ("language", "Language"),
    ("classes", "Classes"),
    ("functions", "Functions"),
)


class GraphSearch:
    def __init__(self, tools: ToolCaller, config: AppConfig) -> None:
        self._tools = tools
        self._config = config

    async def search(self, query: str) -> list[SearchResult]:
        try:
            raw = await self._tools.call_tool(
                self._config.graph_server,
                SEARCH_MEMORIES_TOOL,
                {
                    "query": query,
                    "limit": self._config.graph_limit,
                    "depth": self._config.graph_depth,
                },
            )
        except Exception as exc:  # noqa: BLE001
            LOGGER.debug("Graph search failed", exc_info=exc)
            return []

        return [
            memory_to_result(memory, rank)
            for rank, memory in enumerate(_memory_records(raw))
        ]


def rank_score(rank: int) -> float:
    return round(TOP_RANK_SCORE - rank * RANK_SCORE_STEP, 6)


def memory_to_result(record: Mapping[str, Any], rank: int) -> SearchResult:
    memory = record.get("memory")
    if not isinstance(memory, dict):
        memory = {}
    properties = memory.get("properties")
    if not isinstance(properties, dict):
        properties = {}

    path = properties.get("path")
    return SearchResult(
        content=memory_content(memory),
        locator=path if isinstance(path, str) and path else GRAPH_LOCATOR,
        score=rank_score(rank),
        metadata={
            "source": "neo4j",
            "memory_id": memory.get("_id"),
            "labels": memory.get("_labels"),
            **properties,
        },
        chunk_index=0,
        chunk_type=GRAPH_CHUNK_TYPE,
    )


def memory_content(memory: Mapping[str, Any]) -> str:
    properties = memory.get("properties")
    if not isinstance(properties, dict):
        properties = {}
    labels = memory.get("_labels")
    entity_type = (
        labels[0] if isinstance(labels, list) and labels and labels[0] else "entity"
    )
    name = properties.get("name") or "Unknown"

    lines = [f"{entity_type}: {name}"]
    for field_name, label in DETAIL_FIELDS:
        text = _render_value(properties.get(field_name))
        if text:
            lines.append(f"{label}: {text}")
    return "\n".join(lines)


def _render_value(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(str(item) for item in value if item is not None)
    if value is None:
        return ""
    return str(value).strip()


def _memory_records(raw: Any) -> list[dict[str, Any]]:
    if isinstance(raw, dict):
        for key in ("result", "memories", "results"):
            if isinstance(raw.get(key), list):
                raw = raw[key]
                break
    if not isinstance(raw, list):
        return []
    return [item for item in raw if isinstance(item, dict)]
