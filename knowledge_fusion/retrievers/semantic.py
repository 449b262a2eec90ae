from __future__ import annotations

import logging
from typing import Any, Mapping, Protocol

from knowledge_fusion.config import AppConfig, collection_name
from knowledge_fusion.errors import SearchError
from knowledge_fusion.models import SearchOptions, SearchResult

LOGGER = logging.getLogger(__name__)

SEARCH_TOOL = "search"
LIST_COLLECTIONS_TOOL = "list_collections"
COLLECTION_INFO_TOOL = "collection_info"

UNKNOWN_LOCATOR = "unknown"
CODE_CHUNK_TYPES = {"function", "class"}

FieldPath = tuple[str, ...]

# Candidate locations per canonical field, tried in order.
CONTENT_PATHS: tuple[FieldPath, ...] = (("content",), ("payload", "content"))
LOCATOR_PATHS: tuple[FieldPath, ...] = (
    ("payload", "file_path"),
    ("metadata", "file_path"),
)
SCORE_PATHS: tuple[FieldPath, ...] = (("score",),)
CHUNK_INDEX_PATHS: tuple[FieldPath, ...] = (
    ("payload", "chunk_index"),
    ("metadata", "chunk_index"),
)
CHUNK_TYPE_PATHS: tuple[FieldPath, ...] = (
    ("payload", "chunk_type"),
    ("metadata", "chunk_type"),
)
METADATA_PATHS: tuple[FieldPath, ...] = (("payload",), ("metadata",))


class ToolCaller(Protocol):
    async def call_tool(
        self,
        server_name: str,
        tool_name: str,
        arguments: Mapping[str, Any] | None = None,
    ) -> Any: ...


class SemanticSearch:
    def __init__(self, tools: ToolCaller, config: AppConfig) -> None:
        self._tools = tools
        self._config = config

    @property
    def default_collection(self) -> str:
        return collection_name(self._config)

    async def search(
        self,
        query: str,
        options: SearchOptions | None = None,
    ) -> list[SearchResult]:
        options = options or SearchOptions()
        limit = options.limit or self._config.default_limit
        collection = options.collection or self.default_collection
        threshold = (
            options.threshold
            if options.threshold is not None
            else self._config.similarity_threshold
        )

        try:
            raw = await self._tools.call_tool(
                self._config.vector_server,
                SEARCH_TOOL,
                {
                    "query": query,
                    "collection": collection,
                    "embeddingService": self._config.embedding_service,
                    "limit": limit,
                },
            )
        except Exception as exc:
            LOGGER.error(
                "Semantic search failed",
                extra={"collection": collection},
                exc_info=exc,
            )
            raise SearchError("search", query, exc) from exc

        results = normalize_vector_results(raw, options.include_metadata)
        filtered = [result for result in results if result.score >= threshold]
        LOGGER.debug(
            "Semantic search completed",
            extra={
                "collection": collection,
                "matched": len(results),
                "kept": len(filtered),
                "threshold": threshold,
            },
        )
        return filtered

    async def search_similar_code(
        self,
        snippet: str,
        language: str | None = None,
        limit: int = 5,
    ) -> list[SearchResult]:
        query = (
            f"{language} code: {snippet}" if language else f"code snippet: {snippet}"
        )
        try:
            results = await self.search(
                query,
                SearchOptions(
                    limit=limit,
                    threshold=self._config.code_similarity_threshold,
                    include_metadata=True,
                ),
            )
        except SearchError as exc:
            raise SearchError("code_search", snippet, exc.cause) from exc

        code_results = [
            result for result in results if _is_code_result(result, language)
        ]
        return code_results if code_results else results

    async def list_collections(self) -> list[str]:
        try:
            raw = await self._tools.call_tool(
                self._config.vector_server, LIST_COLLECTIONS_TOOL, {}
            )
        except Exception as exc:  # noqa: BLE001
            LOGGER.debug("Failed to list collections", exc_info=exc)
            return [self.default_collection]

        collections = raw.get("collections") if isinstance(raw, dict) else None
        if not isinstance(collections, list):
            return [self.default_collection]
        names = [_collection_label(item) for item in collections]
        return [name for name in names if name]

    async def get_collection_stats(
        self,
        collection: str | None = None,
    ) -> dict[str, Any]:
        target = collection or self.default_collection
        try:
            raw = await self._tools.call_tool(
                self._config.vector_server,
                COLLECTION_INFO_TOOL,
                {"collection": target},
            )
        except Exception as exc:  # noqa: BLE001
            LOGGER.debug(
                "Failed to get collection stats",
                extra={"collection": target},
                exc_info=exc,
            )
            return {"collection": target, "status": "unknown"}

        stats: dict[str, Any] = {"collection": target, "status": "available"}
        if isinstance(raw, dict):
            for key, value in raw.items():
                if isinstance(value, int | float) and not isinstance(value, bool):
                    stats[key] = value
        return stats


def normalize_vector_results(
    raw: Any,
    include_metadata: bool = True,
) -> list[SearchResult]:
    records = raw.get("results") if isinstance(raw, dict) else None
    if not isinstance(records, list):
        return []
    return [
        normalize_vector_record(record, include_metadata)
        for record in records
        if isinstance(record, dict)
    ]


def normalize_vector_record(
    record: Mapping[str, Any],
    include_metadata: bool = True,
) -> SearchResult:
    metadata = _first_present(record, METADATA_PATHS)
    if not include_metadata or not isinstance(metadata, dict):
        metadata = {}
    return SearchResult(
        content=_as_str(_first_present(record, CONTENT_PATHS), ""),
        locator=_as_str(_first_present(record, LOCATOR_PATHS), UNKNOWN_LOCATOR),
        score=_as_float(_first_present(record, SCORE_PATHS)),
        metadata=dict(metadata),
        chunk_index=_as_int(_first_present(record, CHUNK_INDEX_PATHS)),
        chunk_type=_as_str(_first_present(record, CHUNK_TYPE_PATHS), "text"),
    )


def _first_present(record: Mapping[str, Any], paths: tuple[FieldPath, ...]) -> Any:
    for path in paths:
        value = _lookup(record, path)
        if value is None or value == "" or value == {}:
            continue
        return value
    return None


def _lookup(record: Mapping[str, Any], path: FieldPath) -> Any:
    current: Any = record
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def _as_str(value: Any, default: str) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return default
    return str(value)


def _as_float(value: Any) -> float:
    if isinstance(value, int | float) and not isinstance(value, bool):
        return float(value)
    return 0.0


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return 0


def _is_code_result(result: SearchResult, language: str | None) -> bool:
    if result.chunk_type in CODE_CHUNK_TYPES:
        return True
    if language and result.metadata.get("language") == language:
        return True
    file_type = result.metadata.get("file_type")
    return isinstance(file_type, str) and "script" in file_type


def _collection_label(item: Any) -> str:
    if isinstance(item, dict):
        name = item.get("name")
        return name if isinstance(name, str) else ""
    if isinstance(item, str):
        return item
    return ""
