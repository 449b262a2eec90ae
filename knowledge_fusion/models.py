from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field


class SearchResult(BaseModel):
    content: str
    locator: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)
    chunk_index: int = 0
    chunk_type: str = "text"


@dataclass(frozen=True)
class SearchOptions:
    limit: int | None = None
    collection: str | None = None
    threshold: float | None = None
    include_metadata: bool = True


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    limit: int | None = Field(default=None, ge=1)
    collection: str | None = None
    threshold: float | None = Field(default=None, ge=0.0)
    include_metadata: bool = True

    def to_options(self) -> SearchOptions:
        return SearchOptions(
            limit=self.limit,
            collection=self.collection,
            threshold=self.threshold,
            include_metadata=self.include_metadata,
        )


class CodeSearchRequest(BaseModel):
    snippet: str = Field(min_length=1)
    language: str | None = None
    limit: int = Field(default=5, ge=1)


class SearchResponse(BaseModel):
    query: str
    mode: str
    results: list[SearchResult]
