from __future__ import annotations

from collections import OrderedDict

from knowledge_fusion.models import SearchResult

SEMANTIC_BOOST = 1.2
CROSS_MATCH_WEIGHT = 0.3
CROSS_MATCH_CAP = 1.0


def fuse_results(
    semantic_results: list[SearchResult],
    graph_results: list[SearchResult],
    limit: int = 10,
) -> list[SearchResult]:
    combined: OrderedDict[tuple[str, int], SearchResult] = OrderedDict()

    for result in semantic_results:
        combined[fusion_key(result)] = result.model_copy(
            update={"score": result.score * SEMANTIC_BOOST}
        )

    for result in graph_results:
        key = fusion_key(result)
        existing = combined.get(key)
        if existing is None:
            combined[key] = result
            continue
        combined[key] = existing.model_copy(
            update={
                "score": min(
                    CROSS_MATCH_CAP,
                    existing.score + result.score * CROSS_MATCH_WEIGHT,
                ),
                "metadata": {
                    **existing.metadata,
                    **result.metadata,
                    "hybrid_match": True,
                },
            }
        )

    ranked = sorted(combined.values(), key=lambda result: result.score, reverse=True)
    return ranked[:limit]


def fusion_key(result: SearchResult) -> tuple[str, int]:
    return result.locator, result.chunk_index
