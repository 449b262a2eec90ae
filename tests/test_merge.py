import pytest

from knowledge_fusion.models import SearchResult
from knowledge_fusion.retrievers.merge import fuse_results


def _result(locator: str, score: float, **overrides: object) -> SearchResult:
    return SearchResult(
        content=f"content of {locator}",
        locator=locator,
        score=score,
        **overrides,
    )


def test_fuse_results_boosts_semantic_scores() -> None:
    fused = fuse_results([_result("a.ts", 0.5)], [])

    assert fused[0].score == pytest.approx(0.6)


def test_fuse_results_merges_items_found_by_both_paths() -> None:
    semantic = [_result("x", 0.6, metadata={"lang": "ts"})]
    graph = [
        _result("other", 0.8, chunk_type="graph_entity", metadata={"source": "neo4j"}),
        _result("x", 0.7, chunk_type="graph_entity", metadata={"source": "neo4j"}),
    ]

    fused = fuse_results(semantic, graph)

    merged = [result for result in fused if result.locator == "x"]
    assert len(merged) == 1
    assert merged[0].score == pytest.approx(min(1.0, 0.6 * 1.2 + 0.7 * 0.3))
    assert merged[0].score == pytest.approx(0.93)
    assert merged[0].metadata == {"lang": "ts", "source": "neo4j", "hybrid_match": True}


def test_fuse_results_caps_cross_match_boost() -> None:
    fused = fuse_results([_result("a", 0.9)], [_result("a", 0.8)])

    assert fused[0].score == 1.0


def test_fuse_results_keys_on_locator_and_chunk_index() -> None:
    fused = fuse_results(
        [_result("doc.md", 0.8, chunk_index=1)],
        [_result("doc.md", 0.8, chunk_index=0)],
    )

    assert len(fused) == 2
    assert all("hybrid_match" not in result.metadata for result in fused)


def test_fuse_results_sorts_by_score_and_truncates() -> None:
    semantic = [_result(f"s{index}", 0.7 + index * 0.01) for index in range(8)]
    graph = [_result(f"g{index}", 0.8 - index * 0.1) for index in range(5)]

    fused = fuse_results(semantic, graph, limit=6)

    assert len(fused) == 6
    scores = [result.score for result in fused]
    assert scores == sorted(scores, reverse=True)


def test_fuse_results_keeps_retrieval_order_for_ties() -> None:
    fused = fuse_results([], [_result("first", 0.5), _result("second", 0.5)])

    assert [result.locator for result in fused] == ["first", "second"]


def test_fuse_results_does_not_mutate_inputs() -> None:
    semantic = [_result("a", 0.5)]

    fuse_results(semantic, [_result("a", 0.5)])

    assert semantic[0].score == 0.5
    assert semantic[0].metadata == {}
