from __future__ import annotations

import pytest

from knowledge_fusion.config import AppConfig


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    return AppConfig(
        project_name="Demo Project",
        project_root=str(tmp_path),
        tool_root=str(tmp_path),
        vector_server="qdrant",
        graph_server="neo4j-agent-memory",
        embedding_service="ollama",
        default_limit=10,
        similarity_threshold=0.7,
        code_similarity_threshold=0.6,
        hybrid_semantic_limit=20,
        graph_limit=5,
        graph_depth=1,
        neo4j_uri="bolt://localhost:7687",
        neo4j_username="neo4j",
        neo4j_password="secret",
        qdrant_url="http://localhost:6333",
        postgres_connection_string="postgresql://localhost:5432/dev",
        redis_url="redis://localhost:6379",
    )
