from __future__ import annotations

import shutil
from typing import Any, Mapping

from knowledge_fusion.config import AppConfig, ServerConfig, collection_name


def build_readiness_report(
    config: AppConfig,
    server_configs: Mapping[str, ServerConfig],
) -> dict[str, Any]:
    vector = _server_readiness(config.vector_server, server_configs, required=True)
    graph = _server_readiness(config.graph_server, server_configs, required=False)
    return {
        "ready": bool(vector["ready"] and graph["ready"]),
        "connectors": {
            "vector": vector,
            "graph": graph,
        },
        "collection": collection_name(config),
        "embedding_service": config.embedding_service,
    }


def _server_readiness(
    server_name: str,
    server_configs: Mapping[str, ServerConfig],
    required: bool,
) -> dict[str, Any]:
    server_config = server_configs.get(server_name)
    if server_config is None:
        return _connector_readiness(
            server_name, required, f"missing_{server_name}_in_mcp_config"
        )
    if shutil.which(server_config.command) is None:
        return _connector_readiness(
            server_name, required, f"command_not_found_{server_config.command}"
        )
    return {
        "server": server_name,
        "ready": True,
        "mode": "configured",
        "reason": "command_available",
    }


def _connector_readiness(
    server_name: str,
    required: bool,
    missing_reason: str,
) -> dict[str, Any]:
    if required:
        return {
            "server": server_name,
            "ready": False,
            "mode": "misconfigured",
            "reason": missing_reason,
        }
    return {
        "server": server_name,
        "ready": True,
        "mode": "degraded",
        "reason": missing_reason,
    }
