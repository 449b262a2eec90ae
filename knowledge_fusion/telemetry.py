from __future__ import annotations

import json
import logging
from typing import Any

DEFAULT_TELEMETRY_TAG = "knowledge-search"


def build_search_event(
    operation: str,
    query: str,
    result_count: int,
    request_id: str,
) -> dict[str, Any]:
    return {
        "tag": DEFAULT_TELEMETRY_TAG,
        "request_id": request_id,
        "operation": operation,
        "query": query,
        "result_count": result_count,
    }


def emit_search_telemetry(
    event: dict[str, Any],
    logger: logging.Logger | None = None,
) -> None:
    active_logger = logger or logging.getLogger(__name__)
    active_logger.info("search_event %s", json.dumps(event, sort_keys=True))
