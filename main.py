from __future__ import annotations

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse, RedirectResponse

from knowledge_fusion.config import (
    load_config,
    load_server_configs,
    with_project_name,
)
from knowledge_fusion.errors import KnowledgeFusionError, SearchError
from knowledge_fusion.models import CodeSearchRequest, SearchRequest, SearchResponse
from knowledge_fusion.readiness import build_readiness_report
from knowledge_fusion.service import KnowledgeService

app = FastAPI(title="Knowledge Fusion", version="0.1.0")


@app.exception_handler(KnowledgeFusionError)
async def knowledge_error_handler(
    request: Request, exc: KnowledgeFusionError
) -> JSONResponse:
    _ = request
    content: dict[str, object] = {"error": exc.__class__.__name__, "detail": str(exc)}
    if isinstance(exc, SearchError):
        content["operation"] = exc.operation
    return JSONResponse(content=content, status_code=502)


@app.get("/")
async def root() -> RedirectResponse:
    return RedirectResponse(url="/docs", status_code=307)


@app.get("/health")
async def health() -> dict[str, bool]:
    return {"ok": True}


@app.get("/ready")
async def readiness() -> JSONResponse:
    config = load_config()
    report = build_readiness_report(config, load_server_configs(config))
    status_code = 200 if bool(report.get("ready")) else 503
    return JSONResponse(content=report, status_code=status_code)


@app.post("/api/search")
async def search(
    payload: SearchRequest,
    x_project_name: str | None = Header(default=None, alias="X-Project-Name"),
) -> JSONResponse:
    return await _run_search(payload, hybrid=False, project_name=x_project_name)


@app.post("/api/search/hybrid")
async def hybrid_search(
    payload: SearchRequest,
    x_project_name: str | None = Header(default=None, alias="X-Project-Name"),
) -> JSONResponse:
    return await _run_search(payload, hybrid=True, project_name=x_project_name)


@app.post("/api/search/code")
async def code_search(
    payload: CodeSearchRequest,
    x_project_name: str | None = Header(default=None, alias="X-Project-Name"),
) -> JSONResponse:
    service = KnowledgeService(with_project_name(load_config(), x_project_name))
    try:
        results = await service.search_similar_code(
            payload.snippet, payload.language, payload.limit
        )
    finally:
        await service.close()
    response = SearchResponse(query=payload.snippet, mode="code", results=results)
    return JSONResponse(content=response.model_dump())


@app.get("/api/collections")
async def collections(
    x_project_name: str | None = Header(default=None, alias="X-Project-Name"),
) -> JSONResponse:
    service = KnowledgeService(with_project_name(load_config(), x_project_name))
    try:
        names = await service.list_collections()
    finally:
        await service.close()
    return JSONResponse(content={"collections": names})


@app.get("/api/collections/stats")
async def collection_stats(
    collection: str | None = None,
    x_project_name: str | None = Header(default=None, alias="X-Project-Name"),
) -> JSONResponse:
    service = KnowledgeService(with_project_name(load_config(), x_project_name))
    try:
        stats = await service.collection_stats(collection)
    finally:
        await service.close()
    return JSONResponse(content=stats)


@app.get("/api/tools")
async def tools() -> JSONResponse:
    service = KnowledgeService(load_config())
    try:
        listing = await service.list_tools()
    finally:
        await service.close()
    return JSONResponse(content={"servers": listing})


@app.get("/api/tools/status")
async def tools_status() -> JSONResponse:
    service = KnowledgeService(load_config())
    try:
        status = await service.connection_status()
    finally:
        await service.close()
    return JSONResponse(
        content={
            "servers": status,
            "connected": sum(1 for ok in status.values() if ok),
            "total": len(status),
        }
    )


async def _run_search(
    payload: SearchRequest,
    hybrid: bool,
    project_name: str | None,
) -> JSONResponse:
    service = KnowledgeService(with_project_name(load_config(), project_name))
    try:
        results = await service.search(
            payload.query, payload.to_options(), hybrid=hybrid
        )
    finally:
        await service.close()
    response = SearchResponse(
        query=payload.query,
        mode="hybrid" if hybrid else "semantic",
        results=results,
    )
    return JSONResponse(content=response.model_dump())
