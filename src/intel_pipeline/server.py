"""
HTTP API - Thin FastAPI layer over RunService.

Endpoints:
----------
GET  /api/health
GET  /api/dynamic?q=...&depth=2&skip_duplicates=true          batch start
GET  /api/dynamic?q=...&stream=true                            server-sent events
GET  /api/pipeline?id=<execution_id>                           poll
GET  /api/pipeline                                             list stored runs
GET  /api/pipeline/steps?pipeline_id=<execution_id>
POST /api/pipeline/{execution_id}/resume
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from . import __version__
from .core.run_service import RunService
from .core.streaming import EVENT_COMPLETE, PipelineStream
from .errors import ConfigError, PersistenceError, ResultNotFoundError


logger = logging.getLogger(__name__)

router = APIRouter(tags=["pipeline"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def get_service(request: Request) -> RunService:
    return request.app.state.service


async def _event_source(request: Request, stream: PipelineStream):
    """Relay stream events as SSE; a client disconnect cancels the run."""
    try:
        while True:
            if await request.is_disconnected():
                logger.info(f"Client disconnected from stream {stream.execution_id}")
                break
            event = await run_in_threadpool(stream.next_event, 0.5)
            if event is None:
                if stream.finished:
                    break
                continue
            yield event.to_sse()
            if event.event == EVENT_COMPLETE:
                break
    finally:
        stream.close()


@router.api_route("/dynamic", methods=["GET", "POST"])
async def dynamic_pipeline(
    request: Request,
    q: str = Query("", description="Seed query"),
    depth: Optional[int] = Query(None, description="Maximum expansion depth"),
    skip_duplicates: Optional[bool] = Query(None),
    execution_id: Optional[str] = Query(None),
    stream: bool = Query(False, description="Stream steps as server-sent events"),
    service: RunService = Depends(get_service),
):
    """Start a dynamic pipeline run in batch or streaming mode."""
    if stream:
        pipeline_stream = service.stream_run(q, depth, skip_duplicates, execution_id=execution_id)
        return StreamingResponse(
            _event_source(request, pipeline_stream),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    run_id = await run_in_threadpool(service.start_run, q, depth, skip_duplicates, execution_id)
    return {
        "execution_id": run_id,
        "message": "Pipeline execution started in background",
        "status": "processing",
    }


@router.get("/pipeline")
def get_pipeline(
    id: Optional[str] = Query(None, description="Execution id"),
    offset: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    service: RunService = Depends(get_service),
):
    """Poll one run by id, or list stored runs."""
    if id:
        return service.poll(id)
    return service.list_runs(offset=offset, limit=limit)


@router.get("/pipeline/steps")
def get_pipeline_steps(
    pipeline_id: str = Query(..., description="Execution id"),
    service: RunService = Depends(get_service),
):
    """Steps of a stored run."""
    return service.steps(pipeline_id)


@router.post("/pipeline/{execution_id}/resume")
def resume_pipeline(execution_id: str, service: RunService = Depends(get_service)):
    """Continue a stored run, reusing its recorded steps."""
    run_id = service.resume_run(execution_id)
    return {
        "execution_id": run_id,
        "message": "Pipeline resume started in background",
        "status": "processing",
    }


def create_app(service: RunService, cors_origins: Optional[list] = None) -> FastAPI:
    """Build the FastAPI application around a RunService."""
    app = FastAPI(
        title="Intel Pipeline",
        version=__version__,
        description="Keyword-driven public-record search pipeline",
    )
    app.state.service = service

    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.exception_handler(ConfigError)
    async def config_error_handler(request: Request, exc: ConfigError):
        return JSONResponse(status_code=400, content={"success": False, "error": str(exc)})

    @app.exception_handler(ResultNotFoundError)
    async def not_found_handler(request: Request, exc: ResultNotFoundError):
        return JSONResponse(status_code=404, content={"success": False, "error": str(exc)})

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError):
        logger.error(f"Persistence error on {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})

    app.include_router(router, prefix="/api")

    @app.on_event("shutdown")
    def shutdown():
        service.close()

    @app.get("/api/health")
    def health_check():
        """Health check endpoint."""
        return {
            "status": "ok",
            "version": __version__,
            "domains": service.registry.domains(),
            "active_runs": len(service.active_runs()),
        }

    return app
