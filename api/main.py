from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from deep_web_research import __version__
from deep_web_research.core.errors import BotChallengeError, DeepResearchError, InputValidationError
from deep_web_research.observability.prometheus_metrics import attach_metrics
from deep_web_research.search import QueueEventType
from deep_web_research.service import (
    CancelSearchRequest,
    DeepResearchRequest,
    ParallelSearchRequest,
    QueueSearchRequest,
    ResearchService,
    VisitPageRequest,
)
from deep_web_research.utils import configure_logging, get_logger

logger = get_logger(__name__)


def create_app(service: ResearchService | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging()
        app.state.service = service or ResearchService()
        logger.info("api.startup", version=__version__)
        try:
            yield
        finally:
            await app.state.service.close()
            logger.info("api.shutdown")

    app = FastAPI(title="Deep Web Research API", version=__version__, lifespan=lifespan)

    # Attach Prometheus /metrics endpoint to FastAPI app
    attach_metrics(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InputValidationError)
    async def _invalid_input(request: Request, exc: InputValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"error": str(exc)})

    @app.exception_handler(BotChallengeError)
    async def _bot_challenge(request: Request, exc: BotChallengeError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"error": str(exc)})

    @app.exception_handler(DeepResearchError)
    async def _upstream_failure(request: Request, exc: DeepResearchError) -> JSONResponse:
        logger.warning("api.upstream_error", path=request.url.path, error=str(exc), kind=exc.__class__.__name__)
        return JSONResponse(status_code=502, content={"error": str(exc)})

    def _service(request: Request) -> ResearchService:
        return request.app.state.service

    @app.get("/api/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    @app.post("/api/research")
    async def deep_research(req: DeepResearchRequest, request: Request) -> dict[str, Any]:
        return await _service(request).deep_research(**req.model_dump())

    @app.get("/api/research/{session_id}")
    async def session_status(session_id: str, request: Request) -> dict[str, Any]:
        status = _service(request).get_session_status(session_id)
        if status is None:
            raise HTTPException(status_code=404, detail="Unknown or finished research session")
        return status

    @app.post("/api/search")
    async def parallel_search(req: ParallelSearchRequest, request: Request) -> dict[str, Any]:
        return await _service(request).parallel_search(req.queries, req.max_parallel)

    @app.post("/api/visit")
    async def visit_page(req: VisitPageRequest, request: Request) -> dict[str, str]:
        return await _service(request).visit_page(req.url)

    @app.get("/api/queue")
    async def queue_status(request: Request) -> dict[str, Any]:
        return _service(request).get_queue_status()

    @app.post("/api/queue")
    async def queue_search(req: QueueSearchRequest, request: Request) -> dict[str, list[str]]:
        return {"ids": await _service(request).queue_search(req.queries)}

    @app.post("/api/queue/cancel")
    async def cancel_search(req: CancelSearchRequest, request: Request) -> dict[str, bool]:
        return {"success": _service(request).cancel_search(req.search_id)}

    @app.websocket("/ws/queue")
    async def queue_events(websocket: WebSocket) -> None:
        await websocket.accept()
        queue = websocket.app.state.service.queue
        channel = queue.subscribe()
        try:
            await websocket.send_json({"type": "snapshot", "snapshot": queue.get_status().to_dict()})
            # streams until the queue drains; an idle queue only gets the snapshot
            while queue.is_running or not channel.empty():
                event = await channel.get()
                await websocket.send_json(event.to_dict())
                if event.type is QueueEventType.QUEUE_COMPLETED:
                    break
            await websocket.close()
        except WebSocketDisconnect:
            pass
        finally:
            queue.unsubscribe(channel)

    return app


app = create_app()
