"""FastAPI application setup for PDF Knowledge."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pdf_knowledge.api.dependencies import (
    get_app_settings,
    get_ingest_pipeline,
    get_session_service,
)
from pdf_knowledge.api.routes_admin import router as admin_router
from pdf_knowledge.api.routes_query import router as query_router
from pdf_knowledge.api.routes_sessions import router as sessions_router
from pdf_knowledge.core.errors import ExtractionError, InputError, SessionNotFoundError
from pdf_knowledge.core.logging import configure_logging
from pdf_knowledge.core.metrics import REQUEST_COUNT

configure_logging()

app = FastAPI(
    title="PDF Knowledge",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://127.0.0.1:5174",
        "http://localhost:5174",
    ],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(sessions_router, prefix="/sessions", tags=["sessions"])
app.include_router(query_router, prefix="/sessions", tags=["query"])
app.include_router(admin_router, prefix="", tags=["admin"])


@app.middleware("http")
async def count_requests(request: Request, call_next):
    response = await call_next(request)
    route = request.scope.get("route")
    endpoint = getattr(route, "path", "unmatched")
    REQUEST_COUNT.labels(endpoint=endpoint, method=request.method, status=str(response.status_code)).inc()
    return response


@app.exception_handler(SessionNotFoundError)
async def session_not_found(_: Request, exc: SessionNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc), "session_id": exc.session_id})


@app.exception_handler(InputError)
async def invalid_input(_: Request, exc: InputError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(ExtractionError)
async def extraction_failed(_: Request, exc: ExtractionError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.on_event("startup")
async def startup() -> None:
    """Warm up core singletons on startup."""
    get_app_settings()
    get_session_service()
    get_ingest_pipeline()
