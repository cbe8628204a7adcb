"""Administrative routes for PDF Knowledge."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from pdf_knowledge.api.dependencies import get_openai_client, get_session_cache
from pdf_knowledge.clients.openai import OpenAIClient
from pdf_knowledge.core.metrics import metrics_response
from pdf_knowledge.sessions.cache import SessionCache

router = APIRouter()


@router.get("/health", summary="Liveness check")
def health(
    cache: SessionCache = Depends(get_session_cache),
    client: OpenAIClient = Depends(get_openai_client),
) -> dict[str, object]:
    return {
        "ok": True,
        "sessions": len(cache),
        "generation_configured": client.is_configured(),
    }


@router.get("/metrics", summary="Prometheus metrics")
async def get_metrics():
    return metrics_response()
