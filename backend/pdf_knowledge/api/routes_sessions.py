"""Session lifecycle API routes."""

from __future__ import annotations

from dataclasses import asdict
from datetime import timedelta

from fastapi import APIRouter, Depends, File, Form, UploadFile

from pdf_knowledge.api.dependencies import get_ingest_pipeline, get_session_service
from pdf_knowledge.ingest.pipeline import IngestPipeline
from pdf_knowledge.models.dto import (
    DeleteResponse,
    ExtendRequest,
    ExtendResponse,
    SessionListResponse,
    SessionResponse,
)
from pdf_knowledge.models.entities import Session
from pdf_knowledge.sessions.service import KnowledgeSessionService

router = APIRouter()


def session_response(session: Session) -> SessionResponse:
    return SessionResponse.model_validate(asdict(session))


@router.post("", response_model=SessionResponse, status_code=201, summary="Upload a PDF and build a knowledge base")
def create_session(
    file: UploadFile = File(...),
    ttl_minutes: int | None = Form(default=None),
    pipeline: IngestPipeline = Depends(get_ingest_pipeline),
    service: KnowledgeSessionService = Depends(get_session_service),
) -> SessionResponse:
    data = file.file.read()
    ttl = timedelta(minutes=ttl_minutes) if ttl_minutes is not None else None
    result = pipeline.build(data, file.filename or "document.pdf", ttl=ttl)
    return session_response(service.get_info(result.session_id))


@router.get("", response_model=SessionListResponse, summary="List active sessions")
def list_sessions(service: KnowledgeSessionService = Depends(get_session_service)) -> SessionListResponse:
    return SessionListResponse(sessions=[session_response(session) for session in service.list_active()])


@router.get("/{session_id}", response_model=SessionResponse, summary="Session details and statistics")
def get_session(session_id: str, service: KnowledgeSessionService = Depends(get_session_service)) -> SessionResponse:
    return session_response(service.get_info(session_id))


@router.post("/{session_id}/extend", response_model=ExtendResponse, summary="Push back a session's expiry")
def extend_session(
    session_id: str,
    request: ExtendRequest,
    service: KnowledgeSessionService = Depends(get_session_service),
) -> ExtendResponse:
    extended = service.extend(session_id, timedelta(minutes=request.minutes))
    if not extended:
        return ExtendResponse(extended=False)
    return ExtendResponse(extended=True, expires_at=service.get_info(session_id).expires_at)


@router.delete("/{session_id}", response_model=DeleteResponse, summary="Discard a session")
def delete_session(session_id: str, service: KnowledgeSessionService = Depends(get_session_service)) -> DeleteResponse:
    return DeleteResponse(deleted=service.delete(session_id))
