from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from formpilot.api.deps import get_db, get_manager
from formpilot.api.schemas import (
    ApplicationLogResponse,
    BulkRunRecordResponse,
    StartBulkRequest,
    StartBulkResponse,
    StartSessionRequest,
    StartSessionResponse,
)
from formpilot.core.bulk import BulkRunError
from formpilot.core.manager import SessionManager
from formpilot.core.runtime import get_event_bus
from formpilot.core.session import InvalidTransitionError
from formpilot.db.repositories import Repository
from formpilot.types import BulkRunProgress, SessionSnapshot

router = APIRouter(prefix="/api", tags=["api"])


@router.post("/sessions", response_model=StartSessionResponse)
async def start_session(
    payload: StartSessionRequest,
    manager: SessionManager = Depends(get_manager),
) -> StartSessionResponse:
    try:
        session_id = await manager.start_session(
            payload.job_url,
            payload.profile,
            resume_path=payload.resume_path,
            cover_letter_path=payload.cover_letter_path,
            auto_submit=payload.auto_submit,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return StartSessionResponse(session_id=session_id)


@router.get("/sessions/{session_id}", response_model=SessionSnapshot)
def get_session(session_id: str, manager: SessionManager = Depends(get_manager)) -> SessionSnapshot:
    try:
        return manager.poll_session(session_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Session not found") from exc


@router.post("/sessions/{session_id}/submit", response_model=SessionSnapshot)
async def submit_session(session_id: str, manager: SessionManager = Depends(get_manager)) -> SessionSnapshot:
    try:
        return await manager.submit_now(session_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Session not found") from exc
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@router.post("/sessions/{session_id}/cancel", response_model=SessionSnapshot)
async def cancel_session(session_id: str, manager: SessionManager = Depends(get_manager)) -> SessionSnapshot:
    try:
        return await manager.cancel_session(session_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Session not found") from exc


@router.post("/bulk", response_model=StartBulkResponse)
async def start_bulk(payload: StartBulkRequest, manager: SessionManager = Depends(get_manager)) -> StartBulkResponse:
    try:
        batch_id = await manager.start_bulk(
            payload.job_urls,
            payload.profile,
            payload.resume_file,
            payload.cover_letter_file,
        )
    except BulkRunError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return StartBulkResponse(batch_id=batch_id)


@router.get("/bulk", response_model=list[BulkRunRecordResponse])
def list_bulk_runs(limit: int = 20, db: Session = Depends(get_db)) -> list[BulkRunRecordResponse]:
    rows = Repository(db).list_bulk_runs(limit=limit)
    return [
        BulkRunRecordResponse(
            batch_id=row.batch_id,
            total_jobs=row.total_jobs,
            completed_jobs=row.completed_jobs,
            successful_jobs=row.successful_jobs,
            failed_jobs=row.failed_jobs,
            failed_urls=row.failed_urls_json,
            is_complete=row.is_complete,
            message=row.message,
            created_at=row.created_at.isoformat() if row.created_at else None,
            completed_at=row.completed_at.isoformat() if row.completed_at else None,
        )
        for row in rows
    ]


@router.get("/bulk/{batch_id}", response_model=BulkRunProgress)
def get_bulk(batch_id: str, manager: SessionManager = Depends(get_manager)) -> BulkRunProgress:
    try:
        return manager.bulk_progress(batch_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Bulk run not found") from exc


@router.post("/bulk/{batch_id}/pause", response_model=BulkRunProgress)
def pause_bulk(batch_id: str, manager: SessionManager = Depends(get_manager)) -> BulkRunProgress:
    try:
        return manager.pause_bulk(batch_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Bulk run not found") from exc


@router.post("/bulk/{batch_id}/resume", response_model=BulkRunProgress)
async def resume_bulk(batch_id: str, manager: SessionManager = Depends(get_manager)) -> BulkRunProgress:
    try:
        return await manager.resume_bulk(batch_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Bulk run not found") from exc


@router.post("/bulk/{batch_id}/retry", response_model=BulkRunProgress)
async def retry_bulk(batch_id: str, manager: SessionManager = Depends(get_manager)) -> BulkRunProgress:
    try:
        return await manager.retry_bulk(batch_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Bulk run not found") from exc
    except BulkRunError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/applications", response_model=list[ApplicationLogResponse])
def list_applications(
    limit: int = 50,
    state: str | None = None,
    db: Session = Depends(get_db),
) -> list[ApplicationLogResponse]:
    rows = Repository(db).list_applications(limit=limit, state=state)
    return [
        ApplicationLogResponse(
            id=row.id,
            session_id=row.session_id,
            job_url=row.job_url,
            domain=row.domain,
            platform=row.platform,
            title=row.title,
            company=row.company,
            state=row.state,
            message=row.message,
            filled_count=row.filled_count,
            failed_count=row.failed_count,
            fill_result_json=row.fill_result_json,
            screenshot_path=row.screenshot_path,
            created_at=row.created_at.isoformat() if row.created_at else None,
        )
        for row in rows
    ]


@router.websocket("/sessions/{session_id}/stream")
async def stream_session_events(websocket: WebSocket, session_id: str) -> None:
    await _stream(websocket, session_id)


@router.websocket("/bulk/{batch_id}/stream")
async def stream_bulk_events(websocket: WebSocket, batch_id: str) -> None:
    await _stream(websocket, batch_id)


async def _stream(websocket: WebSocket, channel: str) -> None:
    await websocket.accept()
    event_bus = get_event_bus()
    try:
        async for event in event_bus.subscribe(channel):
            await websocket.send_json(event)
    except WebSocketDisconnect:
        return
