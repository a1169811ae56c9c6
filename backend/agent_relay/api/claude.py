from fastapi import APIRouter, Depends, HTTPException

from agent_relay.api.deps import verify_token
from agent_relay.core.logging import logger
from agent_relay.schemas.claude import AbortResponse, SessionInfo, SessionsResponse
from agent_relay.schemas.events import SessionAbortedEvent
from agent_relay.services.claude import abort_claude_session
from agent_relay.services.session_registry import ProcessRecord, registry
from agent_relay.websocket.manager import manager

router = APIRouter(prefix="/claude")


def _session_info(session_id: str, record: ProcessRecord) -> SessionInfo:
    return SessionInfo(
        session_id=session_id,
        state=record.state.value,
        pid=record.process.pid,
        has_output=record.has_output,
    )


@router.get("/sessions", response_model=SessionsResponse)
async def list_sessions(_: None = Depends(verify_token)) -> SessionsResponse:
    return SessionsResponse(
        sessions=[_session_info(key, record) for key, record in registry.items()]
    )


@router.get("/sessions/{session_id}", response_model=SessionInfo)
async def get_session(session_id: str, _: None = Depends(verify_token)) -> SessionInfo:
    record = registry.lookup(session_id)
    if record is None:
        raise HTTPException(status_code=404, detail="session not found")
    return _session_info(session_id, record)


@router.post("/sessions/{session_id}/abort", response_model=AbortResponse)
async def abort_session(
    session_id: str, _: None = Depends(verify_token)
) -> AbortResponse:
    success = abort_claude_session(session_id)
    logger.info("abort requested for %s (success=%s)", session_id, success)
    await manager.broadcast(
        SessionAbortedEvent(session_id=session_id, success=success).to_message()
    )
    return AbortResponse(session_id=session_id, success=success)
