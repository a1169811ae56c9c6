import time
from typing import Any, Dict

from fastapi import APIRouter, Depends

from agent_relay.api.deps import verify_token
from agent_relay.services.session_registry import registry
from agent_relay.websocket.manager import manager

router = APIRouter()

started_at = time.time()


@router.get("/status")
async def status(_: None = Depends(verify_token)) -> Dict[str, Any]:
    return {
        "uptime_sec": int(time.time() - started_at),
        "sessions": {"active": len(registry)},
        "connections": len(manager.connections),
    }
