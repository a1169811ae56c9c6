from typing import Any, Dict

from fastapi import APIRouter, Depends

from agent_relay.api.deps import verify_token
from agent_relay.utils.time import utc_now

router = APIRouter()


@router.get("/health")
async def health(_: None = Depends(verify_token)) -> Dict[str, Any]:
    return {"status": "ok", "time": utc_now()}
