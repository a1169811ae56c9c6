from fastapi import HTTPException, Request, WebSocket

from agent_relay.core.config import BACKEND_TOKEN


async def verify_token(request: Request) -> None:
    if BACKEND_TOKEN and request.headers.get("X-Backend-Token") != BACKEND_TOKEN:
        raise HTTPException(status_code=401, detail="unauthorized")


async def verify_ws_token(websocket: WebSocket) -> bool:
    if not BACKEND_TOKEN:
        return True
    token = websocket.headers.get("x-backend-token") or websocket.query_params.get(
        "token"
    )
    if token != BACKEND_TOKEN:
        await websocket.close(code=1008)
        return False
    return True
