import asyncio
import json
from typing import Any, Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from agent_relay.api.deps import verify_ws_token
from agent_relay.core.logging import logger
from agent_relay.schemas.claude import AbortSessionMessage, ClaudeCommandMessage
from agent_relay.schemas.events import (
    ClaudeErrorEvent,
    RelayErrorEvent,
    SessionAbortedEvent,
)
from agent_relay.services.claude import (
    ClaudeProcessError,
    abort_claude_session,
    spawn_claude,
)
from agent_relay.utils.time import utc_now
from agent_relay.websocket.manager import RelayChannel, manager

router = APIRouter()

command_tasks: Set[asyncio.Task] = set()


async def run_command(message: ClaudeCommandMessage, channel: RelayChannel) -> None:
    try:
        await spawn_claude(message.command, message.options, channel)
    except ClaudeProcessError as exc:
        logger.info("claude command ended: %s (exit code %s)", exc, exc.exit_code)
    except Exception as exc:  # pragma: no cover - safety net
        logger.exception("claude command failed unexpectedly")
        await channel.send(ClaudeErrorEvent(error=str(exc)))


async def handle_message(payload: Any, channel: RelayChannel) -> None:
    kind = payload.get("type") if isinstance(payload, dict) else None
    try:
        if kind == "claude-command":
            message = ClaudeCommandMessage.model_validate(payload)
            logger.info("claude command received (session=%s)", message.options.session_id)
            task = asyncio.create_task(run_command(message, channel))
            command_tasks.add(task)
            task.add_done_callback(command_tasks.discard)
        elif kind == "abort-session":
            abort = AbortSessionMessage.model_validate(payload)
            success = abort_claude_session(abort.session_id)
            await channel.send(
                SessionAbortedEvent(session_id=abort.session_id, success=success)
            )
        else:
            await channel.send(RelayErrorEvent(error=f"unknown message type: {kind}"))
    except ValidationError as exc:
        logger.warning("invalid %s message: %s", kind, exc)
        await channel.send(RelayErrorEvent(error=f"invalid {kind} message"))


@router.websocket("/ws")
async def relay(websocket: WebSocket) -> None:
    if not await verify_ws_token(websocket):
        return
    channel = await manager.connect(websocket)
    await websocket.send_json({"type": "connected", "timestamp": utc_now()})
    try:
        while True:
            text = await websocket.receive_text()
            try:
                payload = json.loads(text)
            except ValueError:
                await channel.send(RelayErrorEvent(error="message is not valid json"))
                continue
            await handle_message(payload, channel)
    except WebSocketDisconnect:
        manager.disconnect(websocket)
        channel.closed = True
