import json
import logging
from typing import List, Optional

from agent_relay.schemas.events import (
    ClaudeErrorEvent,
    ClaudeOutputEvent,
    ClaudeResponseEvent,
    SessionCreatedEvent,
)
from agent_relay.services.session_registry import ProcessRecord, SessionRegistry
from agent_relay.websocket.manager import RelayChannel

logger = logging.getLogger(__name__)


class LineBuffer:
    """Split a byte stream on newlines, holding a partial line between chunks."""

    def __init__(self) -> None:
        self._pending = b""

    def feed(self, chunk: bytes) -> List[str]:
        data = self._pending + chunk
        *complete, self._pending = data.split(b"\n")
        return [line for line in map(_decode_line, complete) if line.strip()]

    def flush(self) -> List[str]:
        data, self._pending = self._pending, b""
        line = _decode_line(data)
        return [line] if line.strip() else []


def _decode_line(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").rstrip("\r")


class StreamDemultiplexer:
    """Turn claude stdout/stderr into relay events for one process."""

    def __init__(
        self,
        record: ProcessRecord,
        channel: RelayChannel,
        registry: SessionRegistry,
        caller_session_id: Optional[str] = None,
    ) -> None:
        self.record = record
        self.channel = channel
        self.registry = registry
        self.caller_session_id = caller_session_id
        self._stdout = LineBuffer()

    async def feed_stdout(self, chunk: bytes) -> None:
        for line in self._stdout.feed(chunk):
            await self._publish_line(line)

    async def finish_stdout(self) -> None:
        for line in self._stdout.flush():
            await self._publish_line(line)

    async def feed_stderr(self, chunk: bytes) -> None:
        text = chunk.decode("utf-8", errors="replace")
        if not text:
            return
        logger.warning("claude stderr [%s]: %s", self.record.key, text.rstrip())
        await self.channel.send(ClaudeErrorEvent(error=text))

    async def _publish_line(self, line: str) -> None:
        try:
            response = json.loads(line)
        except ValueError:
            response = None
        if not isinstance(response, dict):
            await self.channel.send(ClaudeOutputEvent(data=line))
            return

        session_id = response.get("session_id")
        if session_id and not self.record.captured_session_id:
            await self._capture_session(str(session_id))
        await self.channel.send(ClaudeResponseEvent(data=response))

    async def _capture_session(self, session_id: str) -> None:
        record = self.record
        record.captured_session_id = session_id
        logger.info("captured claude session id %s", session_id)
        self.registry.rekey(record.key, session_id, record)
        if not self.caller_session_id and not record.session_created_sent:
            record.session_created_sent = True
            await self.channel.send(SessionCreatedEvent(session_id=session_id))
