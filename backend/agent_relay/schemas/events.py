"""Events relayed to the client while a claude process runs."""

from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class RelayEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_message(self) -> Dict[str, Any]:
        message = self.model_dump(by_alias=True)
        return {key: value for key, value in message.items() if value is not None}


class SessionCreatedEvent(RelayEvent):
    type: Literal["session-created"] = "session-created"
    session_id: str = Field(..., alias="sessionId")


class ClaudeResponseEvent(RelayEvent):
    type: Literal["claude-response"] = "claude-response"
    data: Dict[str, Any]


class ClaudeOutputEvent(RelayEvent):
    type: Literal["claude-output"] = "claude-output"
    data: str


class ClaudeErrorEvent(RelayEvent):
    type: Literal["claude-error"] = "claude-error"
    error: str
    exit_code: Optional[Union[int, str]] = Field(default=None, alias="exitCode")


class ClaudeCompleteEvent(RelayEvent):
    type: Literal["claude-complete"] = "claude-complete"
    exit_code: int = Field(..., alias="exitCode")
    is_new_session: bool = Field(..., alias="isNewSession")


class SessionAbortedEvent(RelayEvent):
    type: Literal["session-aborted"] = "session-aborted"
    session_id: str = Field(..., alias="sessionId")
    success: bool


class RelayErrorEvent(RelayEvent):
    type: Literal["error"] = "error"
    error: str
