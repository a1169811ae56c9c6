from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class PermissionMode(str, Enum):
    default = "default"
    accept_edits = "acceptEdits"
    bypass_permissions = "bypassPermissions"
    plan = "plan"


class ImageAttachment(BaseModel):
    data: str = Field(..., description="Inline data URI: data:<mime>;base64,<payload>.")
    name: Optional[str] = None


class ToolsSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    allowed_tools: List[str] = Field(default_factory=list, alias="allowedTools")
    disallowed_tools: List[str] = Field(default_factory=list, alias="disallowedTools")
    skip_permissions: bool = Field(default=False, alias="skipPermissions")


class ClaudeCommandOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(default=None, alias="sessionId")
    cwd: Optional[str] = None
    project_path: Optional[str] = Field(default=None, alias="projectPath")
    resume: bool = False
    tools_settings: ToolsSettings = Field(
        default_factory=ToolsSettings, alias="toolsSettings"
    )
    permission_mode: Optional[PermissionMode] = Field(
        default=None, alias="permissionMode"
    )
    images: List[ImageAttachment] = Field(default_factory=list)


class ClaudeCommandMessage(BaseModel):
    type: Literal["claude-command"] = "claude-command"
    command: str = ""
    options: ClaudeCommandOptions = Field(default_factory=ClaudeCommandOptions)


class AbortSessionMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["abort-session"] = "abort-session"
    session_id: str = Field(..., alias="sessionId")


class SessionInfo(BaseModel):
    session_id: str
    state: str
    pid: Optional[int] = None
    has_output: bool = False


class SessionsResponse(BaseModel):
    sessions: List[SessionInfo]


class AbortResponse(BaseModel):
    session_id: str
    success: bool
