import os
from dataclasses import dataclass
from typing import List, Optional

from agent_relay.core.config import CLAUDE_DEFAULT_MODEL
from agent_relay.schemas.claude import ClaudeCommandOptions, PermissionMode

PLAN_MODE_TOOLS = ("Read", "Task", "exit_plan_mode", "TodoRead", "TodoWrite")


@dataclass
class ClaudeInvocation:
    args: List[str]
    cwd: str
    is_directive: bool
    # None keeps stdin open, "" closes it without writing.
    stdin_payload: Optional[str]


def is_directive(command: Optional[str]) -> bool:
    return bool(command) and command.strip().startswith("/")


def effective_allowed_tools(options: ClaudeCommandOptions) -> List[str]:
    allowed = list(options.tools_settings.allowed_tools)
    if options.permission_mode == PermissionMode.plan:
        for tool in PLAN_MODE_TOOLS:
            if tool not in allowed:
                allowed.append(tool)
    return allowed


def build_claude_args(
    command: Optional[str],
    options: ClaudeCommandOptions,
    mcp_config_path: Optional[str] = None,
) -> ClaudeInvocation:
    """Translate a command request into the claude CLI argument vector.

    ``command`` must already carry any attachment note. Directives (text
    starting with ``/``) travel over stdin and never resume a session.
    """
    directive = is_directive(command)
    has_text = bool(command and command.strip())
    args: List[str] = []

    if has_text and not directive:
        args.extend(["--print", command])

    cwd = options.cwd or os.getcwd()

    if options.resume and options.session_id and not directive:
        args.extend(["--resume", options.session_id])

    args.extend(["--output-format", "stream-json", "--verbose"])

    if mcp_config_path:
        args.extend(["--mcp-config", mcp_config_path])

    if not options.resume or directive:
        args.extend(["--model", CLAUDE_DEFAULT_MODEL])

    mode = options.permission_mode
    if mode is not None and mode != PermissionMode.default:
        args.extend(["--permission-mode", mode.value])

    settings = options.tools_settings
    if settings.skip_permissions and mode != PermissionMode.plan:
        args.append("--dangerously-skip-permissions")
    else:
        for tool in effective_allowed_tools(options):
            args.extend(["--allowedTools", tool])
        for tool in settings.disallowed_tools:
            args.extend(["--disallowedTools", tool])

    if directive:
        stdin_payload: Optional[str] = f"{command}\n"
    elif command:
        stdin_payload = ""
    else:
        stdin_payload = None

    return ClaudeInvocation(
        args=args, cwd=cwd, is_directive=directive, stdin_payload=stdin_payload
    )
