import os

from agent_relay.schemas.claude import ClaudeCommandOptions, PermissionMode, ToolsSettings
from agent_relay.services.claude_args import PLAN_MODE_TOOLS, build_claude_args

TOOL_FLAGS = {"--allowedTools", "--disallowedTools"}


def _pairs(args, flag):
    return [args[i + 1] for i, arg in enumerate(args) if arg == flag]


def test_new_session_args_end_with_print_format_and_model():
    invocation = build_claude_args("list files", ClaudeCommandOptions())

    assert invocation.args == [
        "--print",
        "list files",
        "--output-format",
        "stream-json",
        "--verbose",
        "--model",
        "sonnet",
    ]
    assert invocation.cwd == os.getcwd()
    assert invocation.is_directive is False
    assert invocation.stdin_payload == ""


def test_directive_goes_to_stdin_and_never_resumes():
    options = ClaudeCommandOptions(resume=True, session_id="xyz", cwd="/work")
    invocation = build_claude_args("/compact", options)

    assert "--resume" not in invocation.args
    assert "--print" not in invocation.args
    assert _pairs(invocation.args, "--model") == ["sonnet"]
    assert invocation.stdin_payload == "/compact\n"
    assert invocation.is_directive is True
    assert invocation.cwd == "/work"


def test_resume_adds_session_and_skips_model():
    options = ClaudeCommandOptions(resume=True, session_id="abc123")
    invocation = build_claude_args("continue", options)

    assert _pairs(invocation.args, "--resume") == ["abc123"]
    assert "--model" not in invocation.args
    assert invocation.args.index("--resume") > invocation.args.index("--print")


def test_resume_without_session_id_is_ignored():
    invocation = build_claude_args("hi", ClaudeCommandOptions(resume=True))

    assert "--resume" not in invocation.args
    assert "--model" not in invocation.args


def test_command_text_is_one_argument():
    text = "line one\n  line two with  spaces\t\"quoted\""
    invocation = build_claude_args(text, ClaudeCommandOptions())

    assert invocation.args[:2] == ["--print", text]


def test_empty_command_keeps_stdin_open():
    invocation = build_claude_args("", ClaudeCommandOptions())

    assert "--print" not in invocation.args
    assert invocation.stdin_payload is None


def test_mcp_config_flag_only_when_path_given():
    without = build_claude_args("hi", ClaudeCommandOptions())
    with_config = build_claude_args(
        "hi", ClaudeCommandOptions(), mcp_config_path="/home/me/.claude.json"
    )

    assert "--mcp-config" not in without.args
    assert _pairs(with_config.args, "--mcp-config") == ["/home/me/.claude.json"]


def test_default_permission_mode_is_not_passed():
    options = ClaudeCommandOptions(permission_mode=PermissionMode.default)
    assert "--permission-mode" not in build_claude_args("hi", options).args

    options = ClaudeCommandOptions(permission_mode=PermissionMode.accept_edits)
    assert _pairs(build_claude_args("hi", options).args, "--permission-mode") == [
        "acceptEdits"
    ]


def test_skip_permissions_drops_tool_lists():
    options = ClaudeCommandOptions(
        tools_settings=ToolsSettings(
            allowed_tools=["Bash"], disallowed_tools=["Write"], skip_permissions=True
        )
    )
    args = build_claude_args("hi", options).args

    assert "--dangerously-skip-permissions" in args
    assert not TOOL_FLAGS.intersection(args)


def test_plan_mode_allows_default_tools_even_with_empty_list():
    options = ClaudeCommandOptions(permission_mode=PermissionMode.plan)
    args = build_claude_args("hi", options).args

    assert set(PLAN_MODE_TOOLS) <= set(_pairs(args, "--allowedTools"))
    assert _pairs(args, "--permission-mode") == ["plan"]


def test_plan_mode_ignores_skip_permissions_and_merges_lists():
    options = ClaudeCommandOptions(
        permission_mode=PermissionMode.plan,
        tools_settings=ToolsSettings(
            allowed_tools=["Bash", "Read"],
            disallowed_tools=["Write"],
            skip_permissions=True,
        ),
    )
    args = build_claude_args("hi", options).args

    assert "--dangerously-skip-permissions" not in args
    allowed = _pairs(args, "--allowedTools")
    assert allowed == ["Bash", "Read", "Task", "exit_plan_mode", "TodoRead", "TodoWrite"]
    assert _pairs(args, "--disallowedTools") == ["Write"]


def test_options_accept_camel_case_payload():
    options = ClaudeCommandOptions.model_validate(
        {
            "sessionId": "abc",
            "resume": True,
            "permissionMode": "plan",
            "toolsSettings": {
                "allowedTools": ["Bash"],
                "disallowedTools": [],
                "skipPermissions": False,
            },
        }
    )

    assert options.session_id == "abc"
    assert options.permission_mode == PermissionMode.plan
    assert options.tools_settings.allowed_tools == ["Bash"]
