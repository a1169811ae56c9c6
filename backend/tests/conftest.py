import os
import stat
import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest

from agent_relay.schemas.events import RelayEvent
from agent_relay.services import mcp_config


class MemoryChannel:
    def __init__(self) -> None:
        self.events: List[RelayEvent] = []

    async def send(self, event: RelayEvent) -> None:
        self.events.append(event)

    def messages(self) -> List[Dict[str, Any]]:
        return [event.to_message() for event in self.events]

    def types(self) -> List[str]:
        return [event.type for event in self.events]


@pytest.fixture
def channel() -> MemoryChannel:
    return MemoryChannel()


@pytest.fixture(autouse=True)
def _no_user_claude_config(tmp_path, monkeypatch):
    monkeypatch.setattr(
        mcp_config, "CLAUDE_CONFIG_PATH", str(tmp_path / "missing-claude.json")
    )


@pytest.fixture
def fake_claude(tmp_path, monkeypatch):
    """Install an executable python script as the claude binary.

    The script records its argv and stdin under ``tmp_path`` before running
    ``body``.
    """

    def install(body: str) -> Path:
        script = tmp_path / "fake_claude"
        argv_file = tmp_path / "argv.txt"
        stdin_file = tmp_path / "stdin.txt"
        script.write_text(
            f"#!{sys.executable}\n"
            "import json, sys, time\n"
            f"open({str(argv_file)!r}, 'w').write(json.dumps(sys.argv[1:]))\n"
            "if '--print' not in sys.argv:\n"
            f"    open({str(stdin_file)!r}, 'w').write(sys.stdin.read())\n"
            + body,
            encoding="utf-8",
        )
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        monkeypatch.setenv("CLAUDE_CLI_PATH", str(script))
        return script

    return install


@pytest.fixture
def workdir(tmp_path) -> str:
    path = tmp_path / "project"
    path.mkdir()
    return os.fspath(path)
