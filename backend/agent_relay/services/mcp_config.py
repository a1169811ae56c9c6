import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Optional

from agent_relay.core.config import CLAUDE_CONFIG_PATH

logger = logging.getLogger(__name__)

PROJECT_MAP_KEYS = ("claudeProjects", "projects")


@dataclass(frozen=True)
class McpConfigStatus:
    configured: bool
    config_path: Optional[str] = None


def _has_servers(section: Any) -> bool:
    if not isinstance(section, dict):
        return False
    servers = section.get("mcpServers")
    return isinstance(servers, dict) and len(servers) > 0


def detect_mcp_config(
    config_path: Optional[str] = None, project_path: Optional[str] = None
) -> McpConfigStatus:
    """Report whether the user's claude config declares any MCP servers.

    Never raises: unreadable or malformed config means "not configured".
    """
    path = config_path or CLAUDE_CONFIG_PATH
    try:
        if not os.path.isfile(path):
            return McpConfigStatus(configured=False)
        with open(path, "r", encoding="utf-8") as handle:
            config = json.load(handle)
        if _has_servers(config):
            return McpConfigStatus(configured=True, config_path=path)
        project = project_path or os.getcwd()
        for key in PROJECT_MAP_KEYS:
            projects = config.get(key) if isinstance(config, dict) else None
            if isinstance(projects, dict) and _has_servers(projects.get(project)):
                return McpConfigStatus(configured=True, config_path=path)
    except Exception as exc:
        logger.info("mcp config check failed for %s: %s", path, exc)
    return McpConfigStatus(configured=False)
