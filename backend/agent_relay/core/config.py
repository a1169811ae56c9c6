import os

BACKEND_TOKEN = os.environ.get("BACKEND_TOKEN", "")
BACKEND_HOST = os.environ.get("BACKEND_HOST", "127.0.0.1")
BACKEND_PORT = int(os.environ.get("BACKEND_PORT", "3001"))
APP_DATA_DIR = os.environ.get("APP_DATA_DIR", os.path.join(os.getcwd(), "data"))
LOG_DIR = os.environ.get("LOG_DIR", os.path.join(APP_DATA_DIR, "logs"))

CLAUDE_CONFIG_PATH = os.environ.get(
    "CLAUDE_CONFIG_PATH", os.path.join(os.path.expanduser("~"), ".claude.json")
)
CLAUDE_DEFAULT_MODEL = os.environ.get("CLAUDE_DEFAULT_MODEL", "sonnet")
CLAUDE_IMAGE_DIR = os.environ.get(
    "CLAUDE_IMAGE_DIR", os.path.join(".tmp", "images")
)

# Watchdogs
INITIAL_RESPONSE_TIMEOUT_SEC = float(
    os.environ.get("CLAUDE_INITIAL_RESPONSE_TIMEOUT_SEC", "10")
)
MAX_RUNTIME_SEC = float(os.environ.get("CLAUDE_MAX_RUNTIME_SEC", "120"))
# Grace period for stdout/stderr to reach EOF once the CLI has exited.
OUTPUT_DRAIN_TIMEOUT_SEC = float(
    os.environ.get("CLAUDE_OUTPUT_DRAIN_TIMEOUT_SEC", "2")
)


def ensure_dirs() -> None:
    os.makedirs(APP_DATA_DIR, exist_ok=True)
    os.makedirs(LOG_DIR, exist_ok=True)
