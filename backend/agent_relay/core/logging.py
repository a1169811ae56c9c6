import logging
import os
from logging.handlers import RotatingFileHandler

from agent_relay.core.config import LOG_DIR

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"

logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger("agent-relay")


def configure_logging(log_dir: str = LOG_DIR) -> None:
    """Mirror the root logger into a rotating file under ``log_dir``."""
    root = logging.getLogger()
    log_path = os.path.join(log_dir, "backend.log")
    for handler in root.handlers:
        if (
            isinstance(handler, RotatingFileHandler)
            and handler.baseFilename == os.path.abspath(log_path)
        ):
            return
    os.makedirs(log_dir, exist_ok=True)
    file_handler = RotatingFileHandler(
        log_path, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(file_handler)
