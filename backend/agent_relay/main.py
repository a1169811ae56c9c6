from fastapi import FastAPI

from agent_relay.api import claude, events, health, status
from agent_relay.core.config import BACKEND_HOST, BACKEND_PORT, ensure_dirs
from agent_relay.core.logging import configure_logging, logger
from agent_relay.services.claude import abort_all_sessions

app = FastAPI(title="Agent Relay Backend", version="0.1.0")

app.include_router(health.router)
app.include_router(status.router)
app.include_router(claude.router)
app.include_router(events.router)


@app.on_event("startup")
async def on_startup() -> None:
    ensure_dirs()
    configure_logging()
    logger.info("backend started")


@app.on_event("shutdown")
async def on_shutdown() -> None:
    aborted = abort_all_sessions()
    if aborted:
        logger.info("aborted %d claude sessions on shutdown", aborted)


def run() -> None:
    import uvicorn

    uvicorn.run(
        "agent_relay.main:app",
        host=BACKEND_HOST,
        port=BACKEND_PORT,
        log_level="info",
    )


if __name__ == "__main__":
    run()
