import asyncio
import logging
import os
import shlex
import shutil
from typing import Awaitable, Callable, List, Optional, Union

from agent_relay.core.config import (
    INITIAL_RESPONSE_TIMEOUT_SEC,
    MAX_RUNTIME_SEC,
    OUTPUT_DRAIN_TIMEOUT_SEC,
)
from agent_relay.schemas.claude import ClaudeCommandOptions
from agent_relay.schemas.events import ClaudeCompleteEvent, ClaudeErrorEvent
from agent_relay.services.attachments import (
    append_image_note,
    cleanup_images,
    materialize_images,
)
from agent_relay.services.claude_args import build_claude_args, is_directive
from agent_relay.services.demux import StreamDemultiplexer
from agent_relay.services.mcp_config import detect_mcp_config
from agent_relay.services.session_registry import (
    ProcessRecord,
    ProcessState,
    SessionRegistry,
    placeholder_key,
    registry,
)
from agent_relay.utils.watchdog import Watchdog
from agent_relay.websocket.manager import RelayChannel

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024
EXIT_POLL_INTERVAL_SEC = 0.5

SESSION_TIMEOUT = "SESSION_TIMEOUT"
TIMEOUT = "TIMEOUT"
SESSION_TIMEOUT_MESSAGE = (
    "Claude session may be expired. Please try starting a new conversation."
)
TIMEOUT_MESSAGE = (
    "Claude CLI process timeout. The command took too long to respond "
    "and was terminated."
)


class ClaudeProcessError(RuntimeError):
    def __init__(
        self, message: str, exit_code: Optional[Union[int, str]] = None
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code


def resolve_claude_path() -> Optional[str]:
    cli_path = os.environ.get("CLAUDE_CLI_PATH")
    if cli_path and os.path.exists(cli_path):
        return cli_path
    return shutil.which("claude")


def _signal(process: asyncio.subprocess.Process, hard: bool = False) -> None:
    if process.returncode is not None:
        return
    try:
        if hard:
            process.kill()
        else:
            process.terminate()
    except ProcessLookupError:
        pass


async def _pump(
    stream: asyncio.StreamReader, handler: Callable[[bytes], Awaitable[None]]
) -> None:
    while True:
        chunk = await stream.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        await handler(chunk)


async def _wait_for_exit(process: asyncio.subprocess.Process) -> int:
    """Return the exit code as soon as the CLI itself has exited.

    ``Process.wait()`` only resolves once every pipe is closed, which a
    background child holding stdout can postpone indefinitely, so the
    recorded returncode is checked as well.
    """
    waiter = asyncio.ensure_future(process.wait())
    try:
        while process.returncode is None:
            done, _ = await asyncio.wait({waiter}, timeout=EXIT_POLL_INTERVAL_SEC)
            if done:
                return waiter.result()
        return process.returncode
    finally:
        if not waiter.done():
            waiter.cancel()


async def _drain_readers(readers: List[asyncio.Task]) -> bool:
    """Give the output readers a grace period to reach EOF.

    Returns False when they had to be cancelled.
    """
    _, pending = await asyncio.wait(set(readers), timeout=OUTPUT_DRAIN_TIMEOUT_SEC)
    for task in pending:
        task.cancel()
    if pending:
        logger.warning(
            "claude output still open %ss after exit, closing readers",
            OUTPUT_DRAIN_TIMEOUT_SEC,
        )
        await asyncio.gather(*pending, return_exceptions=True)
    for task in readers:
        if not task.cancelled() and task.exception() is not None:
            raise task.exception()
    return not any(task.cancelled() for task in readers)


async def _feed_stdin(
    process: asyncio.subprocess.Process, payload: Optional[str]
) -> None:
    if payload is None or process.stdin is None:
        return
    try:
        if payload:
            process.stdin.write(payload.encode())
            await process.stdin.drain()
        process.stdin.close()
    except (BrokenPipeError, ConnectionResetError) as exc:
        logger.warning("claude stdin closed early: %s", exc)


async def spawn_claude(
    command: Optional[str],
    options: ClaudeCommandOptions,
    channel: RelayChannel,
    registry: SessionRegistry = registry,
) -> None:
    """Run one claude CLI process and relay its output over ``channel``.

    Returns once the process exits with code 0. Every other outcome (spawn
    failure, non-zero exit, abort, watchdog timeout) raises
    :class:`ClaudeProcessError` after the matching event has been sent.
    """
    command = command or ""
    caller_session_id = options.session_id
    is_new_session = not caller_session_id and bool(command)
    working_dir = options.cwd or os.getcwd()

    images = await asyncio.to_thread(materialize_images, options.images, working_dir)
    if images.paths and command.strip() and not is_directive(command):
        command = append_image_note(command, images.paths)

    mcp = await asyncio.to_thread(detect_mcp_config)
    invocation = build_claude_args(
        command, options, mcp.config_path if mcp.configured else None
    )
    logger.info(
        "spawning claude %s (cwd=%s, session=%s, resume=%s)",
        shlex.join(invocation.args).replace("\n", "\\n"),
        invocation.cwd,
        caller_session_id,
        options.resume,
    )

    claude_path = resolve_claude_path()
    try:
        if not claude_path:
            raise FileNotFoundError("claude cli not found")
        process = await asyncio.create_subprocess_exec(
            claude_path,
            *invocation.args,
            cwd=invocation.cwd,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=os.environ.copy(),
        )
    except OSError as exc:
        logger.error("failed to spawn claude: %s", exc)
        await channel.send(ClaudeErrorEvent(error=str(exc)))
        await asyncio.to_thread(cleanup_images, images)
        raise ClaudeProcessError(str(exc)) from exc

    record = ProcessRecord(
        key=caller_session_id or placeholder_key(),
        process=process,
        captured_session_id=caller_session_id,
        images=images,
    )
    displaced = registry.register(record.key, record)
    if displaced is not None and displaced.process.returncode is None:
        logger.warning(
            "session %s already had a live process, terminating it", record.key
        )
        displaced.state = ProcessState.aborted
        _signal(displaced.process)

    timeout_code: Optional[str] = None

    async def on_initial_timeout() -> None:
        nonlocal timeout_code
        if record.has_output or record.is_terminal:
            return
        logger.warning(
            "no output from claude within %ss, terminating %s",
            INITIAL_RESPONSE_TIMEOUT_SEC,
            record.key,
        )
        record.state = ProcessState.timed_out
        timeout_code = SESSION_TIMEOUT
        _signal(process)
        await channel.send(
            ClaudeErrorEvent(error=SESSION_TIMEOUT_MESSAGE, exit_code=SESSION_TIMEOUT)
        )

    async def on_max_runtime() -> None:
        nonlocal timeout_code
        if process.returncode is not None:
            for task in readers:
                task.cancel()
            return
        logger.warning(
            "claude exceeded %ss, killing %s", MAX_RUNTIME_SEC, record.key
        )
        _signal(process, hard=True)
        registry.discard(record.key, record)
        if record.is_terminal:
            return
        record.state = ProcessState.timed_out
        timeout_code = TIMEOUT
        await channel.send(ClaudeErrorEvent(error=TIMEOUT_MESSAGE, exit_code=TIMEOUT))

    record.initial_watchdog = Watchdog(INITIAL_RESPONSE_TIMEOUT_SEC, on_initial_timeout)
    record.max_watchdog = Watchdog(MAX_RUNTIME_SEC, on_max_runtime)
    record.initial_watchdog.start()
    record.max_watchdog.start()
    record.state = ProcessState.awaiting_first_output

    demux = StreamDemultiplexer(record, channel, registry, caller_session_id)

    async def read_stdout() -> None:
        while True:
            chunk = await process.stdout.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            if not record.has_output:
                record.has_output = True
                record.initial_watchdog.cancel()
                if record.state == ProcessState.awaiting_first_output:
                    record.state = ProcessState.streaming
            await demux.feed_stdout(chunk)
        await demux.finish_stdout()

    stdout_task = asyncio.create_task(read_stdout())
    stderr_task = asyncio.create_task(_pump(process.stderr, demux.feed_stderr))
    readers = [stdout_task, stderr_task]

    try:
        await _feed_stdin(process, invocation.stdin_payload)
        exit_code = await _wait_for_exit(process)
        registry.discard(record.key, record)
        record.initial_watchdog.cancel()
        if not await _drain_readers(readers):
            await demux.finish_stdout()
        record.cancel_watchdogs()
        logger.info("claude process %s exited with code %s", record.key, exit_code)

        if record.state == ProcessState.aborted:
            raise ClaudeProcessError("claude session aborted", exit_code)
        if record.state == ProcessState.timed_out:
            raise ClaudeProcessError("claude cli timeout", timeout_code)
        if exit_code == 0:
            record.state = ProcessState.completed
            await channel.send(
                ClaudeCompleteEvent(exit_code=exit_code, is_new_session=is_new_session)
            )
            return

        record.state = ProcessState.failed
        await channel.send(
            ClaudeErrorEvent(
                error=(
                    f"Claude CLI process failed with exit code {exit_code}. "
                    "Please try again or check your command."
                ),
                exit_code=exit_code,
            )
        )
        raise ClaudeProcessError(f"claude cli exited with code {exit_code}", exit_code)
    finally:
        record.cancel_watchdogs()
        registry.discard(record.key, record)
        _signal(process, hard=True)
        for task in readers:
            if not task.done():
                task.cancel()
        await asyncio.to_thread(cleanup_images, record.images)


def abort_claude_session(
    session_id: str, registry: SessionRegistry = registry
) -> bool:
    """Ask the process serving ``session_id`` to stop.

    Returns False when no live process is registered under that id.
    """
    record = registry.remove(session_id)
    if record is None:
        return False
    if record.process.returncode is not None:
        logger.info("claude session %s already exited, nothing to abort", session_id)
        return False
    logger.info("aborting claude session %s", session_id)
    if not record.is_terminal:
        record.state = ProcessState.aborted
    _signal(record.process)
    return True


def abort_all_sessions(registry: SessionRegistry = registry) -> int:
    aborted = 0
    for session_id in registry.keys():
        if abort_claude_session(session_id, registry):
            aborted += 1
    return aborted
