import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    def stderr_tail(self, lines: int = 10) -> str:
        return "\n".join(self.stderr.strip().splitlines()[-lines:])


# (argv, timeout_seconds) -> CommandResult
CommandRunner = Callable[[Sequence[str], Optional[float]], Awaitable[CommandResult]]


async def run_command(command: Sequence[str], timeout: Optional[float] = None) -> CommandResult:
    """
    Runs an external tool (ffmpeg / ffprobe) without blocking the event loop.

    Args:
        command: argv list, executable first
        timeout: seconds before the process is killed

    Returns:
        CommandResult with decoded stdout/stderr

    Raises:
        FileNotFoundError: If the executable is missing
        asyncio.TimeoutError: If the process outlives the timeout
    """
    logger.debug("Running command: %s", " ".join(command))
    process = await asyncio.create_subprocess_exec(
        *command,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except BaseException:
        # timeout or cancellation: never leave the tool running
        if process.returncode is None:
            process.kill()
            await process.wait()
        raise

    return CommandResult(
        returncode=process.returncode,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )
