"""Async subprocess runner for the command tools."""

import asyncio
import os
import signal
import time
from dataclasses import dataclass
from typing import List, Optional

from ..utils import get_logger


@dataclass
class CommandResult:
    """Outcome of one external command."""
    command: List[str]
    exit_code: Optional[int]   # None when the command never finished
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0      # seconds
    timed_out: bool = False
    missing: bool = False      # executable not found

    @property
    def output(self) -> str:
        return (self.stdout + self.stderr).strip()

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


def _kill(proc: asyncio.subprocess.Process):
    """Kill the process and everything it spawned."""
    try:
        if os.name == "posix":
            # Started in its own session, so its pid is the group id
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except ProcessLookupError:
        pass


async def run_command(
    cmd: List[str],
    cwd: str,
    timeout: float = 60.0,
) -> CommandResult:
    """
    Run a command, capturing output, bounded by timeout.

    Never raises for a missing executable or a timeout; both are reported
    on the returned CommandResult. If the caller is cancelled while waiting,
    the process group is killed and reaped before the cancellation propagates.
    """
    logger = get_logger()
    start = time.monotonic()

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            start_new_session=os.name == "posix",
        )
    except FileNotFoundError:
        logger.debug(f"Executable not found: {cmd[0]}")
        return CommandResult(cmd, None, stderr=f"{cmd[0]}: command not found", missing=True)

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        _kill(proc)
        await proc.wait()
        logger.warning(f"Command timed out after {timeout}s: {' '.join(cmd)}")
        return CommandResult(
            cmd, None,
            stderr=f"Command timed out after {timeout}s",
            duration=time.monotonic() - start,
            timed_out=True,
        )
    except BaseException:
        _kill(proc)
        await asyncio.shield(proc.wait())
        raise

    return CommandResult(
        cmd,
        proc.returncode,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
        duration=time.monotonic() - start,
    )
