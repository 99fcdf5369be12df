"""Async subprocess execution."""

import asyncio
from dataclasses import dataclass


@dataclass
class ExecResult:
    """Captured output of a finished process."""

    stdout: str
    stderr: str
    exit_code: int


async def run_command(cmd: str, args: list[str]) -> ExecResult:
    """Run a command and capture its output.

    Args:
        cmd: Executable name or path.
        args: Arguments, passed without a shell.

    Returns:
        ExecResult with decoded stdout/stderr and the exit code.

    Raises:
        OSError: If the executable cannot be started.
    """
    proc = await asyncio.create_subprocess_exec(
        cmd,
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await proc.communicate()
    return ExecResult(
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
        exit_code=proc.returncode if proc.returncode is not None else -1,
    )
