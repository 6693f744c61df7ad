"""Bounded-time execution of external system utilities."""

import asyncio

import structlog

from vitality.errors import CommandFailedError, CommandLaunchError, CommandTimeoutError

log = structlog.get_logger()

DEFAULT_TIMEOUT = 5.0


async def run_command_bytes(argv: list[str], timeout: float = DEFAULT_TIMEOUT) -> bytes:
    """Run a utility and return its raw stdout.

    Args:
        argv: Command and arguments
        timeout: Maximum seconds to wait before killing the child

    Raises:
        CommandLaunchError: Binary missing or not executable
        CommandTimeoutError: Child did not exit in time (it is killed and reaped)
        CommandFailedError: Child exited non-zero
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            stdin=asyncio.subprocess.DEVNULL,
        )
    except OSError as e:  # FileNotFoundError, PermissionError
        raise CommandLaunchError(f"{argv[0]}: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        try:
            process.kill()
        except ProcessLookupError:
            pass  # Exited between timeout and kill
        await process.wait()
        log.warning("command_timeout", command=argv[0], timeout=timeout)
        raise CommandTimeoutError(argv, timeout) from None

    if process.returncode != 0:
        raise CommandFailedError(
            argv, process.returncode or 0, stderr.decode("utf-8", errors="replace")
        )

    return stdout


async def run_command(argv: list[str], timeout: float = DEFAULT_TIMEOUT) -> str:
    """Run a utility and return its stdout decoded as UTF-8."""
    stdout = await run_command_bytes(argv, timeout=timeout)
    return stdout.decode("utf-8", errors="replace")
