"""Probe failure taxonomy.

These exceptions never leave the probe layer: the engine turns each one into
the affected metric's neutral default and a log event.
"""


class ProbeError(Exception):
    """Base class for probe failures."""


class CommandLaunchError(ProbeError):
    """External utility could not be started (missing binary, permission denied)."""


class CommandTimeoutError(ProbeError):
    """External utility did not finish within its timeout."""

    def __init__(self, argv: list[str], timeout: float):
        super().__init__(f"{argv[0]} timed out after {timeout}s")
        self.argv = argv
        self.timeout = timeout


class CommandFailedError(ProbeError):
    """External utility exited with a non-zero status."""

    def __init__(self, argv: list[str], returncode: int, stderr: str = ""):
        super().__init__(f"{argv[0]} exited with status {returncode}: {stderr.strip()[:200]}")
        self.argv = argv
        self.returncode = returncode
        self.stderr = stderr


class ProbeParseError(ProbeError, ValueError):
    """Output was produced but did not have the expected shape."""
