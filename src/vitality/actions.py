"""User-initiated side effects: eject a disk, kill a process.

Both are best-effort. They report the outcome in an ActionResult and a log
event and never raise. A failed eject leaves the volume mounted.
"""

from dataclasses import dataclass

import psutil
import structlog

from vitality.commands import run_command
from vitality.errors import ProbeError

log = structlog.get_logger()

DISKUTIL = "/usr/sbin/diskutil"


@dataclass(slots=True, frozen=True)
class ActionResult:
    """Outcome of an eject or kill request."""

    ok: bool
    message: str = ""


async def eject(target: str, timeout: float = 30.0) -> ActionResult:
    """Unmount and eject the disk behind a mount path or device identifier.

    Args:
        target: Mount path (e.g. "/Volumes/USB") or identifier (e.g. "disk4")
        timeout: Maximum seconds to wait for diskutil
    """
    if not target.strip():
        log.warning("eject_failed", target=target, reason="empty target")
        return ActionResult(ok=False, message="empty target")

    try:
        output = await run_command([DISKUTIL, "eject", target], timeout=timeout)
    except ProbeError as e:
        log.warning("eject_failed", target=target, reason=str(e))
        return ActionResult(ok=False, message=str(e))

    log.info("disk_ejected", target=target)
    return ActionResult(ok=True, message=output.strip())


def kill_process(pid: int) -> ActionResult:
    """Forcefully terminate a process (SIGKILL)."""
    if pid <= 0:
        log.warning("kill_failed", pid=pid, reason="invalid pid")
        return ActionResult(ok=False, message=f"invalid pid {pid}")

    try:
        proc = psutil.Process(pid)
        name = proc.name()
        proc.kill()
    except psutil.NoSuchProcess:
        log.warning("kill_failed", pid=pid, reason="process not found")
        return ActionResult(ok=False, message="process not found")
    except psutil.AccessDenied:
        log.warning("kill_failed", pid=pid, reason="access denied")
        return ActionResult(ok=False, message="access denied")

    log.info("process_killed", pid=pid, command=name)
    return ActionResult(ok=True, message=name)
