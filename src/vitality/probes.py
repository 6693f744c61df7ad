"""Probe adapters: one per host data source.

Each adapter invokes an external utility or OS API, parses the result and
returns a typed value. Failures surface as ProbeError (or OSError/psutil
errors from the OS APIs); the engine maps them to neutral defaults.
"""

import asyncio
import time
from dataclasses import replace
from pathlib import Path

import psutil
import structlog

from vitality.commands import run_command, run_command_bytes
from vitality.config import Config
from vitality.errors import ProbeError
from vitality.models import (
    BatteryInfo,
    CpuTicks,
    Disk,
    DiskDescription,
    MemoryUsage,
    NetCounters,
    ProcessRow,
    ThermalState,
    Volume,
)
from vitality.parsers import (
    memory_usage,
    parse_battery,
    parse_diskutil_plist,
    parse_netstat,
    parse_ps,
    parse_thermal_level,
    parse_top_memory,
    parse_vm_stat,
)

log = structlog.get_logger()


def is_hidden_volume(volume: Volume, ignored_names: list[str]) -> bool:
    """Non-browsable, ignore-listed system volumes and simulator runtimes."""
    if not volume.is_browsable:
        return True
    return volume.name in ignored_names or "Simulator" in volume.name


def include_volume(
    volume: Volume,
    ignored_names: list[str],
    boot_volume_name: str = "Macintosh HD",
) -> bool:
    """Decide whether a mounted volume is shown.

    Hidden volumes are excluded. External volumes are always included; an
    internal volume only when it is the boot volume.
    """
    if is_hidden_volume(volume, ignored_names):
        return False
    if not volume.is_internal:
        return True
    return volume.name == boot_volume_name or volume.mount_path == "/"


def _used_bytes(total: int, free: int) -> int:
    """total - free, clamped to [0, total]."""
    total = max(total, 0)
    return max(0, min(total - max(free, 0), total))


class ProbeSet:
    """The host adapters used by the engine.

    Tests substitute a subclass (or a fake with the same coroutine methods)
    to feed canned results.
    """

    VM_STAT_CMD = ["/usr/bin/vm_stat"]
    BATTERY_CMD = ["/usr/sbin/ioreg", "-rn", "AppleSmartBattery"]
    THERMAL_CMD = ["/usr/bin/notifyutil", "-g", "com.apple.system.thermalpressurelevel"]
    NETSTAT_CMD = ["/usr/sbin/netstat", "-ibn"]
    DISKUTIL = "/usr/sbin/diskutil"
    PS_CMD = ["/bin/ps", "-Aeo", "pid,pcpu,comm"]
    TOP_PROCESS_LIMIT = 50  # Rows requested from top before aggregation

    def __init__(self, config: Config):
        self.config = config

    @property
    def timeout(self) -> float:
        return self.config.sampling.command_timeout

    @property
    def top_cmd(self) -> list[str]:
        return [
            "/usr/bin/top",
            "-l",
            "1",
            "-o",
            "mem",
            "-n",
            str(self.TOP_PROCESS_LIMIT),
            "-stats",
            "pid,mem,command",
        ]

    # ─────────────────────────────────────────────────────────────────────────
    # CPU, memory, uptime
    # ─────────────────────────────────────────────────────────────────────────

    async def cpu_ticks(self) -> CpuTicks:
        """Cumulative user/system/idle/nice CPU time for the whole host."""
        loop = asyncio.get_running_loop()
        times = await loop.run_in_executor(None, psutil.cpu_times)
        return CpuTicks(
            user=times.user,
            system=times.system,
            idle=times.idle,
            nice=getattr(times, "nice", 0.0),
        )

    async def memory(self) -> MemoryUsage:
        """Memory utilization from vm_stat page counts."""
        text = await run_command(self.VM_STAT_CMD, timeout=self.timeout)
        stats = parse_vm_stat(text)
        loop = asyncio.get_running_loop()
        vm = await loop.run_in_executor(None, psutil.virtual_memory)
        return memory_usage(stats, vm.total, mode=self.config.sampling.memory_mode)

    async def uptime(self) -> float:
        """Seconds since boot."""
        loop = asyncio.get_running_loop()
        boot_time = await loop.run_in_executor(None, psutil.boot_time)
        return max(time.time() - boot_time, 0.0)

    # ─────────────────────────────────────────────────────────────────────────
    # Battery, thermal, network
    # ─────────────────────────────────────────────────────────────────────────

    async def battery(self) -> BatteryInfo:
        text = await run_command(self.BATTERY_CMD, timeout=self.timeout)
        return parse_battery(text)

    async def thermal(self) -> ThermalState:
        text = await run_command(self.THERMAL_CMD, timeout=self.timeout)
        return parse_thermal_level(text)

    async def network(self) -> NetCounters:
        text = await run_command(self.NETSTAT_CMD, timeout=self.timeout)
        return parse_netstat(text)

    # ─────────────────────────────────────────────────────────────────────────
    # Processes
    # ─────────────────────────────────────────────────────────────────────────

    async def cpu_processes(self) -> list[ProcessRow]:
        text = await run_command(self.PS_CMD, timeout=self.timeout)
        return parse_ps(text)

    async def memory_processes(self) -> list[ProcessRow]:
        text = await run_command(self.top_cmd, timeout=self.timeout)
        return parse_top_memory(text)

    # ─────────────────────────────────────────────────────────────────────────
    # Disks
    # ─────────────────────────────────────────────────────────────────────────

    def enumerate_volumes(self) -> list[Volume]:
        """Mounted volumes with capacity (blocking; run in an executor).

        Name and internal flag are provisional until diskutil describes the
        volume: the mount point's basename, and internal unless under /Volumes.
        """
        volumes: list[Volume] = []
        for part in psutil.disk_partitions(all=False):
            try:
                usage = psutil.disk_usage(part.mountpoint)
            except OSError as e:
                log.debug("volume_usage_failed", mount=part.mountpoint, error=str(e))
                continue
            mount = part.mountpoint
            volumes.append(
                Volume(
                    name=Path(mount).name or mount,
                    mount_path=mount,
                    is_internal=not mount.startswith("/Volumes/"),
                    is_browsable="nobrowse" not in part.opts.split(","),
                    total_bytes=usage.total,
                    free_bytes=usage.free,
                )
            )
        return volumes

    async def describe_disk(self, target: str) -> DiskDescription:
        """Run `diskutil info -plist` on a mount path or /dev node."""
        data = await run_command_bytes(
            [self.DISKUTIL, "info", "-plist", target], timeout=self.timeout
        )
        return parse_diskutil_plist(data)

    async def _resolve_disk(self, volume: Volume) -> Disk | None:
        filters = self.config.filters
        if is_hidden_volume(volume, filters.ignored_volumes):
            return None

        try:
            desc = await self.describe_disk(volume.mount_path)
        except ProbeError as e:
            log.debug("disk_describe_failed", mount=volume.mount_path, error=str(e))
            return None

        volume = replace(
            volume,
            name=desc.volume_name or volume.name,
            is_internal=desc.is_internal if desc.is_internal is not None else volume.is_internal,
        )
        if not include_volume(volume, filters.ignored_volumes, filters.boot_volume_name):
            return None

        device_id = desc.preferred_identifier
        if device_id is None:
            log.debug("disk_identifier_missing", mount=volume.mount_path)
            return None

        try:
            ejectable = (await self.describe_disk(f"/dev/{device_id}")).is_ejectable
        except ProbeError as e:
            log.debug("disk_ejectable_failed", device=device_id, error=str(e))
            ejectable = False

        return Disk(
            device_identifier=device_id,
            name=volume.name,
            mount_path=volume.mount_path,
            is_internal=volume.is_internal,
            is_ejectable=ejectable,
            total_bytes=max(volume.total_bytes, 0),
            used_bytes=_used_bytes(volume.total_bytes, volume.free_bytes),
        )

    async def disks(self) -> list[Disk]:
        """Volumes worth showing, with whole-disk identifiers for eject."""
        loop = asyncio.get_running_loop()
        volumes = await loop.run_in_executor(None, self.enumerate_volumes)
        resolved = await asyncio.gather(*(self._resolve_disk(v) for v in volumes))
        return [disk for disk in resolved if disk is not None]
