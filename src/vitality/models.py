"""Data models for vitality.

Everything published to subscribers is frozen: a Snapshot is replaced
wholesale on every tick, never mutated in place.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ThermalState(Enum):
    """Platform thermal pressure level."""

    NOMINAL = "nominal"
    FAIR = "fair"
    SERIOUS = "serious"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


# ─────────────────────────────────────────────────────────────────────────────
# Raw probe results
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(slots=True, frozen=True)
class CpuTicks:
    """Cumulative CPU time counters since boot."""

    user: float
    system: float
    idle: float
    nice: float

    @property
    def total(self) -> float:
        return self.user + self.system + self.idle + self.nice


@dataclass(slots=True, frozen=True)
class NetCounters:
    """Cumulative bytes received/transmitted across all interfaces."""

    rx_bytes: int
    tx_bytes: int


@dataclass(slots=True, frozen=True)
class VmStats:
    """Page counts from the virtual-memory statistics source."""

    page_size: int
    free: int
    active: int
    inactive: int
    wired: int
    compressed: int


@dataclass(slots=True, frozen=True)
class MemoryUsage:
    """Derived memory utilization."""

    used_bytes: int
    total_bytes: int
    fraction: float


@dataclass(slots=True, frozen=True)
class BatteryInfo:
    """Battery capacity and wear."""

    max_capacity: int = 1
    design_capacity: int = 1
    cycle_count: int = 0
    present: bool = False

    @property
    def health(self) -> float:
        """Max/design capacity, clamped to [0, 1]."""
        if self.design_capacity <= 0:
            return 0.0
        return max(0.0, min(self.max_capacity / self.design_capacity, 1.0))


@dataclass(slots=True, frozen=True)
class Volume:
    """A mounted volume as enumerated by the host."""

    name: str
    mount_path: str
    is_internal: bool
    is_browsable: bool
    total_bytes: int
    free_bytes: int


@dataclass(slots=True, frozen=True)
class DiskDescription:
    """Fields of interest from a disk-utility describe call."""

    device_identifier: str | None = None
    parent_whole_disk: str | None = None
    volume_name: str | None = None
    is_internal: bool | None = None
    is_ejectable: bool = False

    @property
    def preferred_identifier(self) -> str | None:
        """Whole-disk id (e.g. disk4) when known, else the partition id (disk4s1)."""
        return self.parent_whole_disk or self.device_identifier


@dataclass(slots=True, frozen=True)
class ProcessRow:
    """One row from a process listing before aggregation."""

    pid: int | None
    command: str
    cpu_percent: float = 0.0
    memory_mb: float = 0.0


# ─────────────────────────────────────────────────────────────────────────────
# Published types
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(slots=True, frozen=True)
class Disk:
    """A volume worth showing, with the identifier used for eject requests."""

    device_identifier: str
    name: str
    mount_path: str
    is_internal: bool
    is_ejectable: bool
    total_bytes: int
    used_bytes: int

    def to_dict(self) -> dict:
        """Serialize to a dictionary."""
        return {
            "device_identifier": self.device_identifier,
            "name": self.name,
            "mount_path": self.mount_path,
            "is_internal": self.is_internal,
            "is_ejectable": self.is_ejectable,
            "total_bytes": self.total_bytes,
            "used_bytes": self.used_bytes,
        }


@dataclass(slots=True, frozen=True)
class AppUsage:
    """One application in a top-apps ranking.

    pid is None for entries summed from rows that carry no pid.
    """

    name: str
    pid: int | None = None
    cpu_percent: float = 0.0
    memory_mb: float = 0.0

    def to_dict(self) -> dict:
        """Serialize to a dictionary."""
        return {
            "name": self.name,
            "pid": self.pid,
            "cpu_percent": self.cpu_percent,
            "memory_mb": self.memory_mb,
        }


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Point-in-time view of every metric, published once per tick."""

    tick: int = 0
    timestamp: datetime = field(default_factory=datetime.now)
    cpu_usage: float = 0.0
    memory_usage: float = 0.0
    memory_used_bytes: int = 0
    memory_total_bytes: int = 0
    battery_health: float = 0.0
    battery_cycles: int = 0
    battery_present: bool = False
    uptime_seconds: float = 0.0
    uptime: str = "N/A"
    thermal_state: ThermalState = ThermalState.NOMINAL
    disks: tuple[Disk, ...] = ()
    top_cpu_apps: tuple[AppUsage, ...] = ()
    top_memory_apps: tuple[AppUsage, ...] = ()
    network_rx_rate: float = 0.0  # bytes/sec
    network_tx_rate: float = 0.0  # bytes/sec
    cpu_history: tuple[float, ...] = ()

    def to_dict(self) -> dict:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "tick": self.tick,
            "timestamp": self.timestamp.isoformat(),
            "cpu_usage": self.cpu_usage,
            "memory_usage": self.memory_usage,
            "memory_used_bytes": self.memory_used_bytes,
            "memory_total_bytes": self.memory_total_bytes,
            "battery_health": self.battery_health,
            "battery_cycles": self.battery_cycles,
            "battery_present": self.battery_present,
            "uptime_seconds": self.uptime_seconds,
            "uptime": self.uptime,
            "thermal_state": self.thermal_state.value,
            "disks": [d.to_dict() for d in self.disks],
            "top_cpu_apps": [a.to_dict() for a in self.top_cpu_apps],
            "top_memory_apps": [a.to_dict() for a in self.top_memory_apps],
            "network_rx_rate": self.network_rx_rate,
            "network_tx_rate": self.network_tx_rate,
            "cpu_history": list(self.cpu_history),
        }
