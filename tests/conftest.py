"""Shared test fixtures for vitality."""

from pathlib import Path

import pytest

from vitality.config import Config, SamplingConfig
from vitality.models import (
    BatteryInfo,
    CpuTicks,
    Disk,
    MemoryUsage,
    NetCounters,
    ProcessRow,
    ThermalState,
    Volume,
)

NETSTAT_HEADER = "Name  Mtu   Network       Address            Ipkts Ierrs     Ibytes    Opkts Oerrs     Obytes  Coll"


def make_netstat(ibytes: int, obytes: int) -> str:
    """netstat -ibn output with one link-level row."""
    return (
        f"{NETSTAT_HEADER}\n"
        f"en0   1500  <Link#6>      aa:bb:cc:dd:ee:ff     10     0 {ibytes:>10}       20     0 {obytes:>10}     0\n"
    )


def make_volume(
    name: str = "USB",
    mount_path: str | None = None,
    is_internal: bool = False,
    is_browsable: bool = True,
    total_bytes: int = 64_000_000_000,
    free_bytes: int = 16_000_000_000,
) -> Volume:
    """Create a Volume for testing."""
    return Volume(
        name=name,
        mount_path=mount_path or f"/Volumes/{name}",
        is_internal=is_internal,
        is_browsable=is_browsable,
        total_bytes=total_bytes,
        free_bytes=free_bytes,
    )


def make_row(command: str, pid: int = 100, cpu: float = 0.0, mem: float = 0.0) -> ProcessRow:
    """Create a ProcessRow for testing."""
    return ProcessRow(pid=pid, command=command, cpu_percent=cpu, memory_mb=mem)


def cpu_ticks(busy: float, idle: float) -> CpuTicks:
    """CpuTicks with all busy time attributed to user."""
    return CpuTicks(user=busy, system=0.0, idle=idle, nice=0.0)


class FakeProbes:
    """Stand-in for ProbeSet that returns canned values.

    Each attribute holds either a value or an exception instance (raised when
    the probe is called). cpu_sequence / net_sequence feed one value per tick.
    """

    def __init__(self) -> None:
        self.cpu_sequence: list[CpuTicks | Exception] = []
        self.net_sequence: list[NetCounters | Exception] = []
        self.memory_result: MemoryUsage | Exception = MemoryUsage(
            used_bytes=8 * 1024**3, total_bytes=16 * 1024**3, fraction=0.5
        )
        self.uptime_result: float | Exception = 3 * 3600 + 15 * 60
        self.battery_result: BatteryInfo | Exception = BatteryInfo(
            max_capacity=4500, design_capacity=5000, cycle_count=120, present=True
        )
        self.thermal_result: ThermalState | Exception = ThermalState.FAIR
        self.cpu_rows: list[ProcessRow] | Exception = []
        self.memory_rows: list[ProcessRow] | Exception = []
        self.disk_result: list[Disk] | Exception = []
        self.calls = 0

    @staticmethod
    def _resolve(value):
        if isinstance(value, Exception):
            raise value
        return value

    def _next(self, sequence: list, default):
        if not sequence:
            return default
        value = sequence.pop(0) if len(sequence) > 1 else sequence[0]
        return self._resolve(value)

    async def cpu_ticks(self) -> CpuTicks:
        self.calls += 1
        return self._next(self.cpu_sequence, cpu_ticks(0.0, 0.0))

    async def memory(self) -> MemoryUsage:
        return self._resolve(self.memory_result)

    async def uptime(self) -> float:
        return self._resolve(self.uptime_result)

    async def battery(self) -> BatteryInfo:
        return self._resolve(self.battery_result)

    async def thermal(self) -> ThermalState:
        return self._resolve(self.thermal_result)

    async def network(self) -> NetCounters:
        return self._next(self.net_sequence, NetCounters(0, 0))

    async def cpu_processes(self) -> list[ProcessRow]:
        return self._resolve(self.cpu_rows)

    async def memory_processes(self) -> list[ProcessRow]:
        return self._resolve(self.memory_rows)

    async def disks(self) -> list[Disk]:
        return self._resolve(self.disk_result)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_probes() -> FakeProbes:
    return FakeProbes()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fast_config() -> Config:
    """Config with the shortest allowed tick interval."""
    return Config(sampling=SamplingConfig(interval=0.1))


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Redirect ~ so config and log files land in a temp directory."""
    monkeypatch.setenv("HOME", str(tmp_path))
    return tmp_path
