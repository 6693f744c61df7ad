"""Parsers for the text and plist output of macOS system utilities.

Every parser is a pure function of the utility's output. Output of the wrong
shape raises ProbeParseError; missing optional fields fall back to documented
defaults instead.
"""

import plistlib
import re

from vitality.errors import ProbeParseError
from vitality.models import (
    BatteryInfo,
    DiskDescription,
    MemoryUsage,
    NetCounters,
    ProcessRow,
    ThermalState,
    VmStats,
)

_DIGITS = re.compile(r"\d+")
_PAGE_SIZE = re.compile(r"page size of (\d+) bytes")
_VM_LINE = re.compile(r"^(?P<key>[^:]+):\s+(?P<value>\d+)\.?\s*$")

# vm_stat label -> VmStats field
_VM_FIELDS = {
    "Pages free": "free",
    "Pages active": "active",
    "Pages inactive": "inactive",
    "Pages wired down": "wired",
    "Pages occupied by compressor": "compressed",
}
_VM_REQUIRED = ("free", "active", "wired")

# OSThermalPressureLevel values published under com.apple.system.thermalpressurelevel
_THERMAL_LEVELS = {
    0: ThermalState.NOMINAL,
    1: ThermalState.FAIR,  # moderate
    2: ThermalState.SERIOUS,  # heavy
    3: ThermalState.CRITICAL,  # trapping
    4: ThermalState.CRITICAL,  # sleeping
}

_MEMORY_UNITS = {
    "B": 1 / (1024 * 1024),
    "K": 1 / 1024,
    "M": 1.0,
    "G": 1024.0,
    "T": 1024.0 * 1024.0,
}


# ─────────────────────────────────────────────────────────────────────────────
# Memory
# ─────────────────────────────────────────────────────────────────────────────


def parse_vm_stat(text: str) -> VmStats:
    """Parse `vm_stat` output.

    Raises:
        ProbeParseError: If the page size or a required page count is missing
    """
    match = _PAGE_SIZE.search(text)
    if match is None:
        raise ProbeParseError("vm_stat output has no page size")

    counts: dict[str, int] = {}
    for line in text.splitlines():
        m = _VM_LINE.match(line.strip())
        if m is None:
            continue
        field_name = _VM_FIELDS.get(m.group("key").strip().strip('"'))
        if field_name is not None:
            counts[field_name] = int(m.group("value"))

    missing = [name for name in _VM_REQUIRED if name not in counts]
    if missing:
        raise ProbeParseError(f"vm_stat output missing {', '.join(missing)}")

    return VmStats(
        page_size=int(match.group(1)),
        free=counts["free"],
        active=counts["active"],
        inactive=counts.get("inactive", 0),
        wired=counts["wired"],
        compressed=counts.get("compressed", 0),
    )


def memory_usage(stats: VmStats, total_bytes: int, mode: str = "physical") -> MemoryUsage:
    """Derive memory utilization from page counts.

    used = (active + wired + compressed) * page_size. In "physical" mode the
    fraction is used / total physical memory; in "pages" mode it is
    used / (used + free + inactive).
    """
    used = (stats.active + stats.wired + stats.compressed) * stats.page_size
    if mode == "pages":
        denominator = used + (stats.free + stats.inactive) * stats.page_size
    else:
        denominator = total_bytes

    fraction = used / denominator if denominator > 0 else 0.0
    return MemoryUsage(
        used_bytes=max(used, 0),
        total_bytes=max(total_bytes, 0),
        fraction=max(0.0, min(fraction, 1.0)),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Battery
# ─────────────────────────────────────────────────────────────────────────────


def _battery_field(text: str, key: str) -> int | None:
    """Find an integer value for key in ioreg key/value lines.

    A line whose key is exactly `key` wins; otherwise the first line whose
    key contains `key` is used. The value is the first run of digits to the
    right of the `=`.
    """
    substring_match: int | None = None
    for line in text.splitlines():
        if key not in line:
            continue
        left, sep, right = line.partition("=")
        if not sep:
            continue
        digits = _DIGITS.search(right)
        if digits is None:
            continue
        value = int(digits.group())
        line_key = left.strip().strip('"')
        if line_key == key:
            return value
        if substring_match is None and key in line_key:
            substring_match = value
    return substring_match


def parse_battery(text: str) -> BatteryInfo:
    """Parse `ioreg -rn AppleSmartBattery` output.

    Missing capacity values default to 1 (so health never divides by zero)
    and a missing cycle count defaults to 0. On Apple silicon MaxCapacity is
    a percentage, so AppleRawMaxCapacity is preferred when present.
    """
    raw_max = _battery_field(text, "AppleRawMaxCapacity")
    max_capacity = raw_max if raw_max is not None else _battery_field(text, "MaxCapacity")
    design_capacity = _battery_field(text, "DesignCapacity")
    cycle_count = _battery_field(text, "CycleCount")

    return BatteryInfo(
        max_capacity=max_capacity if max_capacity else 1,
        design_capacity=design_capacity if design_capacity else 1,
        cycle_count=cycle_count or 0,
        present=max_capacity is not None and design_capacity is not None,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Thermal
# ─────────────────────────────────────────────────────────────────────────────


def parse_thermal_level(text: str) -> ThermalState:
    """Parse `notifyutil -g com.apple.system.thermalpressurelevel` output.

    Raises:
        ProbeParseError: If no level is present
    """
    tokens = text.split()
    if not tokens or not tokens[-1].lstrip("-").isdigit():
        raise ProbeParseError(f"no thermal level in {text.strip()!r}")
    return _THERMAL_LEVELS.get(int(tokens[-1]), ThermalState.UNKNOWN)


# ─────────────────────────────────────────────────────────────────────────────
# Network
# ─────────────────────────────────────────────────────────────────────────────


def _is_addressless_link_row(cols: list[str], network_index: int) -> bool:
    """True for `<Link#N>` rows with no Address column (Ipkts follows Network)."""
    return (
        len(cols) > network_index + 1
        and cols[network_index].startswith("<Link#")
        and cols[network_index + 1].isdigit()
    )


def parse_netstat(text: str) -> NetCounters:
    """Sum Ibytes/Obytes across every row of `netstat -ibn` output.

    Link-level rows with no MAC address lack the Address column, so their
    byte columns sit one to the left of the header's. Trailing columns (Coll)
    may be missing from any row. Rows too short to reach the byte columns
    are skipped. Loopback and per-address rows are summed too; the total is
    only meaningful for rate trending.

    Raises:
        ProbeParseError: If the header lacks Ibytes/Obytes columns
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        raise ProbeParseError("netstat output is empty")

    header = lines[0].split()
    try:
        ib_index = header.index("Ibytes")
        ob_index = header.index("Obytes")
    except ValueError:
        raise ProbeParseError("netstat header has no Ibytes/Obytes columns") from None

    network_index = header.index("Network") if "Network" in header else 2

    rx_total = 0
    tx_total = 0
    for line in lines[1:]:
        cols = line.split()
        shift = 1 if _is_addressless_link_row(cols, network_index) else 0
        if len(cols) <= max(ib_index, ob_index) - shift:
            continue
        ib, ob = cols[ib_index - shift], cols[ob_index - shift]
        if ib.isdigit() and ob.isdigit():
            rx_total += int(ib)
            tx_total += int(ob)

    return NetCounters(rx_bytes=rx_total, tx_bytes=tx_total)


# ─────────────────────────────────────────────────────────────────────────────
# Disks
# ─────────────────────────────────────────────────────────────────────────────


def parse_diskutil_plist(data: bytes) -> DiskDescription:
    """Parse `diskutil info -plist <target>` output.

    Raises:
        ProbeParseError: If the data is not a plist dictionary
    """
    try:
        plist = plistlib.loads(data)
    except (plistlib.InvalidFileException, ValueError) as e:
        raise ProbeParseError(f"Invalid diskutil plist data: {e}") from e

    if not isinstance(plist, dict):
        raise ProbeParseError("diskutil plist is not a dictionary")

    internal = plist.get("Internal")
    return DiskDescription(
        device_identifier=plist.get("DeviceIdentifier") or None,
        parent_whole_disk=plist.get("ParentWholeDisk") or None,
        volume_name=plist.get("VolumeName") or None,
        is_internal=bool(internal) if internal is not None else None,
        is_ejectable=bool(plist.get("Ejectable", False)),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Processes
# ─────────────────────────────────────────────────────────────────────────────


def parse_ps(text: str) -> list[ProcessRow]:
    """Parse `ps -Aeo pid,pcpu,comm` output.

    The command column may contain spaces (full executable paths), so each
    row is split at most twice. Rows that do not start with a pid are skipped.
    """
    rows: list[ProcessRow] = []
    for line in text.splitlines():
        parts = line.split(None, 2)
        if len(parts) < 3 or not parts[0].isdigit():
            continue
        try:
            cpu = float(parts[1].replace(",", "."))
        except ValueError:
            continue
        rows.append(ProcessRow(pid=int(parts[0]), command=parts[2].strip(), cpu_percent=cpu))
    return rows


def parse_memory_value(token: str) -> float:
    """Convert a top memory column value (e.g. "512M", "96K+", "2G-") to megabytes.

    A bare number is taken as bytes.

    Raises:
        ValueError: If the token is not a memory value
    """
    value = token.strip().rstrip("+-")
    if not value:
        raise ValueError(f"Invalid memory value: {token!r}")
    unit = value[-1].upper()
    if unit in _MEMORY_UNITS:
        return float(value[:-1]) * _MEMORY_UNITS[unit]
    return float(value) * _MEMORY_UNITS["B"]


def parse_top_memory(text: str) -> list[ProcessRow]:
    """Parse `top -l 1 -o mem -stats pid,mem,command` output.

    Only rows that start with a pid are data rows. That skips the summary
    block ("PhysMem: 15G used (2G wired), 200M unused.") and the column
    header while keeping commands with parentheses (e.g. "Helper (Renderer)").
    """
    rows: list[ProcessRow] = []
    for line in text.splitlines():
        parts = line.split(None, 2)
        if len(parts) < 3 or not parts[0].isdigit():
            continue
        try:
            mem_mb = parse_memory_value(parts[1])
        except ValueError:
            continue
        rows.append(ProcessRow(pid=int(parts[0]), command=parts[2].strip(), memory_mb=mem_mb))
    return rows
