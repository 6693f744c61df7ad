"""Configuration system for vitality."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

MEMORY_MODES = ("physical", "pages")
LOG_LEVELS = ("debug", "info", "warning", "error")


@dataclass
class SamplingConfig:
    """Sampling loop configuration."""

    interval: float = 2.0  # Seconds between ticks
    history_size: int = 60  # CPU utilization samples kept in the history ring
    command_timeout: float = 5.0  # Max seconds for any one external utility
    top_n: int = 5  # Entries kept per top-apps list
    memory_mode: str = "physical"  # "physical" = used/total, "pages" = used/(used+free+inactive)


@dataclass
class FiltersConfig:
    """Noise floors and volume filtering."""

    cpu_floor: float = 0.1  # Apps at or below this CPU% are dropped
    memory_floor_mb: float = 1.0  # Apps at or below this many MB are dropped
    ignored_volumes: list[str] = field(
        default_factory=lambda: [
            "Preboot",
            "VM",
            "Recovery",
            "Update",
            "com.apple.TimeMachine.localsnapshots",
        ]
    )
    boot_volume_name: str = "Macintosh HD"


@dataclass
class LoggingConfig:
    """Log file configuration."""

    level: str = "info"
    max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    backup_count: int = 3  # Number of rotated log files to keep


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    filters: FiltersConfig = field(default_factory=FiltersConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "vitality"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "vitality"

    @property
    def log_path(self) -> Path:
        """JSON Lines log file path."""
        return self.state_dir / "vitality.log"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("sampling", "filters", "logging"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        Raises:
            ValueError: If the file cannot be parsed or a value is out of range.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            sampling=_load_sampling_config(data.get("sampling", {})),
            filters=_load_filters_config(data.get("filters", {})),
            logging=_load_logging_config(data.get("logging", {})),
        )


def _load_sampling_config(data: dict) -> SamplingConfig:
    """Load sampling config from TOML data, using dataclass defaults for missing fields."""
    d = SamplingConfig()

    interval = float(data.get("interval", d.interval))
    history_size = int(data.get("history_size", d.history_size))
    command_timeout = float(data.get("command_timeout", d.command_timeout))
    top_n = int(data.get("top_n", d.top_n))
    memory_mode = str(data.get("memory_mode", d.memory_mode))

    if interval < 0.1:
        raise ValueError(f"interval must be >= 0.1, got {interval}")
    if not 1 <= history_size <= 600:
        raise ValueError(f"history_size must be between 1 and 600, got {history_size}")
    if command_timeout <= 0:
        raise ValueError(f"command_timeout must be > 0, got {command_timeout}")
    if top_n < 1:
        raise ValueError(f"top_n must be >= 1, got {top_n}")
    if memory_mode not in MEMORY_MODES:
        raise ValueError(f"Invalid memory_mode: {memory_mode!r}. Must be one of {MEMORY_MODES}")

    return SamplingConfig(
        interval=interval,
        history_size=history_size,
        command_timeout=command_timeout,
        top_n=top_n,
        memory_mode=memory_mode,
    )


def _load_filters_config(data: dict) -> FiltersConfig:
    """Load filters config from TOML data."""
    d = FiltersConfig()

    cpu_floor = float(data.get("cpu_floor", d.cpu_floor))
    memory_floor_mb = float(data.get("memory_floor_mb", d.memory_floor_mb))
    if cpu_floor < 0:
        raise ValueError(f"cpu_floor must be >= 0, got {cpu_floor}")
    if memory_floor_mb < 0:
        raise ValueError(f"memory_floor_mb must be >= 0, got {memory_floor_mb}")

    return FiltersConfig(
        cpu_floor=cpu_floor,
        memory_floor_mb=memory_floor_mb,
        ignored_volumes=[str(v) for v in data.get("ignored_volumes", d.ignored_volumes)],
        boot_volume_name=str(data.get("boot_volume_name", d.boot_volume_name)),
    )


def _load_logging_config(data: dict) -> LoggingConfig:
    """Load logging config from TOML data."""
    d = LoggingConfig()

    level = str(data.get("level", d.level)).lower()
    if level not in LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level!r}. Must be one of {LOG_LEVELS}")

    return LoggingConfig(
        level=level,
        max_bytes=int(data.get("max_bytes", d.max_bytes)),
        backup_count=int(data.get("backup_count", d.backup_count)),
    )
