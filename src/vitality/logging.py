"""Two log sinks: Rich lines on the terminal, structlog JSON Lines on disk.

CLI commands report to the user through the console helpers below. Engine,
probe and action modules only ever call structlog, whose output goes to the
rotating file once configure() has run.
"""

from __future__ import annotations

import logging
import logging.handlers
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from rich.console import Console

if TYPE_CHECKING:
    from vitality.config import Config

# Rich console for colorful human-readable output
_console = Console(highlight=False)


# ─────────────────────────────────────────────────────────────────────────────
# Icons
# ─────────────────────────────────────────────────────────────────────────────


class Icon:
    """Icon vocabulary for console output."""

    OK = "[bold green]✓[/]"
    FAIL = "[bold red]✗[/]"
    WAIT = "⏳"
    EJECT = "⏏"
    KILL = "[red]☠[/]"
    TICK = "[magenta]♡[/]"


_LEVEL_STYLES = {
    "info": "[bright_blue]\\[info][/]",
    "warn": "[yellow]\\[warn][/]",
    "error": "[bold red]\\[err][/] ",
}


# ─────────────────────────────────────────────────────────────────────────────
# Core Functions
# ─────────────────────────────────────────────────────────────────────────────


def log(level: str, msg: str, icon: str = "") -> None:
    """Print "HH:MM:SS [level] icon msg". msg may carry Rich markup."""
    parts = [f"[dim]{datetime.now():%H:%M:%S}[/]", _LEVEL_STYLES.get(level, f"[{level}]")]
    if icon:
        parts.append(icon)
    parts.append(msg)
    _console.print(" ".join(parts))


def info(msg: str, icon: str = "") -> None:
    """Console line at info level."""
    log("info", msg, icon)


def warn(msg: str, icon: str = "") -> None:
    """Console line at warn level."""
    log("warn", msg, icon)


def error(msg: str, icon: str = "") -> None:
    """Console line at error level."""
    log("error", msg, icon)


def usage_color(fraction: float) -> str:
    """Return Rich color name for a utilization fraction."""
    if fraction >= 0.85:
        return "bright_red"
    if fraction >= 0.6:
        return "bright_yellow"
    return "green"


# ─────────────────────────────────────────────────────────────────────────────
# Domain Helpers
# ─────────────────────────────────────────────────────────────────────────────


def engine_started(interval: float) -> None:
    """Log sampling engine started."""
    info(f"Sampling every [cyan]{interval}s[/]", Icon.OK)


def engine_stopped(ticks: int) -> None:
    """Log sampling engine stopped."""
    info(f"Stopped after [cyan]{ticks}[/] ticks", Icon.OK)


def tick_summary(cpu: float, memory: float, rx: str, tx: str, uptime: str) -> None:
    """Log a one-line summary of a published snapshot."""
    info(
        f"cpu [{usage_color(cpu)}]{cpu:.0%}[/] "
        f"mem [{usage_color(memory)}]{memory:.0%}[/] "
        f"[dim]↓{rx} ↑{tx} up {uptime}[/]",
        Icon.TICK,
    )


def eject_result(target: str, ok: bool, message: str = "") -> None:
    """Log eject outcome."""
    if ok:
        info(f"Ejected [cyan]{target}[/]", Icon.EJECT)
    else:
        error(f"Eject [cyan]{target}[/] failed: {message}", Icon.FAIL)


def kill_result(pid: int, ok: bool, message: str = "") -> None:
    """Log kill outcome."""
    if ok:
        info(f"Killed PID [cyan]{pid}[/]", Icon.KILL)
    else:
        error(f"Kill PID [cyan]{pid}[/] failed: {message}", Icon.FAIL)


def config_created(path: str) -> None:
    """Log config file created."""
    info(f"Created config at [cyan]{path}[/]")


# ─────────────────────────────────────────────────────────────────────────────
# Structlog Configuration
# ─────────────────────────────────────────────────────────────────────────────


def _add_source(source: str) -> structlog.types.Processor:
    """Create a processor that adds a source field to log events."""

    def processor(
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        event_dict["source"] = source
        return event_dict

    return processor


def configure(config: Config) -> None:
    """Configure structlog to write JSON Lines to a rotating log file.

    Args:
        config: Application config with paths and log settings
    """
    level = getattr(logging, config.logging.level.upper(), logging.INFO)

    config.state_dir.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        config.log_path,
        maxBytes=config.logging.max_bytes,
        backupCount=config.logging.backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
                structlog.processors.add_log_level,
                _add_source("engine"),
                structlog.processors.format_exc_info,
            ],
        )
    )

    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(level)
    stdlib_root.handlers.clear()
    stdlib_root.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
            structlog.processors.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_structlog() -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance for JSON file output."""
    return structlog.get_logger()
