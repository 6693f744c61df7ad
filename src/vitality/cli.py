"""CLI commands for vitality."""

import click

from vitality.config import Config


def _load_config() -> Config:
    """Load config and route structlog output to the log file."""
    from vitality.logging import configure

    try:
        config = Config.load()
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    configure(config)
    return config


@click.group()
@click.version_option()
def main() -> None:
    """Sample CPU, memory, battery, disks and network on macOS."""
    pass


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print the snapshot as JSON")
@click.option(
    "--samples",
    "-s",
    default=2,
    type=click.IntRange(min=1),
    help="Ticks to run before printing (rates need at least 2)",
)
def snapshot(as_json: bool, samples: int) -> None:
    """Take a snapshot and print it."""
    import asyncio
    import json

    from vitality.engine import MonitorEngine

    config = _load_config()
    engine = MonitorEngine(config)

    async def collect():
        snap = await engine.refresh()
        for _ in range(samples - 1):
            await asyncio.sleep(config.sampling.interval)
            snap = await engine.refresh()
        return snap

    snap = asyncio.run(collect())

    if as_json:
        click.echo(json.dumps(snap.to_dict(), indent=2))
        return

    _print_snapshot(snap)


def _print_snapshot(snap) -> None:
    from vitality.formatting import format_bytes, format_rate

    click.echo(f"CPU:      {snap.cpu_usage:.0%}")
    click.echo(
        f"Memory:   {snap.memory_usage:.0%} "
        f"({format_bytes(snap.memory_used_bytes)} of {format_bytes(snap.memory_total_bytes)})"
    )
    if snap.battery_present:
        click.echo(f"Battery:  {snap.battery_health:.0%} health, {snap.battery_cycles} cycles")
    else:
        click.echo("Battery:  not present")
    click.echo(f"Uptime:   {snap.uptime}")
    click.echo(f"Thermal:  {snap.thermal_state.value}")
    click.echo(f"Network:  ↓ {format_rate(snap.network_rx_rate)}  ↑ {format_rate(snap.network_tx_rate)}")

    if snap.disks:
        click.echo("\nDisks:")
        for disk in snap.disks:
            eject = " [ejectable]" if disk.is_ejectable else ""
            click.echo(
                f"  {disk.name} ({disk.device_identifier}) {disk.mount_path}: "
                f"{format_bytes(disk.used_bytes)} / {format_bytes(disk.total_bytes)}{eject}"
            )

    if snap.top_cpu_apps:
        click.echo("\nTop CPU:")
        for app in snap.top_cpu_apps:
            click.echo(f"  {app.cpu_percent:6.1f}%  {app.name} (PID {app.pid})")

    if snap.top_memory_apps:
        click.echo("\nTop memory:")
        for app in snap.top_memory_apps:
            click.echo(f"  {app.memory_mb:8.1f} MB  {app.name}")


@main.command()
@click.option("--count", "-n", default=0, type=click.IntRange(min=0), help="Stop after N ticks (0 = forever)")
def watch(count: int) -> None:
    """Print a summary line for every tick until interrupted."""
    import asyncio
    from contextlib import aclosing

    from vitality.engine import MonitorEngine
    from vitality.formatting import format_rate
    from vitality.logging import engine_started, engine_stopped, tick_summary

    config = _load_config()
    engine = MonitorEngine(config)

    async def run() -> None:
        seen = 0
        async with aclosing(engine.store.updates()) as updates:
            await engine.start()
            engine_started(config.sampling.interval)
            try:
                async for snap in updates:
                    tick_summary(
                        snap.cpu_usage,
                        snap.memory_usage,
                        format_rate(snap.network_rx_rate),
                        format_rate(snap.network_tx_rate),
                        snap.uptime,
                    )
                    seen += 1
                    if count and seen >= count:
                        break
            finally:
                await engine.stop()
                engine_stopped(engine.tick_count)

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


@main.command()
@click.argument("target")
def eject(target: str) -> None:
    """Eject the disk at a mount path or device identifier."""
    import asyncio

    from vitality.actions import eject as eject_disk
    from vitality.logging import eject_result

    _load_config()
    result = asyncio.run(eject_disk(target))
    eject_result(target, result.ok, result.message)
    if not result.ok:
        raise SystemExit(1)


@main.command()
@click.argument("pid", type=int)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
def kill(pid: int, yes: bool) -> None:
    """Force-kill a process by PID."""
    from vitality.actions import kill_process
    from vitality.logging import kill_result

    _load_config()
    if not yes:
        click.confirm(f"Send SIGKILL to PID {pid}?", abort=True)

    result = kill_process(pid)
    kill_result(pid, result.ok, result.message)
    if not result.ok:
        raise SystemExit(1)


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
def config_show() -> None:
    """Display current configuration."""
    try:
        cfg = Config.load()
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Config file: {cfg.config_path}")
    click.echo(f"Exists: {cfg.config_path.exists()}")
    click.echo()
    click.echo("[sampling]")
    click.echo(f"  interval = {cfg.sampling.interval}")
    click.echo(f"  history_size = {cfg.sampling.history_size}")
    click.echo(f"  command_timeout = {cfg.sampling.command_timeout}")
    click.echo(f"  top_n = {cfg.sampling.top_n}")
    click.echo(f"  memory_mode = {cfg.sampling.memory_mode}")
    click.echo()
    click.echo("[filters]")
    click.echo(f"  cpu_floor = {cfg.filters.cpu_floor}")
    click.echo(f"  memory_floor_mb = {cfg.filters.memory_floor_mb}")
    click.echo(f"  ignored_volumes = {cfg.filters.ignored_volumes}")
    click.echo(f"  boot_volume_name = {cfg.filters.boot_volume_name}")
    click.echo()
    click.echo("[logging]")
    click.echo(f"  level = {cfg.logging.level}")
    click.echo(f"  max_bytes = {cfg.logging.max_bytes}")
    click.echo(f"  backup_count = {cfg.logging.backup_count}")


@config.command("reset")
@click.confirmation_option(prompt="Reset config to defaults?")
def config_reset() -> None:
    """Reset configuration to defaults."""
    from vitality.logging import config_created

    cfg = Config()
    cfg.save()
    config_created(str(cfg.config_path))


@config.command("path")
def config_path() -> None:
    """Print the config file path."""
    click.echo(Config().config_path)
