"""Monitoring engine: periodic sampling, rate derivation and publish.

Each tick fans out to every probe concurrently, derives rates from the
previous tick's counters, ranks processes and publishes one Snapshot.
A failing probe contributes its neutral default; the tick still publishes.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, TypeVar

import structlog

from vitality import actions
from vitality.actions import ActionResult
from vitality.aggregator import top_cpu_apps, top_memory_apps
from vitality.config import Config
from vitality.errors import CommandFailedError, CommandLaunchError, CommandTimeoutError, ProbeError
from vitality.formatting import format_uptime
from vitality.models import (
    AppUsage,
    BatteryInfo,
    MemoryUsage,
    NetCounters,
    ProcessRow,
    Snapshot,
    ThermalState,
)
from vitality.probes import ProbeSet
from vitality.rates import RateCache
from vitality.ringbuffer import RingBuffer
from vitality.store import SnapshotStore

log = structlog.get_logger()

T = TypeVar("T")

# Neutral values published when a probe fails
NO_MEMORY = MemoryUsage(used_bytes=0, total_bytes=0, fraction=0.0)
NO_BATTERY = BatteryInfo(max_capacity=0, design_capacity=1, cycle_count=0, present=False)


class MonitorEngine:
    """Owns the sampling loop, the rate cache and the published snapshot.

    Instances are independent: each has its own probes, cache, history and
    store, so several can run side by side (tests do).
    """

    HEARTBEAT_INTERVAL = 30  # ticks between engine_heartbeat log events

    def __init__(
        self,
        config: Config | None = None,
        probes: ProbeSet | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or Config()
        self.probes = probes or ProbeSet(self.config)
        self.store = SnapshotStore()
        self.rates = RateCache()
        self.history = RingBuffer(self.config.sampling.history_size)

        self._clock = clock
        self._tick_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._tick_count = 0
        self._last_tick_duration = 0.0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def tick_count(self) -> int:
        return self._tick_count

    async def start(self) -> None:
        """Begin periodic sampling. The first tick runs without waiting an interval."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._main_loop())
        log.info("engine_started", interval=self.config.sampling.interval)

    async def stop(self) -> None:
        """Stop scheduling ticks and wait for the loop to exit.

        A tick already in flight runs to completion and publishes.
        """
        if self._task is None:
            return
        self._stop_event.set()
        try:
            await self._task
        finally:
            self._task = None
        log.info("engine_stopped", ticks=self._tick_count)

    async def refresh(self) -> Snapshot:
        """Run one tick now and return the snapshot it published."""
        async with self._tick_lock:
            return await self._tick()

    # ─────────────────────────────────────────────────────────────────────────
    # Actions
    # ─────────────────────────────────────────────────────────────────────────

    async def eject(self, target: str) -> ActionResult:
        return await actions.eject(target)

    def kill_process(self, pid: int) -> ActionResult:
        return actions.kill_process(pid)

    # ─────────────────────────────────────────────────────────────────────────
    # Sampling
    # ─────────────────────────────────────────────────────────────────────────

    async def _main_loop(self) -> None:
        """Tick, then sleep for the remainder of the interval until stopped."""
        interval = self.config.sampling.interval
        loop = asyncio.get_running_loop()

        while not self._stop_event.is_set():
            iteration_start = loop.time()
            try:
                await self.refresh()
            except Exception as e:
                log.error("tick_failed", error=str(e))

            sleep_time = interval - (loop.time() - iteration_start)
            if sleep_time <= 0:
                await asyncio.sleep(0)
                continue
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=sleep_time)
                break  # Stop requested during sleep
            except asyncio.TimeoutError:
                pass  # Normal timeout, next tick

    async def _guard(self, probe: str, fetch: Callable[[], Awaitable[T]], default: T) -> T:
        """Await one probe, mapping any failure to its neutral default."""
        try:
            return await fetch()
        except (CommandLaunchError, CommandTimeoutError, CommandFailedError) as e:
            log.warning("probe_failed", probe=probe, error=str(e))
        except ProbeError as e:
            log.debug("probe_unparsed", probe=probe, error=str(e))
        except Exception as e:
            log.warning("probe_failed", probe=probe, error=str(e), error_type=type(e).__name__)
        return default

    async def _sample_network(self) -> tuple[NetCounters, float]:
        """Network counters with the clock read as soon as they arrive."""
        counters = await self.probes.network()
        return counters, self._clock()

    def _rank_apps(
        self, cpu_rows: list[ProcessRow], mem_rows: list[ProcessRow]
    ) -> tuple[tuple[AppUsage, ...], tuple[AppUsage, ...]]:
        filters = self.config.filters
        top_n = self.config.sampling.top_n
        return (
            top_cpu_apps(cpu_rows, top_n=top_n, cpu_floor=filters.cpu_floor),
            top_memory_apps(mem_rows, top_n=top_n, memory_floor_mb=filters.memory_floor_mb),
        )

    async def _tick(self) -> Snapshot:
        started = self._clock()
        probes = self.probes

        results: list[Any] = await asyncio.gather(
            self._guard("cpu", probes.cpu_ticks, None),
            self._guard("memory", probes.memory, NO_MEMORY),
            self._guard("uptime", probes.uptime, None),
            self._guard("battery", probes.battery, NO_BATTERY),
            self._guard("thermal", probes.thermal, ThermalState.NOMINAL),
            self._guard("network", self._sample_network, None),
            self._guard("cpu_processes", probes.cpu_processes, []),
            self._guard("memory_processes", probes.memory_processes, []),
            self._guard("disks", probes.disks, []),
        )
        cpu, memory, uptime, battery, thermal, net_sample, cpu_rows, mem_rows, disks = results
        net, net_time = net_sample if net_sample is not None else (None, 0.0)

        # Deltas come from the previous tick's counters; the cache is
        # updated exactly once, here, after they are computed.
        rates = self.rates.advance(cpu, net, net_time)
        self.history.push(rates.cpu_usage)

        # Bundle name lookups read Info.plist files
        loop = asyncio.get_running_loop()
        top_cpu, top_memory = await loop.run_in_executor(None, self._rank_apps, cpu_rows, mem_rows)

        self._tick_count += 1
        snapshot = Snapshot(
            tick=self._tick_count,
            timestamp=datetime.now(),
            cpu_usage=rates.cpu_usage,
            memory_usage=memory.fraction,
            memory_used_bytes=memory.used_bytes,
            memory_total_bytes=memory.total_bytes,
            battery_health=battery.health,
            battery_cycles=max(battery.cycle_count, 0),
            battery_present=battery.present,
            uptime_seconds=uptime if uptime is not None else 0.0,
            uptime=format_uptime(uptime),
            thermal_state=thermal,
            disks=tuple(disks),
            top_cpu_apps=top_cpu,
            top_memory_apps=top_memory,
            network_rx_rate=rates.rx_rate,
            network_tx_rate=rates.tx_rate,
            cpu_history=self.history.freeze(),
        )
        self.store.publish(snapshot)

        self._last_tick_duration = self._clock() - started
        if self._tick_count % self.HEARTBEAT_INTERVAL == 0:
            log.info(
                "engine_heartbeat",
                ticks=self._tick_count,
                last_tick_ms=round(self._last_tick_duration * 1000, 1),
                history=f"{len(self.history)}/{self.history.capacity}",
                subscribers=self.store.subscriber_count,
            )
        return snapshot
