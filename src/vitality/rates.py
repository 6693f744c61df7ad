"""Rate metrics derived from monotonically increasing counters."""

from dataclasses import dataclass

from vitality.models import CpuTicks, NetCounters


def cpu_utilization(previous: CpuTicks | None, current: CpuTicks) -> float:
    """Busy fraction between two tick samples: 1 - Δidle / Δtotal.

    Returns 0.0 with no previous sample or when Δtotal is not positive.
    """
    if previous is None:
        return 0.0
    total_delta = current.total - previous.total
    if total_delta <= 0:
        return 0.0
    idle_delta = current.idle - previous.idle
    return max(0.0, min(1.0 - idle_delta / total_delta, 1.0))


def counter_rate(previous: int, current: int, elapsed: float) -> float:
    """Per-second rate of a counter; a reset or wrap (negative delta) gives 0.0."""
    if elapsed <= 0:
        return 0.0
    delta = current - previous
    if delta <= 0:
        return 0.0
    return delta / elapsed


@dataclass(slots=True, frozen=True)
class RateSample:
    """Rates computed for one tick."""

    cpu_usage: float = 0.0
    rx_rate: float = 0.0
    tx_rate: float = 0.0


class RateCache:
    """Previous raw counters needed to compute the next tick's deltas.

    Owned by one engine. advance() computes this tick's rates from the cached
    values first and only then stores the new counters, once per tick. A probe
    that failed this tick passes None and leaves its cached value untouched.
    """

    def __init__(self) -> None:
        self.cpu: CpuTicks | None = None
        self.net: NetCounters | None = None
        self.net_time: float | None = None

    def advance(
        self,
        cpu: CpuTicks | None,
        net: NetCounters | None,
        net_time: float,
    ) -> RateSample:
        """Rates for this tick. net_time is the clock reading taken when net was sampled."""
        cpu_usage = 0.0
        if cpu is not None:
            cpu_usage = cpu_utilization(self.cpu, cpu)

        rx_rate = tx_rate = 0.0
        if net is not None and self.net is not None and self.net_time is not None:
            elapsed = net_time - self.net_time
            rx_rate = counter_rate(self.net.rx_bytes, net.rx_bytes, elapsed)
            tx_rate = counter_rate(self.net.tx_bytes, net.tx_bytes, elapsed)

        if cpu is not None:
            self.cpu = cpu
        if net is not None:
            self.net = net
            self.net_time = net_time

        return RateSample(cpu_usage=cpu_usage, rx_rate=rx_rate, tx_rate=tx_rate)

    def reset(self) -> None:
        """Forget cached counters; the next tick behaves like the first."""
        self.cpu = None
        self.net = None
        self.net_time = None
