"""Refresh loop for the GPU dashboard.

Each cycle polls every active host, aggregates the outcomes and prints the
rendered table. Nothing from a cycle is kept for the next one.
"""

from __future__ import annotations

import socket
import time
from collections.abc import Callable, Sequence
from datetime import datetime
from enum import Enum

from gpuwatch.core.aggregator import aggregate
from gpuwatch.core.poller import PollExecutor, build_requests
from gpuwatch.models.gpu import DEFAULT_GPU_QUERY, DisplayRecord
from gpuwatch.utils.logging import get_logger
from gpuwatch.utils.output import CycleHeader, OutputFormatter

logger = get_logger("loop")


class LoopState(str, Enum):
    """Lifecycle states of the refresh loop."""

    IDLE = "idle"
    POLLING = "polling"
    RENDERING = "rendering"
    SLEEPING = "sleeping"
    TERMINAL = "terminal"


class RefreshLoop:
    """Polls, aggregates and renders the active hosts on an interval.

    Args:
        hosts: Active hosts in display order.
        executor: Poll executor wrapping the transport.
        formatter: Output formatter for each cycle.
        command: Remote GPU query.
        connect_timeout: Connect timeout in seconds.
        extra_options: ``-o`` style transport options.
        interval: Seconds to sleep between cycles.
        once: Stop after the first cycle.
        sleep: Sleep function, replaceable in tests.
        clock: Timestamp source for cycle headers.

    Example:
        >>> loop = RefreshLoop(["gpu-1"], PollExecutor(ssh), OutputFormatter(), once=True)
        >>> loop.run()
        1
    """

    def __init__(
        self,
        hosts: Sequence[str],
        executor: PollExecutor,
        formatter: OutputFormatter,
        command: str = DEFAULT_GPU_QUERY,
        connect_timeout: int = 10,
        extra_options: Sequence[str] = (),
        interval: float = 5.0,
        once: bool = False,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.hosts = tuple(hosts)
        self.executor = executor
        self.formatter = formatter
        self.command = command
        self.connect_timeout = connect_timeout
        self.extra_options = tuple(extra_options)
        self.interval = interval
        self.once = once
        self._sleep = sleep
        self._clock = clock
        self.local_host = socket.gethostname()
        self.state = LoopState.IDLE

    def poll(self) -> list[DisplayRecord]:
        """Poll every host once and return records in host order."""
        self.state = LoopState.POLLING
        requests = build_requests(
            self.hosts,
            command=self.command,
            connect_timeout=self.connect_timeout,
            extra_options=self.extra_options,
        )
        return aggregate(self.executor.poll(requests))

    def run_cycle(self) -> list[DisplayRecord]:
        """Run a single poll, aggregate and render pass."""
        started = time.monotonic()
        records = self.poll()

        self.state = LoopState.RENDERING
        header = CycleHeader(
            timestamp=self._clock(),
            local_host=self.local_host,
            host_count=len(self.hosts),
        )
        self.formatter.print_cycle(header, records)

        failed = sum(1 for r in records if r.error is not None)
        logger.info(
            f"Cycle finished in {time.monotonic() - started:.2f}s: "
            f"{len(records) - failed} ok, {failed} failed"
        )
        return records

    def run(self, max_cycles: int | None = None) -> int:
        """Run cycles until single-shot mode, ``max_cycles`` or interruption.

        Args:
            max_cycles: Optional cap on the number of cycles.

        Returns:
            Number of completed cycles.
        """
        cycles = 0
        while True:
            self.run_cycle()
            cycles += 1

            if self.once or (max_cycles is not None and cycles >= max_cycles):
                self.state = LoopState.TERMINAL
                return cycles

            self.state = LoopState.SLEEPING
            self._sleep(self.interval)
