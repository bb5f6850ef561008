"""Bounded-concurrency polling of remote hosts.

The poller sends one remote command per host through a thread pool whose
size caps the number of SSH sessions in flight. A new host starts as soon
as any running call returns, so one slow host does not hold back a whole
batch.

Every host gets exactly one :class:`PollOutcome` per cycle. Transport
errors and non-zero exit codes become failure outcomes for that host only;
they are never raised to the caller.
"""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Protocol

from gpuwatch.core.exceptions import GpuWatchError, SSHConnectionError
from gpuwatch.models.gpu import DEFAULT_GPU_QUERY, PollOutcome, PollRequest
from gpuwatch.utils.logging import get_logger

logger = get_logger("poller")

DEFAULT_CONCURRENCY = 8

# Exit status reported for hosts that could not be reached, as ssh(1) does
UNREACHABLE_EXIT_STATUS = 255


class CommandResult(Protocol):
    stdout: str
    stderr: str
    exit_code: int


class Transport(Protocol):
    """Anything that can run a command on an SSH alias."""

    def execute(
        self,
        host: str,
        command: str,
        connect_timeout: int | None = None,
        extra_options: Sequence[str] = (),
    ) -> CommandResult: ...


def build_requests(
    hosts: Sequence[str],
    command: str = DEFAULT_GPU_QUERY,
    connect_timeout: int = 10,
    extra_options: Sequence[str] = (),
) -> list[PollRequest]:
    """Create one request per host for a cycle.

    Args:
        hosts: Active hosts, in display order.
        command: Remote command text.
        connect_timeout: Connect timeout in seconds.
        extra_options: ``-o`` style transport options.

    Returns:
        Requests in the same order as ``hosts``.
    """
    options = tuple(extra_options)
    return [
        PollRequest(
            host=host,
            command=command,
            connect_timeout=connect_timeout,
            extra_options=options,
        )
        for host in hosts
    ]


class PollExecutor:
    """Runs poll requests with at most ``concurrency`` calls in flight.

    Args:
        transport: Object providing ``execute`` (normally
            :class:`gpuwatch.core.ssh.SSHManager`).
        concurrency: Maximum number of simultaneous remote calls.

    Example:
        >>> executor = PollExecutor(SSHManager(), concurrency=4)
        >>> outcomes = executor.poll(build_requests(["gpu-1", "gpu-2"]))
        >>> [o.ok for o in outcomes]
        [True, False]
    """

    def __init__(self, transport: Transport, concurrency: int = DEFAULT_CONCURRENCY) -> None:
        self.transport = transport
        self.concurrency = concurrency

    def worker_count(self, host_count: int) -> int:
        """Number of workers for a cycle with ``host_count`` hosts."""
        return max(1, min(self.concurrency, host_count))

    def poll(self, requests: Sequence[PollRequest]) -> list[PollOutcome]:
        """Run every request and collect one outcome per host.

        Args:
            requests: Requests for distinct hosts.

        Returns:
            Outcomes in the same order as ``requests``, whatever order the
            remote calls finished in.
        """
        if not requests:
            return []

        workers = self.worker_count(len(requests))
        logger.debug(f"Polling {len(requests)} host(s) with {workers} worker(s)")

        # Per-cycle staging: each host key is written by exactly one task
        staged: dict[str, PollOutcome] = {}

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="gpuwatch-poll") as pool:
            futures: dict[Future[PollOutcome], PollRequest] = {
                pool.submit(self.poll_one, request): request for request in requests
            }
            for future in as_completed(futures):
                request = futures[future]
                staged[request.host] = future.result()

        return [staged[request.host] for request in requests]

    def poll_one(self, request: PollRequest) -> PollOutcome:
        """Poll a single host, turning every failure into an outcome.

        Args:
            request: The request to run.

        Returns:
            Success with stdout for exit status 0, otherwise a failure.
        """
        try:
            result = self.transport.execute(
                request.host,
                request.command,
                request.connect_timeout,
                request.extra_options,
            )
        except SSHConnectionError as e:
            logger.info(f"{request.host}: {e.reason}")
            return PollOutcome.failure(request.host, e.reason, UNREACHABLE_EXIT_STATUS)
        except GpuWatchError as e:
            logger.info(f"{request.host}: {e}")
            return PollOutcome.failure(request.host, str(e), UNREACHABLE_EXIT_STATUS)
        except Exception as e:
            logger.exception(f"Unexpected error polling {request.host}")
            return PollOutcome.failure(
                request.host, f"{type(e).__name__}: {e}", UNREACHABLE_EXIT_STATUS
            )

        if result.exit_code == 0:
            return PollOutcome.success(request.host, result.stdout)
        return PollOutcome.failure(request.host, result.stderr, result.exit_code)
