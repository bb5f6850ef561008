"""Selection of the hosts to poll.

Turns the discovered alias set plus an optional ``--hosts`` allow-list
into the ordered list of hosts polled every cycle.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from gpuwatch.core.exceptions import NoActiveHostsError
from gpuwatch.utils.logging import get_logger

logger = get_logger("hosts")


@dataclass(frozen=True)
class HostSelection:
    """Hosts chosen for polling.

    Attributes:
        active: Hosts to poll, in display order.
        missing: Allow-listed hosts that were not discovered.
    """

    active: tuple[str, ...]
    missing: tuple[str, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.active)


def parse_host_filter(value: str | Iterable[str] | None) -> list[str]:
    """Split a comma-separated allow-list into clean host names.

    Whitespace around names is trimmed; empty and repeated entries are
    dropped while keeping first-seen order.

    Args:
        value: A string like ``"gpu-1, gpu-2"`` or an iterable of such
            strings (one per ``--hosts`` occurrence).

    Returns:
        Host names in the order given.

    Example:
        >>> parse_host_filter("gpu-1, gpu-2,,gpu-1")
        ['gpu-1', 'gpu-2']
    """
    if value is None:
        return []
    chunks = [value] if isinstance(value, str) else list(value)

    names: list[str] = []
    for chunk in chunks:
        for item in chunk.split(","):
            name = item.strip()
            if name and name not in names:
                names.append(name)
    return names


def select_hosts(
    discovered: Iterable[str],
    allow_list: Iterable[str] | None = None,
) -> HostSelection:
    """Choose the active hosts for a run.

    Without an allow-list every discovered host is active, sorted by code
    point (locale independent). With an allow-list the requested hosts
    that exist are active in the order they were requested, and the rest
    are reported as missing.

    Args:
        discovered: Aliases found in the SSH config. Not modified.
        allow_list: Optional host names to restrict polling to.

    Returns:
        The selection.

    Raises:
        NoActiveHostsError: If no host is left to poll.
    """
    known = sorted(set(discovered))
    requested = parse_host_filter(allow_list) if allow_list is not None else []

    if not requested:
        if not known:
            raise NoActiveHostsError()
        return HostSelection(active=tuple(known))

    known_set = set(known)
    active = tuple(name for name in requested if name in known_set)
    missing = tuple(name for name in requested if name not in known_set)

    if missing:
        logger.debug(f"Requested hosts not in SSH config: {', '.join(missing)}")

    if not active:
        raise NoActiveHostsError(requested)

    return HostSelection(active=active, missing=missing)
