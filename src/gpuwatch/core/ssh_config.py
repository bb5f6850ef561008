"""Host discovery from OpenSSH client configuration files.

The parser walks ``~/.ssh/config`` (or any other root file), follows
``Include`` directives through ``~`` and glob expansion, and collects every
concrete alias named on a ``Host`` line. Wildcard patterns are skipped since
a pattern cannot be polled. ``Match`` blocks are recognized and ignored, so
hosts that are only reachable through a ``Match`` block are not discovered.

Every file is keyed by its canonical path in a visited set before it is
read, which makes include cycles terminate and keeps re-included files from
contributing duplicates.

Besides the host set, the parser keeps the directives of all files with
includes spliced in place. :mod:`gpuwatch.core.ssh` feeds them to
:class:`paramiko.SSHConfig` to resolve connection parameters for an alias.
"""

from __future__ import annotations

import glob
import os
import re
from dataclasses import dataclass
from pathlib import Path

from gpuwatch.core.exceptions import ConfigNotFoundError, NoHostsFoundError
from gpuwatch.utils.logging import get_logger

logger = get_logger("ssh_config")

DEFAULT_SSH_CONFIG = "~/.ssh/config"

WILDCARD_CHARS = ("*", "?")

_COMMENT_RE = re.compile(r"(?<!\\)#.*$")
_DIRECTIVE_RE = re.compile(r"^(?P<keyword>[^\s=]+)(?:\s*=\s*|\s+)?(?P<rest>.*)$")


@dataclass(frozen=True)
class DiscoveryResult:
    """Outcome of one discovery pass.

    Attributes:
        root: Canonical path of the root config file.
        hosts: Concrete host aliases found across all visited files.
        files: Visited config files, in the order they were parsed.
        directives: Directive lines with includes spliced in place and
            ``Match`` blocks removed.
    """

    root: Path
    hosts: frozenset[str]
    files: tuple[Path, ...]
    directives: tuple[str, ...] = ()

    def to_ssh_config_text(self) -> str:
        """Render the flattened directives as one config document."""
        return "\n".join(self.directives) + "\n" if self.directives else ""


def strip_comment(line: str) -> str:
    """Remove a trailing comment and surrounding whitespace.

    A ``#`` preceded by a backslash is kept as a literal ``#``.
    """
    return _COMMENT_RE.sub("", line).replace("\\#", "#").strip()


def split_directive(line: str) -> tuple[str, str]:
    """Split a cleaned line into a lowercase keyword and its remainder.

    Both ``Keyword value`` and ``Keyword=value`` forms are accepted.
    """
    match = _DIRECTIVE_RE.match(line)
    if match is None:
        return line.lower(), ""
    return match.group("keyword").lower(), match.group("rest").strip()


def is_concrete_alias(token: str) -> bool:
    """Check whether a ``Host`` token names a single pollable host."""
    if not token or token.startswith("!"):
        return False
    return not any(ch in token for ch in WILDCARD_CHARS)


class SSHConfigParser:
    """Recursive, cycle-safe parser for SSH client config files.

    One instance performs one discovery pass; its visited set and host set
    are private to that pass.

    Args:
        root: Path of the root config file. ``~`` is expanded.

    Example:
        >>> result = SSHConfigParser("~/.ssh/config").parse()
        >>> sorted(result.hosts)
        ['gpu-a100-1', 'gpu-a100-2', 'workstation']
    """

    def __init__(self, root: str | Path = DEFAULT_SSH_CONFIG) -> None:
        self.root = Path(root).expanduser()
        self._base_dir = self.root.parent
        self._visited: set[Path] = set()
        self._files: list[Path] = []
        self._hosts: set[str] = set()
        self._directives: list[str] = []

    def parse(self) -> DiscoveryResult:
        """Run discovery from the root file.

        Returns:
            The discovered hosts and bookkeeping for alias resolution.

        Raises:
            ConfigNotFoundError: If the root file does not exist or cannot
                be read.
            NoHostsFoundError: If no concrete host is defined anywhere.
        """
        if not self.root.is_file():
            raise ConfigNotFoundError(str(self.root))

        try:
            root_path = self.root.resolve(strict=True)
            root_lines = self._read_lines(root_path)
        except OSError as e:
            raise ConfigNotFoundError(str(self.root), e.strerror or str(e)) from e

        self._visited.add(root_path)
        self._files.append(root_path)
        self._parse_lines(root_path, root_lines)

        logger.debug(
            f"Discovered {len(self._hosts)} host(s) in {len(self._files)} file(s) "
            f"from {root_path}"
        )

        if not self._hosts:
            raise NoHostsFoundError(str(self.root), files_scanned=len(self._files))

        return DiscoveryResult(
            root=root_path,
            hosts=frozenset(self._hosts),
            files=tuple(self._files),
            directives=tuple(self._directives),
        )

    def _read_lines(self, path: Path) -> list[str]:
        with path.open("r", encoding="utf-8", errors="replace") as f:
            return f.read().splitlines()

    def _parse_file(self, path: Path) -> None:
        """Parse an included file, skipping it if unreadable or already seen."""
        try:
            canonical = path.resolve(strict=True)
        except (OSError, RuntimeError):
            logger.debug(f"Skipping missing include: {path}")
            return

        if canonical in self._visited:
            logger.debug(f"Skipping already visited include: {canonical}")
            return
        self._visited.add(canonical)

        try:
            lines = self._read_lines(canonical)
        except OSError as e:
            logger.debug(f"Skipping unreadable include {canonical}: {e}")
            return

        self._files.append(canonical)
        self._parse_lines(canonical, lines)

    def _parse_lines(self, path: Path, lines: list[str]) -> None:
        in_match_block = False

        for number, raw in enumerate(lines, start=1):
            line = strip_comment(raw)
            if not line:
                continue

            keyword, rest = split_directive(line)

            if keyword == "include":
                for include_path in self._expand_include(rest):
                    self._parse_file(include_path)
                continue

            if keyword == "match":
                logger.debug(f"Ignoring Match block at {path}:{number}")
                in_match_block = True
                continue

            if keyword == "host":
                in_match_block = False
                for token in rest.split():
                    if is_concrete_alias(token):
                        self._hosts.add(token)

            if not in_match_block:
                self._directives.append(line)

    def _expand_include(self, rest: str) -> list[Path]:
        """Expand the patterns of an ``Include`` directive to candidate paths.

        Relative patterns are anchored at the root config's directory. A
        pattern without glob matches is returned literally so that a
        plain file name is still attempted.
        """
        paths: list[Path] = []
        for pattern in rest.split():
            expanded = os.path.expanduser(pattern)
            if not os.path.isabs(expanded):
                expanded = str(self._base_dir / expanded)

            matches = sorted(glob.glob(expanded))
            if not matches:
                matches = [expanded]
            paths.extend(Path(m) for m in matches)
        return paths


def discover_hosts(path: str | Path = DEFAULT_SSH_CONFIG) -> DiscoveryResult:
    """Discover host aliases from an SSH config file and its includes.

    Args:
        path: Root config file.

    Returns:
        A fresh :class:`DiscoveryResult`.
    """
    return SSHConfigParser(path).parse()
