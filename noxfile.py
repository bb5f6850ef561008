"""Nox sessions for gpuwatch."""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path

import nox

nox.options.default_venv_backend = "uv"
nox.options.reuse_existing_virtualenvs = True
nox.options.sessions = ["lint", "type_check", "tests"]

PYTHON_VERSIONS = ["3.11", "3.12", "3.13"]
PYTHON_DEFAULT = "3.11"

PACKAGE = "gpuwatch"
PYTHON_PATHS = ["src", "tests", "noxfile.py"]

# SSH config used by the smoke session; the hosts are never contacted
SMOKE_SSH_CONFIG = """\
Host *
  ConnectTimeout 2

Host smoke-gpu-1 smoke-gpu-2
  HostName 192.0.2.10

Include conf.d/*.conf
"""


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Run the pytest suite with coverage.

    Usage:
        nox -s tests                       # All Python versions
        nox -s tests-3.12 -- -k poller     # One version, selected tests
    """
    session.install("-e", ".[test]")
    session.run(
        "pytest",
        f"--cov={PACKAGE}",
        "--cov-report=term-missing",
        *session.posargs,
    )


@nox.session(python=PYTHON_DEFAULT)
def lint(session: nox.Session) -> None:
    """Check style and formatting with ruff.

    Usage:
        nox -s lint            # Report problems
        nox -s lint -- --fix   # Fix what ruff can and reformat
    """
    session.install("ruff")

    if "--fix" in session.posargs:
        session.run("ruff", "check", "--fix", *PYTHON_PATHS)
        session.run("ruff", "format", *PYTHON_PATHS)
    else:
        session.run("ruff", "check", *PYTHON_PATHS)
        session.run("ruff", "format", "--check", *PYTHON_PATHS)


@nox.session(python=PYTHON_DEFAULT)
def type_check(session: nox.Session) -> None:
    """Type-check the package with mypy."""
    session.install("-e", ".", "mypy", "types-paramiko", "types-PyYAML")
    session.run("mypy", f"src/{PACKAGE}", *session.posargs)


@nox.session(python=PYTHON_DEFAULT)
def smoke(session: nox.Session) -> None:
    """Run the installed command against a throwaway SSH config.

    Exercises discovery, Include handling and host selection through the
    console script without opening any SSH connection.
    """
    session.install(".")

    with tempfile.TemporaryDirectory() as tmp:
        ssh_dir = Path(tmp)
        (ssh_dir / "conf.d").mkdir()
        (ssh_dir / "conf.d" / "cpu.conf").write_text("Host smoke-cpu\n")
        config = ssh_dir / "config"
        config.write_text(SMOKE_SSH_CONFIG)
        settings = ssh_dir / "settings.yaml"

        session.run(PACKAGE, "--version")
        session.run(PACKAGE, "--settings", str(settings), "-c", str(config), "--list-hosts")
        session.run(
            PACKAGE,
            "--settings",
            str(settings),
            "-c",
            str(config),
            "--list-hosts",
            "--hosts",
            "smoke-gpu-2,smoke-cpu",
            "--format",
            "json",
        )


@nox.session(python=PYTHON_DEFAULT)
def build(session: nox.Session) -> None:
    """Build the wheel and sdist into dist/."""
    session.install("build")

    dist_dir = Path("dist")
    if dist_dir.exists():
        shutil.rmtree(dist_dir)

    session.run("python", "-m", "build")
    session.log(f"Packages built in {dist_dir}/")


@nox.session(python=False)
def clean(session: nox.Session) -> None:
    """Remove build, cache and coverage artifacts."""
    patterns = [
        "build",
        "dist",
        "src/*.egg-info",
        ".pytest_cache",
        ".mypy_cache",
        ".ruff_cache",
        ".coverage",
        ".nox",
    ]
    for pattern in patterns:
        for path in Path().glob(pattern):
            session.log(f"Removing {path}")
            if path.is_dir():
                shutil.rmtree(path)
            else:
                path.unlink()

    for pycache in Path().rglob("__pycache__"):
        shutil.rmtree(pycache)
