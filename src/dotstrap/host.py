"""Capability probing and the per-run context shared by components."""

from __future__ import annotations

import logging
import os
import platform
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from .command import CommandRunner, SubprocessRunner
from .models import HostCapabilities

logger = logging.getLogger(__name__)

SUPPORTED_SHELLS = ("zsh", "bash", "fish")
GENERIC_SHELL = "sh"
OS_RELEASE_PATH = Path("/etc/os-release")


class Prober:
    """Answers "is this executable on the search path?".

    The search path is held explicitly so that components never depend on
    process-wide ``PATH`` mutations made by earlier steps.
    """

    def __init__(self, path: str | None = None) -> None:
        self.path = path if path is not None else os.environ.get("PATH", os.defpath)

    def present(self, name: str) -> bool:
        return self.which(name) is not None

    def which(self, name: str) -> str | None:
        return shutil.which(name, path=self.path)

    def prepend(self, directory: Path) -> None:
        """Put ``directory`` first on the search path if it is not there yet."""

        entries = self.path.split(os.pathsep) if self.path else []
        text = str(directory)
        if text in entries:
            return
        self.path = os.pathsep.join([text, *entries])


def detect_shell(env: Mapping[str, str], prober: Prober) -> str:
    """Return the user's shell: ``$SHELL`` first, then zsh, bash, generic."""

    raw = env.get("SHELL")
    if raw:
        name = Path(raw).name
        return name if name in SUPPORTED_SHELLS else GENERIC_SHELL
    if prober.present("zsh"):
        return "zsh"
    if prober.present("bash"):
        return "bash"
    return GENERIC_SHELL


def detect_os_family(os_release: Path = OS_RELEASE_PATH) -> str:
    system = platform.system()
    if system == "Darwin":
        return "darwin"
    if system != "Linux":
        return system.lower() or "unknown"

    try:
        text = os_release.read_text()
    except OSError:
        return "linux"
    for line in text.splitlines():
        key, _, value = line.partition("=")
        if key.strip() == "ID" and value.strip():
            return value.strip().strip('"').strip("'")
    return "linux"


def detect_host(prober: Prober, env: Mapping[str, str] | None = None) -> HostCapabilities:
    # Imported here to avoid a cycle: packages depends on Prober.
    from .packages import detect_package_manager

    env = os.environ if env is None else env
    manager = detect_package_manager(prober)
    return HostCapabilities(
        os_family=detect_os_family(),
        shell=detect_shell(env, prober),
        package_manager=manager.name if manager else None,
    )


def _is_root() -> bool:
    geteuid = getattr(os, "geteuid", None)
    return bool(geteuid and geteuid() == 0)


@dataclass
class Context:
    """Explicit state handed to every component for one run."""

    home: Path
    runner: CommandRunner = field(default_factory=SubprocessRunner)
    prober: Prober = field(default_factory=Prober)
    env: Mapping[str, str] = field(default_factory=lambda: dict(os.environ))
    is_root: bool = field(default_factory=_is_root)
    host: HostCapabilities | None = None

    @classmethod
    def from_environment(cls, *, dry_run: bool = False) -> "Context":
        return cls(home=Path.home(), runner=SubprocessRunner(dry_run=dry_run))

    def capabilities(self) -> HostCapabilities:
        """Detect host capabilities once per context."""

        if self.host is None:
            self.host = detect_host(self.prober, self.env)
            logger.info(
                "Host: os=%s shell=%s package_manager=%s",
                self.host.os_family,
                self.host.shell,
                self.host.package_manager or "none",
            )
        return self.host
