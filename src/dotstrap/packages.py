"""System package manager adapter."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from .errors import CommandError, NoPackageManagerFound, PackageInstallFailed
from .host import Context, Prober

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PackageManager:
    """How to drive one system package manager non-interactively."""

    name: str
    install: tuple[str, ...]
    refresh: tuple[str, ...] = ()
    needs_root: bool = True
    env: tuple[tuple[str, str], ...] = ()

    @property
    def binary(self) -> str:
        return self.install[0]


# Tried in order; the first manager whose binary is present wins.
PACKAGE_MANAGERS: tuple[PackageManager, ...] = (
    PackageManager(
        name="apt",
        install=("apt-get", "install", "-y", "--no-install-recommends"),
        refresh=("apt-get", "update"),
        env=(("DEBIAN_FRONTEND", "noninteractive"),),
    ),
    PackageManager(name="apk", install=("apk", "add", "--no-cache")),
    PackageManager(name="dnf", install=("dnf", "install", "-y")),
    PackageManager(name="yum", install=("yum", "install", "-y")),
    PackageManager(name="pacman", install=("pacman", "-S", "--noconfirm", "--needed")),
    PackageManager(name="zypper", install=("zypper", "--non-interactive", "install")),
    PackageManager(name="brew", install=("brew", "install"), needs_root=False),
)


def detect_package_manager(
    prober: Prober,
    managers: Sequence[PackageManager] = PACKAGE_MANAGERS,
) -> PackageManager | None:
    for manager in managers:
        if prober.present(manager.binary):
            return manager
    return None


class PackageInstaller:
    """Installs named packages with the first available package manager."""

    def __init__(self, context: Context, managers: Sequence[PackageManager] = PACKAGE_MANAGERS) -> None:
        self.context = context
        self.managers = tuple(managers)
        self._manager: PackageManager | None = None
        self._refreshed = False

    @property
    def manager(self) -> PackageManager:
        if self._manager is None:
            self._manager = detect_package_manager(self.context.prober, self.managers)
            if self._manager is None:
                names = ", ".join(m.binary for m in self.managers)
                raise NoPackageManagerFound(f"No supported package manager found (tried {names})")
            logger.info("Using package manager %s", self._manager.name)
        return self._manager

    def install(self, packages: Sequence[str]) -> None:
        """Install ``packages``; raises ``PackageInstallFailed`` on error."""

        if not packages:
            return
        manager = self.manager

        if manager.refresh and not self._refreshed:
            try:
                self._run(manager, manager.refresh)
            except CommandError as exc:
                logger.warning("Package index refresh failed: %s", exc)
            self._refreshed = True

        try:
            self._run(manager, (*manager.install, *packages))
        except CommandError as exc:
            raise PackageInstallFailed(packages, str(exc)) from exc

    def _run(self, manager: PackageManager, argv: Sequence[str]) -> None:
        self.context.runner.run(self._elevate(manager, argv), env=dict(manager.env))

    def _elevate(self, manager: PackageManager, argv: Sequence[str]) -> list[str]:
        argv = list(argv)
        if not manager.needs_root or self.context.is_root:
            return argv
        if not self.context.prober.present("sudo"):
            logger.warning("sudo is not available; running %s unprivileged", manager.binary)
            return argv
        env_args = [f"{key}={value}" for key, value in manager.env]
        if env_args:
            return ["sudo", "env", *env_args, *argv]
        return ["sudo", *argv]
