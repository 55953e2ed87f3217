"""Version manager installation, shell activation and runtime installs."""

from __future__ import annotations

import logging
import os
import tempfile
import urllib.error
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping

from .config import DEFAULT_INSTALLER_URL
from .errors import (
    CommandError,
    InstallVerificationFailed,
    RuntimeInstallerDownloadFailed,
    RuntimeInstallFailed,
)
from .host import GENERIC_SHELL, Context
from .models import StepOutcome

logger = logging.getLogger(__name__)

Downloader = Callable[[str, Path], None]


@dataclass(frozen=True)
class ShellProfile:
    """Where and how to activate the version manager for one shell."""

    shell: str
    startup_file: Path
    block: str
    marker: str


def shell_profile(shell: str, home: Path, *, os_family: str = "linux", tool: str = "mise") -> ShellProfile:
    """Return the startup file and activation block for ``shell``."""

    marker = f"{tool} activate"
    if shell == "zsh":
        startup = home / ".zshrc"
        body = f'export PATH="$HOME/.local/bin:$PATH"\neval "$({tool} activate zsh)"\n'
    elif shell == "bash":
        # macOS terminals start login shells, which read .bash_profile.
        startup = home / (".bash_profile" if os_family == "darwin" else ".bashrc")
        body = f'export PATH="$HOME/.local/bin:$PATH"\neval "$({tool} activate bash)"\n'
    elif shell == "fish":
        startup = home / ".config" / "fish" / "config.fish"
        body = f"fish_add_path $HOME/.local/bin\n{tool} activate fish | source\n"
    else:
        shell = GENERIC_SHELL
        startup = home / ".profile"
        marker = f"{tool}/shims"
        body = f'export PATH="$HOME/.local/bin:$HOME/.local/share/{tool}/shims:$PATH"\n'

    return ShellProfile(shell=shell, startup_file=startup, block=f"\n# {tool}\n{body}", marker=marker)


def persist_activation(profile: ShellProfile) -> bool:
    """Append the activation block unless the marker is already present.

    Returns ``True`` if the startup file was changed.
    """

    path = profile.startup_file
    existing = path.read_text() if path.exists() else ""
    if profile.marker in existing:
        logger.debug("%s already activates via %r", path, profile.marker)
        return False

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a") as handle:
        if existing and not existing.endswith("\n"):
            handle.write("\n")
        handle.write(profile.block)
    logger.info("Added activation block to %s", path)
    return True


def download_installer(url: str, destination: Path, *, timeout: float = 60.0) -> None:
    """Fetch ``url`` into ``destination``."""

    logger.info("Downloading %s", url)
    try:
        with urllib.request.urlopen(url, timeout=timeout) as response:
            destination.write_bytes(response.read())
    except (urllib.error.URLError, OSError) as exc:
        raise RuntimeInstallerDownloadFailed(f"Could not download installer from {url}: {exc}") from exc


class RuntimeInstaller:
    """Keeps the user-local version manager present and runtimes installed."""

    def __init__(
        self,
        context: Context,
        *,
        tool: str = "mise",
        installer_url: str = DEFAULT_INSTALLER_URL,
        downloader: Downloader = download_installer,
        dry_run: bool = False,
    ) -> None:
        self.context = context
        self.tool = tool
        self.installer_url = installer_url
        self.downloader = downloader
        self.dry_run = dry_run

    @property
    def local_bin(self) -> Path:
        return self.context.home / ".local" / "bin"

    def ensure_version_manager(self) -> StepOutcome:
        """Install the version manager if missing, then persist activation."""

        prober = self.context.prober
        prober.prepend(self.local_bin)

        if prober.present(self.tool):
            logger.info("%s already installed", self.tool)
            outcome = StepOutcome.SKIPPED
        elif self.dry_run:
            logger.info("Dry run: would install %s from %s", self.tool, self.installer_url)
            return StepOutcome.SKIPPED
        else:
            self._run_installer()
            if not prober.present(self.tool):
                raise InstallVerificationFailed(
                    f"{self.tool} is still not on PATH after running the installer from {self.installer_url}"
                )
            logger.info("Installed %s", self.tool)
            outcome = StepOutcome.SUCCEEDED

        self.persist_activation()
        return outcome

    def persist_activation(self) -> bool:
        host = self.context.capabilities()
        profile = shell_profile(host.shell, self.context.home, os_family=host.os_family, tool=self.tool)
        if self.dry_run:
            logger.info("Dry run: would add %s activation to %s", self.tool, profile.startup_file)
            return False
        return persist_activation(profile)

    def install_runtimes(self, runtimes: Mapping[str, str]) -> list[RuntimeInstallFailed]:
        """Install each declared runtime; failures are returned, not raised."""

        executable = self.context.prober.which(self.tool)
        if executable is None and self.dry_run:
            logger.info("Dry run: %s is not installed; skipping runtime installs", self.tool)
            return []
        if executable is None:
            raise InstallVerificationFailed(f"{self.tool} is not available to install runtimes")

        if not runtimes:
            targets = [None]
        else:
            targets = [f"{name}@{version}" for name, version in runtimes.items()]

        failures: list[RuntimeInstallFailed] = []
        for spec in targets:
            argv = [executable, "install"] if spec is None else [executable, "install", spec]
            try:
                self.context.runner.run(argv)
            except CommandError as exc:
                failure = RuntimeInstallFailed(f"Runtime install failed for {spec or 'configured tools'}: {exc}")
                logger.warning("%s", failure)
                failures.append(failure)
        return failures

    def _run_installer(self) -> None:
        fd, temp_name = tempfile.mkstemp(prefix=f"{self.tool}-installer-", suffix=".sh")
        os.close(fd)
        script = Path(temp_name)
        try:
            script.chmod(0o700)
            self.downloader(self.installer_url, script)
            try:
                self.context.runner.run(["sh", str(script)])
            except CommandError as exc:
                raise InstallVerificationFailed(f"{self.tool} installer failed: {exc}") from exc
        finally:
            script.unlink(missing_ok=True)
