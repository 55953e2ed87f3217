"""Error taxonomy for dotstrap.

Every error carries a ``fatal`` flag. The orchestrator aborts the run on fatal
errors and logs-and-continues on recoverable ones.
"""

from __future__ import annotations

from typing import Sequence


class DotstrapError(RuntimeError):
    """Base class for failures raised by dotstrap components."""

    fatal: bool = True

    def __init__(self, message: str, *, fatal: bool | None = None) -> None:
        super().__init__(message)
        if fatal is not None:
            self.fatal = fatal


class ConfigError(DotstrapError):
    """Raised when a configuration file cannot be parsed or validated."""


class CommandError(DotstrapError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr.strip()}" if stderr.strip() else ""
        super().__init__(f"Command failed ({returncode}): {' '.join(self.argv)}{detail}")


class NoPackageManagerFound(DotstrapError):
    """No supported system package manager is available."""


class PackageInstallFailed(DotstrapError):
    """The package manager failed to install one or more packages."""

    def __init__(self, packages: Sequence[str], reason: str, *, fatal: bool | None = None) -> None:
        self.packages = tuple(packages)
        super().__init__(f"Failed to install {', '.join(self.packages)}: {reason}", fatal=fatal)


class RuntimeInstallerDownloadFailed(DotstrapError):
    """The version-manager installer script could not be downloaded."""


class InstallVerificationFailed(DotstrapError):
    """An installer ran but the tool is still not resolvable."""


class RuntimeInstallFailed(DotstrapError):
    """A declared runtime could not be installed by the version manager."""

    fatal = False


class RepoCloneFailed(DotstrapError):
    """The configuration repository could not be cloned."""


class RepoPullFailed(DotstrapError):
    """The local working copy could not be fast-forwarded."""

    fatal = False


class PackageDirectoryDeployFailed(DotstrapError):
    """A single package directory could not be deployed."""

    fatal = False

    def __init__(self, package: str, reason: str) -> None:
        self.package = package
        super().__init__(f"Package '{package}' failed to deploy: {reason}")
