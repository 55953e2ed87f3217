"""Core package for the dotstrap project."""

from .cli import app, run
from .config import Config, Settings, ToolSpec, load_config
from .deploy import DeploymentEngine
from .errors import (
    DotstrapError,
    InstallVerificationFailed,
    NoPackageManagerFound,
    PackageDirectoryDeployFailed,
    PackageInstallFailed,
    RepoCloneFailed,
    RepoPullFailed,
    RuntimeInstallerDownloadFailed,
)
from .host import Context, Prober
from .models import (
    DeployReport,
    HostCapabilities,
    PackageDeployResult,
    RunReport,
    RunState,
    StepOutcome,
)
from .orchestrator import Bootstrapper
from .packages import PackageInstaller
from .repo import RepoSync
from .runtime import RuntimeInstaller

__all__ = [
    "Config",
    "Settings",
    "ToolSpec",
    "load_config",
    "Context",
    "Prober",
    "Bootstrapper",
    "DeploymentEngine",
    "PackageInstaller",
    "RepoSync",
    "RuntimeInstaller",
    "DeployReport",
    "HostCapabilities",
    "PackageDeployResult",
    "RunReport",
    "RunState",
    "StepOutcome",
    "DotstrapError",
    "NoPackageManagerFound",
    "PackageInstallFailed",
    "RuntimeInstallerDownloadFailed",
    "InstallVerificationFailed",
    "RepoCloneFailed",
    "RepoPullFailed",
    "PackageDirectoryDeployFailed",
    "app",
    "run",
]
