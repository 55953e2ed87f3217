"""Shared models and enums for dotstrap."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class StepOutcome(str, Enum):
    """Outcome recorded for each top-level bootstrap step."""

    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED_FATAL = "failed_fatal"
    FAILED_RECOVERABLE = "failed_recoverable"


class RunState(str, Enum):
    """States of the bootstrap state machine, in transition order."""

    INIT = "init"
    TOOLS_ENSURED = "tools_ensured"
    REPO_SYNCED = "repo_synced"
    RUNTIMES_INSTALLED = "runtimes_installed"
    CONFIG_APPLIED = "config_applied"
    DONE = "done"
    ABORTED = "aborted"


class LinkAction(str, Enum):
    """What the link phase did for a single file."""

    LINKED = "linked"
    RELINKED = "relinked"
    UNCHANGED = "unchanged"


@dataclass(frozen=True, slots=True)
class HostCapabilities:
    """Detected facts about the machine that select platform behavior."""

    os_family: str
    shell: str
    package_manager: str | None


@dataclass(frozen=True, slots=True)
class ConflictRecord:
    """A destination path occupied by a real file or directory."""

    package: str
    relative_path: Path


@dataclass(frozen=True, slots=True)
class BackupEntry:
    """A conflicting destination entry moved out of the way."""

    original: Path
    backup: Path


@dataclass(frozen=True, slots=True)
class LinkResult:
    """Result of linking one package file into the destination."""

    target: Path
    source: Path
    action: LinkAction


@dataclass(frozen=True, slots=True)
class PackagePlan:
    """Dry-run view of a package: every link it wants and every conflict."""

    package: str
    links: tuple[tuple[Path, Path], ...]
    conflicts: tuple[ConflictRecord, ...]


@dataclass(frozen=True, slots=True)
class PackageDeployResult:
    """Outcome of deploying one package directory."""

    package: str
    backups: tuple[BackupEntry, ...] = ()
    links: tuple[LinkResult, ...] = ()
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class DeployReport:
    """Aggregate result of a deployment engine run."""

    packages: tuple[PackageDeployResult, ...]
    reset: tuple[BackupEntry, ...] = ()
    reset_errors: tuple[str, ...] = ()

    @property
    def failed(self) -> tuple[PackageDeployResult, ...]:
        return tuple(item for item in self.packages if not item.ok)

    @property
    def succeeded(self) -> tuple[PackageDeployResult, ...]:
        return tuple(item for item in self.packages if item.ok)

    @property
    def ok(self) -> bool:
        return not self.failed and not self.reset_errors


@dataclass(frozen=True, slots=True)
class StepResult:
    """Outcome of one orchestrator step."""

    state: RunState
    outcome: StepOutcome
    details: str | None = None


@dataclass(slots=True)
class RunReport:
    """Everything the orchestrator learned during a run."""

    state: RunState = RunState.INIT
    steps: list[StepResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    deploy: DeployReport | None = None
    plans: tuple[PackagePlan, ...] | None = None

    @property
    def aborted(self) -> bool:
        return self.state is RunState.ABORTED

    @property
    def exit_code(self) -> int:
        return 1 if self.aborted else 0
