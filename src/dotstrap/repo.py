"""Configuration repository synchronisation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .errors import CommandError, RepoCloneFailed, RepoPullFailed
from .host import Context
from .models import StepOutcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RepoSyncResult:
    path: Path
    outcome: StepOutcome
    cloned: bool = False
    error: RepoPullFailed | None = None


class RepoSync:
    """Clones the configuration repository or fast-forwards an existing copy.

    Local modifications are never overwritten: a dirty or diverged working
    copy is reported and left exactly as it is.
    """

    def __init__(self, context: Context, *, git: str = "git") -> None:
        self.context = context
        self.git = git

    def ensure_repo(self, url: str, local_path: Path) -> RepoSyncResult:
        if self.is_working_copy(local_path):
            return self._update(local_path)
        return self._clone(url, local_path)

    def is_working_copy(self, path: Path) -> bool:
        if not (path / ".git").exists():
            return False
        try:
            result = self.context.runner.run(
                [self.git, "-C", str(path), "rev-parse", "--git-dir"],
                check=False,
                capture=True,
            )
        except CommandError:
            return False
        return result.ok

    def _clone(self, url: str, local_path: Path) -> RepoSyncResult:
        logger.info("Cloning %s into %s", url, local_path)
        local_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self.context.runner.run([self.git, "clone", url, str(local_path)])
        except CommandError as exc:
            raise RepoCloneFailed(f"Could not clone {url} into {local_path}: {exc}") from exc
        return RepoSyncResult(path=local_path, outcome=StepOutcome.SUCCEEDED, cloned=True)

    def _update(self, local_path: Path) -> RepoSyncResult:
        status = self.context.runner.run(
            [self.git, "-C", str(local_path), "status", "--porcelain"],
            check=False,
            capture=True,
        )
        if not status.ok:
            return self._pull_failed(local_path, f"git status failed: {status.stderr.strip()}")
        if status.stdout.strip():
            return self._pull_failed(local_path, "working copy has uncommitted changes")

        logger.info("Updating %s (fast-forward only)", local_path)
        try:
            self.context.runner.run([self.git, "-C", str(local_path), "pull", "--ff-only"])
        except CommandError as exc:
            return self._pull_failed(local_path, str(exc))
        return RepoSyncResult(path=local_path, outcome=StepOutcome.SUCCEEDED)

    def _pull_failed(self, local_path: Path, reason: str) -> RepoSyncResult:
        error = RepoPullFailed(f"Left {local_path} untouched: {reason}")
        logger.warning("%s", error)
        return RepoSyncResult(path=local_path, outcome=StepOutcome.FAILED_RECOVERABLE, error=error)
