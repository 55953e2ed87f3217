"""Stow-style deployment of configuration packages into a destination tree."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Iterable, Sequence

from .config import DEFAULT_EXCLUDE, DEFAULT_RESET
from .errors import DotstrapError, PackageDirectoryDeployFailed
from .filesystem import (
    backup_entry,
    ensure_symlink,
    is_real,
    iter_files,
    lexists,
    points_into,
)
from .journal import Journal
from .models import (
    BackupEntry,
    ConflictRecord,
    DeployReport,
    LinkResult,
    PackageDeployResult,
    PackagePlan,
)

logger = logging.getLogger(__name__)


class DeploymentEngine:
    """Links every package directory of a repository into a destination.

    Each package goes through three phases before the next one starts: a dry
    run that collects conflicts, a backup phase that renames conflicting real
    entries, and a link phase that creates relative symlinks. Running the
    engine again over an already deployed tree changes nothing.
    """

    def __init__(
        self,
        *,
        exclude: Iterable[str] = DEFAULT_EXCLUDE,
        reset: Iterable[str] = DEFAULT_RESET,
        journal: Journal | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.exclude = frozenset(exclude)
        self.reset = tuple(reset)
        self.journal = journal
        self.clock = clock

    def discover_packages(self, repo_path: Path) -> list[str]:
        """Return the names of top-level package directories in ``repo_path``."""

        if not repo_path.is_dir():
            raise DotstrapError(f"Configuration repository '{repo_path}' does not exist")

        packages: list[str] = []
        for child in sorted(repo_path.iterdir()):
            if child.name.startswith(".") or child.name in self.exclude:
                continue
            if child.is_dir() and not child.is_symlink():
                packages.append(child.name)
        return packages

    def plan_package(self, repo_path: Path, package: str, dest_path: Path) -> PackagePlan:
        """Simulate linking ``package`` and report every conflicting target."""

        package_root = repo_path / package
        links: list[tuple[Path, Path]] = []
        conflicts: dict[Path, ConflictRecord] = {}

        for relative in iter_files(package_root):
            links.append((dest_path / relative, package_root / relative))

            blocked = False
            for ancestor in reversed(relative.parents[:-1]):
                candidate = dest_path / ancestor
                if is_real(candidate) and not candidate.is_dir():
                    conflicts.setdefault(ancestor, ConflictRecord(package, ancestor))
                    blocked = True
                    break
            if blocked:
                continue

            if is_real(dest_path / relative):
                conflicts.setdefault(relative, ConflictRecord(package, relative))

        return PackagePlan(package=package, links=tuple(links), conflicts=tuple(conflicts.values()))

    def plan(self, repo_path: Path, dest_path: Path) -> list[PackagePlan]:
        """Dry-run every package without touching the destination."""

        return [self.plan_package(repo_path, name, dest_path) for name in self.discover_packages(repo_path)]

    def apply(self, repo_path: Path, dest_path: Path) -> DeployReport:
        packages = self.discover_packages(repo_path)
        self._warn_interrupted_run()

        reset, reset_errors = self._reset_destination(repo_path, dest_path, packages)

        results: list[PackageDeployResult] = []
        for package in packages:
            logger.info("Deploying package %s", package)
            results.append(self._deploy_package(repo_path, package, dest_path))

        report = DeployReport(packages=tuple(results), reset=reset, reset_errors=reset_errors)
        if not report.ok:
            logger.warning(
                "Deployed %d package(s), %d failed, %d reset error(s): %s",
                len(report.succeeded),
                len(report.failed),
                len(report.reset_errors),
                ", ".join(item.package for item in report.failed) or "none",
            )
        else:
            logger.info("Deployed %d package(s)", len(report.succeeded))
        return report

    # ------------------------------------------------------------------
    # Internal helpers

    def _warn_interrupted_run(self) -> None:
        if self.journal is None:
            return
        previous = self.journal.load()
        if previous is not None:
            logger.warning(
                "Previous run was interrupted while deploying package '%s' (%d backup(s), %d link(s) planned); "
                "re-applying it now",
                previous.package,
                len(previous.backups),
                len(previous.links),
            )

    def _reset_destination(
        self, repo_path: Path, dest_path: Path, packages: Sequence[str]
    ) -> tuple[tuple[BackupEntry, ...], tuple[str, ...]]:
        """Clear the fixed reset files that some package is about to provide."""

        if not self.reset:
            return (), ()

        targets = {
            relative.as_posix() for package in packages for relative in iter_files(repo_path / package)
        }
        backups: list[BackupEntry] = []
        errors: list[str] = []

        for name in self.reset:
            path = dest_path / name
            if Path(name).as_posix() not in targets:
                logger.debug("Leaving %s in place; no package provides it", path)
                continue
            try:
                if path.is_symlink():
                    if points_into(path, repo_path):
                        continue
                    logger.info("Removing foreign symlink %s", path)
                    path.unlink()
                elif path.is_file():
                    entry = backup_entry(path, clock=self.clock)
                    if entry is not None:
                        logger.info("Moved %s to %s", entry.original, entry.backup)
                        backups.append(entry)
            except OSError as exc:
                error = DotstrapError(f"Could not reset {path}: {exc}", fatal=False)
                logger.warning("%s", error)
                errors.append(str(error))

        return tuple(backups), tuple(errors)

    def _deploy_package(self, repo_path: Path, package: str, dest_path: Path) -> PackageDeployResult:
        backups: list[BackupEntry] = []
        links: list[LinkResult] = []

        try:
            plan = self.plan_package(repo_path, package, dest_path)
            if self.journal is not None:
                self.journal.begin(plan, dest_path, started_at=int(self.clock()))

            for conflict in plan.conflicts:
                entry = backup_entry(dest_path / conflict.relative_path, clock=self.clock)
                if entry is None:
                    logger.debug("Conflict %s resolved itself before backup", conflict.relative_path)
                    continue
                logger.info("Backed up %s to %s", entry.original, entry.backup)
                backups.append(entry)

            for target, source in plan.links:
                _drop_symlinked_ancestors(target, dest_path)
                action = ensure_symlink(target, source)
                links.append(LinkResult(target=target, source=source, action=action))
        except OSError as exc:
            error = PackageDirectoryDeployFailed(package, str(exc))
            logger.warning("%s", error)
            result = PackageDeployResult(package, tuple(backups), tuple(links), error=str(error))
        else:
            result = PackageDeployResult(package, tuple(backups), tuple(links))

        if self.journal is not None:
            self.journal.clear()
        return result


def _drop_symlinked_ancestors(target: Path, dest_path: Path) -> None:
    """Remove symlinks standing where the link needs a real directory."""

    for ancestor in reversed(target.relative_to(dest_path).parents[:-1]):
        candidate = dest_path / ancestor
        if candidate.is_symlink() and not candidate.is_dir():
            candidate.unlink()
        elif not lexists(candidate):
            break
