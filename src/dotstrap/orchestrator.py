"""Sequential bootstrap state machine."""

from __future__ import annotations

import logging
from typing import Callable

from .config import Config
from .deploy import DeploymentEngine
from .errors import DotstrapError, PackageInstallFailed
from .host import Context
from .journal import Journal
from .models import RunReport, RunState, StepOutcome, StepResult
from .packages import PackageInstaller
from .repo import RepoSync
from .runtime import RuntimeInstaller

logger = logging.getLogger(__name__)


class Bootstrapper:
    """Runs every bootstrap step in a fixed order.

    Fatal errors move the run to ``ABORTED`` immediately; recoverable ones are
    logged, remembered on the report and the next step runs.
    """

    def __init__(
        self,
        config: Config,
        context: Context,
        *,
        installer: PackageInstaller | None = None,
        runtime: RuntimeInstaller | None = None,
        repo: RepoSync | None = None,
        engine: DeploymentEngine | None = None,
        skip_tools: bool = False,
        skip_runtimes: bool = False,
        dry_run: bool = False,
    ) -> None:
        settings = config.settings
        self.config = config
        self.context = context
        self.installer = installer or PackageInstaller(context)
        self.runtime = runtime or RuntimeInstaller(
            context,
            tool=settings.version_manager,
            installer_url=settings.installer_url,
            dry_run=dry_run,
        )
        self.repo = repo or RepoSync(context)
        self.engine = engine or DeploymentEngine(
            exclude=settings.exclude,
            reset=settings.reset,
            journal=Journal(settings.journal_path),
        )
        self.skip_tools = skip_tools
        self.skip_runtimes = skip_runtimes
        self.dry_run = dry_run

    def run(self) -> RunReport:
        report = RunReport()
        steps: list[tuple[RunState, Callable[[RunReport], StepResult]]] = [
            (RunState.TOOLS_ENSURED, self.ensure_tools),
            (RunState.REPO_SYNCED, self.sync_repo),
            (RunState.RUNTIMES_INSTALLED, self.install_runtimes),
            (RunState.CONFIG_APPLIED, self.apply_config),
        ]

        for state, step in steps:
            logger.info("Running step %s", state.value)
            try:
                result = step(report)
            except (DotstrapError, OSError) as exc:
                fatal = exc.fatal if isinstance(exc, DotstrapError) else True
                if fatal:
                    logger.error("%s", exc)
                    report.steps.append(StepResult(state, StepOutcome.FAILED_FATAL, str(exc)))
                    report.state = RunState.ABORTED
                    logger.error("Bootstrap aborted before reaching %s", state.value)
                    self._log_summary(report)
                    return report
                logger.warning("%s", exc)
                report.warnings.append(str(exc))
                result = StepResult(state, StepOutcome.FAILED_RECOVERABLE, str(exc))

            report.steps.append(result)
            report.state = state

        report.state = RunState.DONE
        self._log_summary(report)
        return report

    # ------------------------------------------------------------------
    # Steps

    def ensure_tools(self, report: RunReport) -> StepResult:
        state = RunState.TOOLS_ENSURED
        if self.skip_tools:
            return StepResult(state, StepOutcome.SKIPPED, "skipped by request")

        installed: list[str] = []
        failed: list[str] = []
        for tool in self.config.tools:
            if self.context.prober.present(tool.executable):
                logger.info("%s already present", tool.executable)
                continue
            try:
                self.installer.install([tool.package])
            except PackageInstallFailed as exc:
                if not tool.optional:
                    raise
                logger.warning("Optional tool %s not installed: %s", tool.package, exc)
                report.warnings.append(str(exc))
                failed.append(tool.package)
                continue
            installed.append(tool.package)

        if failed:
            return StepResult(state, StepOutcome.FAILED_RECOVERABLE, f"optional tools failed: {', '.join(failed)}")
        if installed:
            return StepResult(state, StepOutcome.SUCCEEDED, f"installed {', '.join(installed)}")
        return StepResult(state, StepOutcome.SKIPPED, "all tools present")

    def sync_repo(self, report: RunReport) -> StepResult:
        settings = self.config.settings
        result = self.repo.ensure_repo(settings.repo_url, settings.repo_path)
        if result.error is not None:
            report.warnings.append(str(result.error))
            return StepResult(RunState.REPO_SYNCED, result.outcome, str(result.error))
        details = "cloned" if result.cloned else "up to date"
        return StepResult(RunState.REPO_SYNCED, result.outcome, details)

    def install_runtimes(self, report: RunReport) -> StepResult:
        state = RunState.RUNTIMES_INSTALLED
        if self.skip_runtimes:
            return StepResult(state, StepOutcome.SKIPPED, "skipped by request")

        manager_outcome = self.runtime.ensure_version_manager()
        failures = self.runtime.install_runtimes(self.config.runtimes)
        if failures:
            report.warnings.extend(str(item) for item in failures)
            return StepResult(state, StepOutcome.FAILED_RECOVERABLE, f"{len(failures)} runtime(s) failed")
        details = "installed version manager" if manager_outcome is StepOutcome.SUCCEEDED else None
        return StepResult(state, StepOutcome.SUCCEEDED, details)

    def apply_config(self, report: RunReport) -> StepResult:
        settings = self.config.settings
        if self.dry_run:
            return self._plan_config(report)

        deploy = self.engine.apply(settings.repo_path, settings.destination)
        report.deploy = deploy
        report.warnings.extend(deploy.reset_errors)
        if not deploy.ok:
            for item in deploy.failed:
                report.warnings.append(item.error or f"Package '{item.package}' failed")
            return StepResult(
                RunState.CONFIG_APPLIED,
                StepOutcome.FAILED_RECOVERABLE,
                f"{len(deploy.failed)} failed, {len(deploy.succeeded)} succeeded",
            )
        return StepResult(RunState.CONFIG_APPLIED, StepOutcome.SUCCEEDED, f"{len(deploy.succeeded)} succeeded")

    def _plan_config(self, report: RunReport) -> StepResult:
        settings = self.config.settings
        if not settings.repo_path.is_dir():
            logger.info("Dry run: %s is not checked out; nothing to plan", settings.repo_path)
            return StepResult(RunState.CONFIG_APPLIED, StepOutcome.SKIPPED, "dry run, repository not present")

        plans = tuple(self.engine.plan(settings.repo_path, settings.destination))
        report.plans = plans
        conflicts = sum(len(plan.conflicts) for plan in plans)
        logger.info("Dry run: %d package(s) planned, %d conflict(s) would be backed up", len(plans), conflicts)
        return StepResult(
            RunState.CONFIG_APPLIED,
            StepOutcome.SKIPPED,
            f"dry run, {len(plans)} planned, {conflicts} conflict(s)",
        )

    def _log_summary(self, report: RunReport) -> None:
        deployed = len(report.deploy.succeeded) if report.deploy else 0
        failed = len(report.deploy.failed) if report.deploy else 0
        message = "Bootstrap %s: %d warning(s), %d package(s) deployed, %d failed"
        if report.aborted:
            logger.error(message, report.state.value, len(report.warnings), deployed, failed)
        elif report.warnings:
            logger.warning(message, report.state.value, len(report.warnings), deployed, failed)
        else:
            logger.info(message, report.state.value, len(report.warnings), deployed, failed)
