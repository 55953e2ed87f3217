"""Process boundary for external tools."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Protocol, Sequence

from .errors import CommandError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner(Protocol):
    """Runs an external program. Implementations may be real or fake."""

    def run(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        capture: bool = False,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CmdResult:
        ...


def format_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(str(a)) for a in argv)


class SubprocessRunner:
    """Run commands with ``subprocess``.

    Output is passed straight through to the terminal unless ``capture`` is
    set, in which case it is returned on the result and logged at DEBUG.
    """

    def __init__(self, *, dry_run: bool = False) -> None:
        self.dry_run = dry_run

    def run(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        capture: bool = False,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CmdResult:
        argv_list = [str(a) for a in argv]
        logger.info("CMD %s", format_argv(argv_list))

        if self.dry_run:
            return CmdResult(argv=argv_list, returncode=0)

        try:
            proc = subprocess.run(
                argv_list,
                text=True,
                stdout=subprocess.PIPE if capture else None,
                stderr=subprocess.PIPE if capture else None,
                cwd=str(cwd) if cwd is not None else None,
                env=dict(os.environ, **(env or {})),
            )
        except FileNotFoundError as exc:
            raise CommandError(argv_list, 127, str(exc)) from exc

        stdout = proc.stdout or ""
        stderr = proc.stderr or ""
        if stdout:
            logger.debug("STDOUT %s", stdout.strip())
        if stderr:
            logger.debug("STDERR %s", stderr.strip())

        if check and proc.returncode != 0:
            raise CommandError(argv_list, proc.returncode, stderr)

        return CmdResult(argv=argv_list, returncode=proc.returncode, stdout=stdout, stderr=stderr)
