from __future__ import annotations

from pathlib import Path
from typing import Callable, Mapping, Sequence

import pytest

from dotstrap.command import CmdResult
from dotstrap.errors import CommandError
from dotstrap.host import Context


class FakeRunner:
    """Records commands and answers them from registered rules."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.envs: list[dict[str, str]] = []
        self._rules: list[tuple[tuple[str, ...], int, str, str, Callable[[list[str]], None] | None]] = []

    def on(
        self,
        *tokens: str,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        effect: Callable[[list[str]], None] | None = None,
    ) -> None:
        """Answer any command containing all ``tokens``; later rules win."""

        self._rules.append((tokens, returncode, stdout, stderr, effect))

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
        self.calls.append(argv_list)
        self.envs.append(dict(env or {}))

        result = CmdResult(argv=argv_list, returncode=0)
        for tokens, returncode, stdout, stderr, effect in reversed(self._rules):
            if all(token in argv_list for token in tokens):
                if effect is not None:
                    effect(argv_list)
                result = CmdResult(argv=argv_list, returncode=returncode, stdout=stdout, stderr=stderr)
                break

        if check and result.returncode != 0:
            raise CommandError(argv_list, result.returncode, result.stderr)
        return result

    def called(self, *tokens: str) -> bool:
        return any(all(token in call for token in tokens) for call in self.calls)


class FakeProber:
    def __init__(self, *names: str) -> None:
        self.available = set(names)
        self.prepended: list[Path] = []
        self.path = ""

    def present(self, name: str) -> bool:
        return name in self.available

    def which(self, name: str) -> str | None:
        return f"/fake/bin/{name}" if name in self.available else None

    def prepend(self, directory: Path) -> None:
        self.prepended.append(directory)


@pytest.fixture
def fake_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    return home


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def prober() -> FakeProber:
    return FakeProber()


@pytest.fixture
def context(fake_home: Path, runner: FakeRunner, prober: FakeProber) -> Context:
    return Context(
        home=fake_home,
        runner=runner,
        prober=prober,
        env={"SHELL": "/bin/zsh"},
        is_root=False,
    )


def write_package(repo: Path, package: str, files: Mapping[str, str]) -> Path:
    """Create ``repo/package`` with the given relative files."""

    root = repo / package
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


def snapshot(root: Path) -> dict[str, tuple[str, str]]:
    """Describe every entry below ``root`` for before/after comparisons."""

    state: dict[str, tuple[str, str]] = {}
    for path in sorted(root.rglob("*")):
        key = path.relative_to(root).as_posix()
        if path.is_symlink():
            state[key] = ("link", str(path.readlink()))
        elif path.is_dir():
            state[key] = ("dir", "")
        else:
            state[key] = ("file", path.read_text())
    return state
