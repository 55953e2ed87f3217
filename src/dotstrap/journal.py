"""Deployment journal persistence for dotstrap."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from tomli_w import dump as toml_dump

from .models import PackagePlan


@dataclass(frozen=True, slots=True)
class JournalRecord:
    """Operations planned for the package that was being deployed."""

    package: str
    started_at: int
    backups: tuple[Path, ...]
    links: tuple[tuple[Path, Path], ...]


class Journal:
    """Records the package in flight so an interrupted run can be detected.

    The journal is written before a package's backup and link phases and
    cleared once the package completes. A journal left on disk means the
    previous run stopped part way through that package.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> JournalRecord | None:
        if not self.path.exists():
            return None

        with self.path.open("rb") as handle:
            data = tomllib.load(handle)

        return JournalRecord(
            package=data["package"],
            started_at=data.get("started_at", 0),
            backups=tuple(Path(item) for item in data.get("backups", [])),
            links=tuple((Path(item["target"]), Path(item["source"])) for item in data.get("links", [])),
        )

    def begin(self, plan: PackagePlan, destination: Path, *, started_at: int) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "package": plan.package,
            "started_at": started_at,
            "backups": [str(destination / conflict.relative_path) for conflict in plan.conflicts],
            "links": [{"target": str(target), "source": str(source)} for target, source in plan.links],
        }
        with self.path.open("wb") as handle:
            toml_dump(payload, handle)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
