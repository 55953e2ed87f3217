"""Filesystem helpers for dotstrap."""

from __future__ import annotations

import os
import time
from pathlib import Path
from typing import Callable, Iterator

from .models import BackupEntry, LinkAction

BACKUP_MARKER = ".bak."


def ensure_parent(path: Path) -> None:
    """Ensure the parent directory exists."""

    path.parent.mkdir(parents=True, exist_ok=True)


def lexists(path: Path) -> bool:
    """Return ``True`` for existing paths, dangling symlinks included."""

    return path.exists() or path.is_symlink()


def is_real(path: Path) -> bool:
    """Return ``True`` if ``path`` exists and is not a symlink."""

    return path.exists() and not path.is_symlink()


def iter_files(root: Path) -> Iterator[Path]:
    """Yield every non-directory entry below ``root`` as a relative path.

    Symlinks inside ``root`` are yielded as files and never followed.
    """

    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        current = Path(dirpath)
        for name in sorted(filenames):
            yield (current / name).relative_to(root)
        for name in list(dirnames):
            if (current / name).is_symlink():
                dirnames.remove(name)
                yield (current / name).relative_to(root)


def symlink_points_to(source: Path, target: Path) -> bool:
    """Return ``True`` if ``source`` symlink resolves to ``target``."""

    if not source.is_symlink():
        return False
    current = Path(os.readlink(source))
    current_resolved = (source.parent / current).resolve(strict=False)
    target_resolved = target.resolve(strict=False)
    return current_resolved == target_resolved


def points_into(link: Path, root: Path) -> bool:
    """Return ``True`` if symlink ``link`` resolves somewhere below ``root``."""

    if not link.is_symlink():
        return False
    resolved = (link.parent / Path(os.readlink(link))).resolve(strict=False)
    return resolved.is_relative_to(root.resolve(strict=False))


def ensure_symlink(source: Path, target: Path) -> LinkAction:
    """Ensure ``source`` is a symlink to ``target``.

    Existing symlinks are replaced; real files and directories are never
    removed and raise ``FileExistsError`` instead.
    """

    if source.is_symlink():
        if symlink_points_to(source, target):
            return LinkAction.UNCHANGED
        source.unlink()
        action = LinkAction.RELINKED
    elif source.exists():
        raise FileExistsError(f"Refusing to replace real path '{source}' with a symlink")
    else:
        action = LinkAction.LINKED

    ensure_parent(source)
    try:
        relative_target = os.path.relpath(target, start=source.parent)
        source.symlink_to(relative_target)
    except ValueError:
        source.symlink_to(target)
    return action


def backup_path(path: Path, *, clock: Callable[[], float] = time.time) -> Path:
    """Return an unused ``<path>.bak.<unix-timestamp>`` name for ``path``.

    A counter suffix is appended when a backup from the same second exists.
    """

    stem = f"{path.name}{BACKUP_MARKER}{int(clock())}"
    candidate = path.with_name(stem)
    counter = 0
    while lexists(candidate):
        counter += 1
        candidate = path.with_name(f"{stem}.{counter}")
    return candidate


def backup_entry(path: Path, *, clock: Callable[[], float] = time.time) -> BackupEntry | None:
    """Rename a real file or directory out of the way.

    Returns ``None`` when ``path`` vanished or became a symlink since it was
    flagged as a conflict. A backup name taken between choosing it and moving
    onto it is skipped and the next free name is tried.
    """

    if not is_real(path):
        return None
    while True:
        destination = backup_path(path, clock=clock)
        try:
            _move_exclusive(path, destination)
        except FileExistsError:
            continue
        return BackupEntry(original=path, backup=destination)


def _move_exclusive(path: Path, destination: Path) -> None:
    """Move ``path`` to ``destination``, raising ``FileExistsError`` if it is taken."""

    if path.is_dir():
        # mkdir claims the name; rename then replaces the empty directory.
        destination.mkdir()
        try:
            path.rename(destination)
        except OSError:
            destination.rmdir()
            raise
        return
    os.link(path, destination)
    path.unlink()
