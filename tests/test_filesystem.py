from __future__ import annotations

import os
from pathlib import Path

import pytest

from dotstrap.filesystem import (
    backup_entry,
    backup_path,
    ensure_parent,
    ensure_symlink,
    iter_files,
    points_into,
    symlink_points_to,
)
from dotstrap.models import LinkAction


def test_ensure_symlink_relative(tmp_path: Path) -> None:
    target = tmp_path / "target.txt"
    target.write_text("value\n")
    link = tmp_path / "link.txt"

    assert ensure_symlink(link, target) is LinkAction.LINKED
    assert symlink_points_to(link, target)
    assert not os.path.isabs(os.readlink(link))

    assert ensure_symlink(link, target) is LinkAction.UNCHANGED


def test_ensure_symlink_replaces_dangling_link(tmp_path: Path) -> None:
    target = tmp_path / "target.txt"
    target.write_text("value\n")
    link = tmp_path / "link.txt"
    link.symlink_to(tmp_path / "gone.txt")

    assert ensure_symlink(link, target) is LinkAction.RELINKED
    assert link.read_text() == "value\n"


def test_ensure_symlink_refuses_real_file(tmp_path: Path) -> None:
    target = tmp_path / "target.txt"
    target.write_text("new\n")
    existing = tmp_path / "existing.txt"
    existing.write_text("keep me\n")

    with pytest.raises(FileExistsError):
        ensure_symlink(existing, target)

    assert existing.read_text() == "keep me\n"
    assert not existing.is_symlink()


def test_ensure_symlink_value_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    target = tmp_path / "target"
    target.write_text("val\n")
    link = tmp_path / "link"

    def raise_value_error(*_args, **_kwargs):
        raise ValueError()

    monkeypatch.setattr("dotstrap.filesystem.os.path.relpath", raise_value_error)

    ensure_symlink(link, target)
    assert link.is_symlink()
    assert os.readlink(link) == str(target)


def test_ensure_parent(tmp_path: Path) -> None:
    target = tmp_path / "deep" / "file.txt"
    ensure_parent(target)
    assert target.parent.exists()


def test_backup_path_uses_timestamp_suffix(tmp_path: Path) -> None:
    original = tmp_path / ".vimrc"

    assert backup_path(original, clock=lambda: 1700000000.75) == tmp_path / ".vimrc.bak.1700000000"


def test_backup_path_adds_counter_on_collision(tmp_path: Path) -> None:
    original = tmp_path / ".vimrc"
    (tmp_path / ".vimrc.bak.1000").write_text("older backup\n")
    (tmp_path / ".vimrc.bak.1000.1").write_text("even older\n")

    assert backup_path(original, clock=lambda: 1000) == tmp_path / ".vimrc.bak.1000.2"


def test_backup_entry_renames_real_file(tmp_path: Path) -> None:
    original = tmp_path / ".bashrc"
    original.write_text("mine\n")

    entry = backup_entry(original, clock=lambda: 42)

    assert entry is not None
    assert entry.backup == tmp_path / ".bashrc.bak.42"
    assert entry.backup.read_text() == "mine\n"
    assert not original.exists()


def test_backup_entry_skips_missing_and_symlinks(tmp_path: Path) -> None:
    assert backup_entry(tmp_path / "missing") is None

    target = tmp_path / "target"
    target.write_text("x")
    link = tmp_path / "link"
    link.symlink_to(target)

    assert backup_entry(link) is None
    assert link.is_symlink()


def test_iter_files_lists_nested_files_and_directory_links(tmp_path: Path) -> None:
    root = tmp_path / "pkg"
    (root / ".config" / "nvim").mkdir(parents=True)
    (root / ".config" / "nvim" / "init.lua").write_text("-- lua\n")
    (root / ".zshrc").write_text("# zsh\n")
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    (elsewhere / "inner.txt").write_text("x")
    (root / "linked").symlink_to(elsewhere)

    files = list(iter_files(root))

    assert Path(".config/nvim/init.lua") in files
    assert Path(".zshrc") in files
    assert Path("linked") in files
    assert Path("linked/inner.txt") not in files


def test_points_into(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    (repo / "git").mkdir(parents=True)
    (repo / "git" / ".gitconfig").write_text("[user]\n")
    inside = tmp_path / "inside"
    inside.symlink_to(repo / "git" / ".gitconfig")
    outside = tmp_path / "outside"
    outside.symlink_to(tmp_path / "other")

    assert points_into(inside, repo)
    assert not points_into(outside, repo)
    assert not points_into(repo / "git" / ".gitconfig", repo)


def test_backup_entry_never_overwrites_a_name_taken_late(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    from dotstrap import filesystem

    original = tmp_path / ".bashrc"
    original.write_text("mine\n")
    taken = tmp_path / ".bashrc.bak.42"
    real_backup_path = filesystem.backup_path
    calls: list[Path] = []

    def racing_backup_path(path: Path, *, clock=None) -> Path:
        if not calls:
            # Another process grabs the name after it was chosen.
            taken.write_text("someone else\n")
            calls.append(taken)
            return taken
        chosen = real_backup_path(path, clock=clock)
        calls.append(chosen)
        return chosen

    monkeypatch.setattr(filesystem, "backup_path", racing_backup_path)

    entry = backup_entry(original, clock=lambda: 42)

    assert entry is not None
    assert taken.read_text() == "someone else\n"
    assert entry.backup == tmp_path / ".bashrc.bak.42.1"
    assert entry.backup.read_text() == "mine\n"
    assert not original.exists()


def test_backup_entry_moves_directories(tmp_path: Path) -> None:
    original = tmp_path / ".config" / "nvim"
    original.mkdir(parents=True)
    (original / "init.lua").write_text("-- mine\n")

    entry = backup_entry(original, clock=lambda: 7)

    assert entry is not None
    assert entry.backup == tmp_path / ".config" / "nvim.bak.7"
    assert (entry.backup / "init.lua").read_text() == "-- mine\n"
    assert not original.exists()
