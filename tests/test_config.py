from __future__ import annotations

from pathlib import Path
from textwrap import dedent

import pytest

from dotstrap.config import (
    DEFAULT_CONFIG_FILENAME,
    DEFAULT_EXCLUDE,
    DEFAULT_REPO_URL,
    DEFAULT_RESET,
    DEFAULT_TOOLS,
    ConfigError,
    ToolSpec,
    load_config,
)


def _write_config(tmp_path: Path, body: str) -> Path:
    config_path = tmp_path / DEFAULT_CONFIG_FILENAME
    config_path.write_text(dedent(body))
    return config_path


def test_defaults_without_config_file(tmp_path: Path, fake_home: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    config = load_config()

    assert config.config_path is None
    assert config.settings.repo_url == DEFAULT_REPO_URL
    assert config.settings.repo_path == fake_home / ".dotfiles"
    assert config.settings.destination == fake_home
    assert config.settings.exclude == DEFAULT_EXCLUDE
    assert config.settings.reset == DEFAULT_RESET
    assert config.settings.journal_path == fake_home / ".local" / "state" / "dotstrap" / "journal.toml"
    assert config.tools == DEFAULT_TOOLS
    assert config.runtimes == {}


def test_load_config_happy_path(tmp_path: Path, fake_home: Path) -> None:
    config_path = _write_config(
        tmp_path,
        """
        [settings]
        repo_url = "git@example.com:me/dotfiles.git"
        repo_path = "~/src/dotfiles"
        destination = "./target"
        exclude = [".git", "docs"]
        reset = [".bashrc"]

        [[tools]]
        package = "git"

        [[tools]]
        package = "ripgrep"
        command = "rg"
        optional = true

        [runtimes]
        node = "lts"
        python = 3.12
        """,
    )

    config = load_config(config_path)

    assert config.config_path == config_path.resolve(strict=False)
    assert config.settings.repo_url == "git@example.com:me/dotfiles.git"
    assert config.settings.repo_path == fake_home / "src" / "dotfiles"
    assert config.settings.destination == (tmp_path / "target").resolve(strict=False)
    assert config.settings.exclude == (".git", "docs")
    assert config.settings.reset == (".bashrc",)
    assert config.tools == (ToolSpec(package="git"), ToolSpec(package="ripgrep", command="rg", optional=True))
    assert config.tools[1].executable == "rg"
    assert config.runtimes == {"node": "lts", "python": "3.12"}


def test_env_vars_are_expanded(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DOTS", str(tmp_path / "elsewhere"))
    config_path = _write_config(
        tmp_path,
        """
        [settings]
        repo_path = "$DOTS/dotfiles"
        """,
    )

    config = load_config(config_path)

    assert config.settings.repo_path == (tmp_path / "elsewhere" / "dotfiles").resolve(strict=False)


def test_reset_entries_must_stay_inside_destination(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path,
        """
        [settings]
        reset = ["../.zshrc"]
        """,
    )

    with pytest.raises(ConfigError):
        load_config(config_path)


def test_tool_without_package_is_rejected(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path,
        """
        [[tools]]
        command = "git"
        """,
    )

    with pytest.raises(ConfigError):
        load_config(config_path)


def test_invalid_toml_is_a_config_error(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, "[settings\nrepo_url = \n")

    with pytest.raises(ConfigError):
        load_config(config_path)


def test_missing_explicit_path_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "nope.toml")


def test_directory_argument_resolves_default_file(tmp_path: Path) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    _write_config(
        config_dir,
        """
        [settings]
        repo_path = "./dotfiles"
        """,
    )

    config = load_config(config_dir)

    assert config.config_path == (config_dir / DEFAULT_CONFIG_FILENAME).resolve(strict=False)
    assert config.settings.repo_path == (config_dir / "dotfiles").resolve(strict=False)


def test_directory_without_config_file_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path)
