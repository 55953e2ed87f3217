"""TOML configuration loading for dotstrap."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError

DEFAULT_CONFIG_FILENAME = "dotstrap.toml"
DEFAULT_REPO_URL = "https://github.com/kensledev/dotfiles.git"
DEFAULT_INSTALLER_URL = "https://mise.run"
DEFAULT_EXCLUDE = (".git", "script", "scripts", "archive", "archives")
DEFAULT_RESET = (".zshrc", ".gitconfig")


def _expand_path(raw: str | os.PathLike[str] | Path, *, base_dir: Path) -> Path:
    """Return an absolute ``Path`` by expanding env vars and user segments."""

    text = str(raw)
    expanded = Path(os.path.expandvars(text)).expanduser()
    if expanded.is_absolute():
        return expanded.resolve(strict=False)
    return (base_dir / expanded).resolve(strict=False)


class ToolSpec(BaseModel):
    """A base tool installed through the system package manager."""

    model_config = ConfigDict(frozen=True)

    package: str
    command: str | None = None
    optional: bool = False

    @property
    def executable(self) -> str:
        return self.command or self.package


DEFAULT_TOOLS = (
    ToolSpec(package="git"),
    ToolSpec(package="curl"),
    ToolSpec(package="tmux", optional=True),
    ToolSpec(package="trash-cli", command="trash", optional=True),
)


class Settings(BaseModel):
    """Global configuration options."""

    model_config = ConfigDict(frozen=True)

    repo_url: str = DEFAULT_REPO_URL
    repo_path: Path = Field(default_factory=lambda: Path("~/.dotfiles").expanduser())
    destination: Path = Field(default_factory=Path.home)
    state_dir: Path = Field(default_factory=lambda: Path("~/.local/state/dotstrap").expanduser())
    installer_url: str = DEFAULT_INSTALLER_URL
    version_manager: str = "mise"
    exclude: tuple[str, ...] = DEFAULT_EXCLUDE
    reset: tuple[str, ...] = DEFAULT_RESET

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], *, base_dir: Path) -> "Settings":
        values: Dict[str, Any] = {}
        for key in ("repo_path", "destination", "state_dir"):
            if key in raw:
                values[key] = _expand_path(raw[key], base_dir=base_dir)
        for key in ("repo_url", "installer_url", "version_manager"):
            if key in raw:
                values[key] = str(raw[key])
        for key in ("exclude", "reset"):
            if key in raw:
                values[key] = tuple(str(item) for item in raw[key])

        for name in values.get("reset", ()):
            candidate = Path(name)
            if candidate.is_absolute() or ".." in candidate.parts:
                raise ConfigError(f"Reset entry '{name}' must be relative to the destination")

        return cls(**values)

    @property
    def journal_path(self) -> Path:
        return self.state_dir / "journal.toml"

    @property
    def log_path(self) -> Path:
        return self.state_dir / "dotstrap.log"


class Config(BaseModel):
    """Fully parsed configuration file."""

    model_config = ConfigDict(frozen=True)

    config_path: Path | None = None
    settings: Settings = Field(default_factory=Settings)
    tools: tuple[ToolSpec, ...] = DEFAULT_TOOLS
    runtimes: Dict[str, str] = Field(default_factory=dict)


def load_config(path: Path | None = None) -> Config:
    """Load and validate a configuration file.

    Args:
        path: Optional path to the TOML file or a directory holding
            ``dotstrap.toml``. Without a path, ``dotstrap.toml`` in the current
            working directory is used when present and built-in defaults
            otherwise.
    """

    config_path = _resolve_config_path(path)
    if config_path is None:
        return Config()

    base_dir = config_path.parent
    try:
        with config_path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Configuration file '{config_path}' is not valid TOML: {exc}") from exc

    try:
        settings = Settings.from_raw(data.get("settings", {}), base_dir=base_dir)

        tools_section = data.get("tools")
        tools = DEFAULT_TOOLS if tools_section is None else tuple(ToolSpec(**item) for item in tools_section)

        runtimes_section = data.get("runtimes") or {}
        runtimes = {str(name): str(version) for name, version in runtimes_section.items()}

        return Config(config_path=config_path, settings=settings, tools=tools, runtimes=runtimes)
    except (ValidationError, TypeError) as exc:
        raise ConfigError(f"Invalid configuration in '{config_path}': {exc}") from exc


def _resolve_config_path(path: Path | None) -> Path | None:
    if path is None:
        candidate = Path.cwd() / DEFAULT_CONFIG_FILENAME
        return candidate.resolve(strict=False) if candidate.exists() else None

    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Configuration file '{path}' does not exist")
    if path.is_dir():
        candidate = path / DEFAULT_CONFIG_FILENAME
        if not candidate.exists():
            raise ConfigError(f"Expected to find '{DEFAULT_CONFIG_FILENAME}' inside '{path}', but none was located")
        path = candidate

    return path.resolve(strict=False)
