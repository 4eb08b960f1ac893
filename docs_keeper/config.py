"""Harness configuration."""

import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

DEFAULT_TEST_DIR = "doctest_cache"


class ConfigError(ValueError):
    """Raised when harness configuration is invalid."""


class KeeperConfig(BaseModel):
    """Configuration as written by the user.

    In an mdBook project this is the ``[preprocessor.keeper]`` table of
    ``book.toml``; standalone runs read it from a YAML file.
    """

    model_config = ConfigDict(extra="ignore")

    externs: Sequence[str] = Field(
        default_factory=list,
        description="Libraries passed to rustc as --extern, like `extern crate`",
    )
    test_dir: str | None = Field(
        default=None, description="Working directory holding cached examples"
    )
    target_dir: str | None = Field(
        default=None, description="Cargo target directory of the project"
    )
    manifest_dir: str | None = Field(
        default=None, description="Directory containing the project's Cargo.toml"
    )
    terminal_colors: bool | None = Field(
        default=None, description="Color compiler output (default: stderr is a TTY)"
    )
    profile: str = Field(default="debug", description="Cargo build profile")
    target: str | None = Field(
        default=None, description="Target triple (default: rustc's host)"
    )

    def resolve(self, root: Path) -> "KeeperSettings":
        """Apply defaults and anchor relative paths at root."""
        test_dir = root / (self.test_dir or DEFAULT_TEST_DIR)
        target_dir = (
            root / self.target_dir if self.target_dir else test_dir / "target"
        )
        manifest_dir = root / self.manifest_dir if self.manifest_dir else None
        terminal_colors = (
            self.terminal_colors
            if self.terminal_colors is not None
            else sys.stderr.isatty()
        )
        return KeeperSettings(
            test_dir=test_dir,
            target_dir=target_dir,
            manifest_dir=manifest_dir,
            terminal_colors=terminal_colors,
            externs=tuple(self.externs),
            profile=self.profile,
            target=self.target,
        )


@dataclass(frozen=True, kw_only=True)
class KeeperSettings:
    """Resolved configuration consumed by the harness."""

    test_dir: Path
    target_dir: Path
    manifest_dir: Path | None = None
    terminal_colors: bool = False
    externs: Sequence[str] = ()
    profile: str = "debug"
    target: str | None = None


def parse_config(table: Mapping[str, Any] | None) -> KeeperConfig:
    """Validate a configuration table.

    Raises:
        ConfigError: If the table does not match the schema

    """
    try:
        return KeeperConfig.model_validate(table or {})
    except ValidationError as e:
        raise ConfigError(f"Invalid keeper configuration: {e}") from e


def load_config(path: Path) -> KeeperConfig:
    """Load configuration from a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigError: If the file is empty, not YAML, or fails validation

    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        raise ConfigError(f"Empty config file: {path}")
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file must contain a mapping: {path}")

    return parse_config(data)
