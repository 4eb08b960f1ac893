"""Query Cargo for project metadata."""

import asyncio
import logging
import os
from collections.abc import Mapping, Sequence
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

log = logging.getLogger(__name__)

OLDEST_EDITION = "2015"


class ResolutionError(Exception):
    """Raised when a project's dependencies cannot be determined."""


class Package(BaseModel):
    """A package entry from ``cargo metadata``."""

    id: str
    name: str
    version: str
    edition: str = OLDEST_EDITION


class ResolveNode(BaseModel):
    """A node of the resolved dependency graph."""

    id: str
    dependencies: Sequence[str] = Field(default_factory=list)


class Resolve(BaseModel):
    """The resolved dependency graph."""

    nodes: Sequence[ResolveNode] = Field(default_factory=list)


class CargoMetadata(BaseModel):
    """The subset of ``cargo metadata --format-version 1`` the harness uses."""

    packages: Sequence[Package]
    workspace_members: Sequence[str]
    resolve: Resolve | None = None

    def edition(self) -> str:
        """Return the newest edition used by any package."""
        return max(
            (package.edition for package in self.packages),
            key=int,
            default=OLDEST_EDITION,
        )

    def locked_dependencies(self) -> Mapping[str, str]:
        """Map each workspace member and its direct dependencies to a version.

        Names are normalized to use underscores, matching library names in
        the build output.

        Raises:
            ResolutionError: If the metadata has no dependency graph

        """
        if self.resolve is None:
            raise ResolutionError("Missing dependency metadata")

        packages = {package.id: package for package in self.packages}
        members = set(self.workspace_members)

        ids = [
            dep_id
            for node in self.resolve.nodes
            if node.id in members
            for dep_id in node.dependencies
        ]
        ids.extend(self.workspace_members)

        locked: dict[str, str] = {}
        for package_id in ids:
            if (package := packages.get(package_id)) is None:
                log.debug("Package %s not listed in metadata", package_id)
                continue
            locked[normalize_name(package.name)] = package.version
        return locked


def normalize_name(name: str) -> str:
    """Normalize a package name into a library name."""
    return name.replace("-", "_")


def cargo_command() -> str:
    """Return the cargo executable, honouring ``$CARGO``."""
    return os.environ.get("CARGO", "cargo")


async def load_metadata(manifest_dir: Path) -> CargoMetadata:
    """Run ``cargo metadata`` for the project in manifest_dir.

    Raises:
        ResolutionError: If cargo fails or its output cannot be parsed

    """
    manifest_path = manifest_dir / "Cargo.toml"
    log.debug("Reading cargo metadata for %s", manifest_path)

    process = await asyncio.create_subprocess_exec(
        cargo_command(),
        "metadata",
        "--format-version",
        "1",
        "--manifest-path",
        str(manifest_path),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()

    if process.returncode != 0:
        raise ResolutionError(f"cargo metadata failed: {stderr.decode().strip()}")

    try:
        return CargoMetadata.model_validate_json(stdout)
    except ValidationError as e:
        raise ResolutionError(f"Invalid cargo metadata: {e}") from e
