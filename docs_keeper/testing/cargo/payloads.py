"""Payload helpers for cargo metadata output in tests."""

from collections.abc import Mapping, Sequence
from typing import Any


def package_id(name: str, version: str) -> str:
    """Build a package id in cargo's registry format."""
    return f"registry+https://github.com/rust-lang/crates.io-index#{name}@{version}"


def package(
    name: str, version: str, *, edition: str = "2021", pkg_id: str | None = None
) -> dict[str, Any]:
    """Create a package payload."""
    return {
        "name": name,
        "version": version,
        "id": pkg_id or package_id(name, version),
        "license": "MIT",
        "source": "registry+https://github.com/rust-lang/crates.io-index",
        "dependencies": [],
        "targets": [],
        "features": {},
        "manifest_path": f"/registry/{name}-{version}/Cargo.toml",
        "edition": edition,
    }


def metadata(
    *,
    members: Sequence[dict[str, Any]],
    dependencies: Mapping[str, Sequence[dict[str, Any]]] | None = None,
    with_resolve: bool = True,
) -> dict[str, Any]:
    """Create a ``cargo metadata --format-version 1`` payload.

    Args:
        members: Workspace member packages
        dependencies: Direct dependency packages keyed by member name
        with_resolve: Whether to include the dependency graph

    """
    dependencies = dependencies or {}
    dep_packages = [dep for deps in dependencies.values() for dep in deps]
    nodes = [
        {
            "id": member["id"],
            "dependencies": [dep["id"] for dep in dependencies.get(member["name"], ())],
            "deps": [],
            "features": [],
        }
        for member in members
    ]
    return {
        "packages": [*members, *dep_packages],
        "workspace_members": [member["id"] for member in members],
        "resolve": {"nodes": nodes, "root": None} if with_resolve else None,
        "target_directory": "/project/target",
        "version": 1,
        "workspace_root": "/project",
    }
