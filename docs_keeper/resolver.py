"""Resolve a Cargo project's compiled dependencies for linking examples.

Cargo records one fingerprint directory per compiled unit under
``<target>/<profile>/.fingerprint/<name>-<hash>/``. The matching library lives
in ``<target>/<profile>/deps/`` under the same ``<name>-<hash>`` stem. The
lockfile, as reported by ``cargo metadata``, decides which of possibly many
builds of a library belongs to the current project.
"""

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from pathlib import Path

from docs_keeper.cargo import CargoMetadata, load_metadata, normalize_name

log = logging.getLogger(__name__)

FINGERPRINT_DIR = ".fingerprint"
FINGERPRINT_EXTENSION = ".json"

# Cargo's deps/ naming: static and unix dynamic libraries carry a "lib"
# prefix, Windows DLLs do not.
PREFIXED_EXTENSIONS = (".rlib", ".so", ".dylib")
UNPREFIXED_EXTENSIONS = (".dll",)


@dataclass(frozen=True, kw_only=True)
class Fingerprint:
    """One compiled build of a library found in the build output."""

    libname: str
    hash: str
    version: str | None = None  # absent for path and git dependencies
    archive_path: Path | None = None
    mtime: float = 0.0


@dataclass(frozen=True, kw_only=True)
class ProjectDependencies:
    """Everything examples need to link against the project, computed once."""

    edition: str
    artifacts: Mapping[str, Fingerprint]


def parse_fingerprint_path(path: Path) -> tuple[str, str] | None:
    """Derive (libname, hash) from a fingerprint descriptor path.

    Returns None for files that are not fingerprint descriptors.
    """
    if path.suffix != FINGERPRINT_EXTENSION:
        return None

    libname, sep, suffix = path.parent.name.rpartition("-")
    if not sep or not libname:
        return None
    return normalize_name(libname), suffix


def locate_archive(profile_dir: Path, libname: str, suffix: str) -> Path | None:
    """Find the compiled library file for one build, if it exists."""
    deps_dir = profile_dir / "deps"
    candidates = [
        deps_dir / f"lib{libname}-{suffix}{ext}" for ext in PREFIXED_EXTENSIONS
    ] + [deps_dir / f"{libname}-{suffix}{ext}" for ext in UNPREFIXED_EXTENSIONS]

    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def read_version(profile_dir: Path, libname: str, suffix: str) -> str | None:
    """Read a build's package version from its dep-info file.

    Registry sources are unpacked into ``<package>-<version>/`` directories,
    which appear in the paths listed by the dep-info file. Path dependencies
    have no such directory, so no version is reported for them.
    """
    dep_info = profile_dir / "deps" / f"{libname}-{suffix}.d"
    try:
        text = dep_info.read_text(errors="replace")
    except OSError:
        return None

    name_pattern = "[-_]".join(re.escape(part) for part in libname.split("_"))
    match = re.search(
        rf"[/\\]{name_pattern}-(\d+\.\d+\.\d+(?:[-+][0-9A-Za-z.+-]*)?)[/\\]", text
    )
    return match.group(1) if match else None


def scan_fingerprints(profile_dir: Path) -> list[Fingerprint]:
    """Collect the library builds recorded under the profile directory.

    Descriptors whose build left no library file are skipped.
    """
    fingerprints: list[Fingerprint] = []
    fingerprint_dir = profile_dir / FINGERPRINT_DIR
    if not fingerprint_dir.is_dir():
        log.debug("No fingerprint directory at %s", fingerprint_dir)
        return fingerprints

    for path in sorted(fingerprint_dir.rglob(f"*{FINGERPRINT_EXTENSION}")):
        if not path.is_file() or (parsed := parse_fingerprint_path(path)) is None:
            continue
        libname, suffix = parsed
        # Build scripts and binaries share the package's name but have no library.
        if (archive := locate_archive(profile_dir, libname, suffix)) is None:
            log.debug("Skipping %s-%s without a library file", libname, suffix)
            continue
        fingerprints.append(
            Fingerprint(
                libname=libname,
                hash=suffix,
                version=read_version(profile_dir, libname, suffix),
                archive_path=archive,
                mtime=path.stat().st_mtime,
            )
        )
    return fingerprints


def select_fingerprints(
    locked: Mapping[str, str], candidates: Iterable[Fingerprint]
) -> dict[str, Fingerprint]:
    """Pick one build per locked dependency.

    The first candidate for a library is kept when its version matches the
    lockfile or is unknown. A kept candidate is replaced only by one whose
    version matches exactly: always when the kept one had no version, and
    otherwise only if the new one was built more recently.
    """
    selected: dict[str, Fingerprint] = {}
    for candidate in candidates:
        if (locked_version := locked.get(candidate.libname)) is None:
            continue

        current = selected.get(candidate.libname)
        if current is None:
            if candidate.version in (None, locked_version):
                selected[candidate.libname] = candidate
        elif candidate.version == locked_version and (
            current.version is None or current.mtime < candidate.mtime
        ):
            selected[candidate.libname] = candidate
    return selected


def link_artifacts(
    profile_dir: Path, selected: Mapping[str, Fingerprint]
) -> dict[str, Fingerprint]:
    """Make sure every selected build has a library file, dropping the rest.

    A missing library is not an error here; an example that needs it fails
    to compile instead.
    """
    linked: dict[str, Fingerprint] = {}
    for libname, fingerprint in selected.items():
        archive = fingerprint.archive_path or locate_archive(
            profile_dir, libname, fingerprint.hash
        )
        if archive is None:
            log.debug("No library file for %s-%s", libname, fingerprint.hash)
            continue
        linked[libname] = replace(fingerprint, archive_path=archive)
    return linked


def resolve_from_metadata(
    metadata: CargoMetadata, target_dir: Path, profile: str = "debug"
) -> ProjectDependencies:
    """Resolve dependencies from already loaded metadata."""
    profile_dir = target_dir / profile
    selected = select_fingerprints(
        metadata.locked_dependencies(), scan_fingerprints(profile_dir)
    )
    artifacts = link_artifacts(profile_dir, selected)
    log.info("Resolved %d dependency artifact(s)", len(artifacts))
    return ProjectDependencies(edition=metadata.edition(), artifacts=artifacts)


async def resolve_artifacts(
    manifest_dir: Path, target_dir: Path, profile: str = "debug"
) -> ProjectDependencies:
    """Resolve the libraries examples should be linked against.

    Args:
        manifest_dir: Directory containing the project's Cargo.toml
        target_dir: Cargo target directory the project was built into
        profile: Build profile subdirectory of target_dir

    Raises:
        ResolutionError: If cargo metadata cannot be read

    """
    metadata = await load_metadata(manifest_dir)
    return resolve_from_metadata(metadata, target_dir, profile)
