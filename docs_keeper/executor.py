"""Compile and run a single example."""

import asyncio
import logging
import os
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Literal

from docs_keeper.cargo import OLDEST_EDITION
from docs_keeper.models.outcome import ProcessOutput, TestOutcome
from docs_keeper.resolver import ProjectDependencies

log = logging.getLogger(__name__)

type CompileMode = Literal["full", "check"]

BINARY_EXTENSION = ".exe"


def rustc_command() -> str:
    """Return the compiler executable, honouring ``$RUSTC``."""
    return os.environ.get("RUSTC", "rustc")


def binary_path_for(testcase_path: Path) -> Path:
    """Return where the compiled example is written."""
    return testcase_path.with_suffix(BINARY_EXTENSION)


def build_compile_command(
    *,
    testcase_path: Path,
    mode: CompileMode,
    terminal_colors: bool,
    target_dir: Path,
    target_triple: str,
    externs: Sequence[str] = (),
    dependencies: ProjectDependencies | None = None,
    profile: str = "debug",
) -> list[str]:
    """Build the rustc invocation for one example.

    Without dependencies (no manifest configured) the example is compiled on
    its own: no edition, search paths, target or ``--extern`` flags.
    """
    cmd = [
        rustc_command(),
        str(testcase_path),
        "--verbose",
        "--color=always" if terminal_colors else "--color=never",
        "--crate-type=bin" if mode == "full" else "--crate-type=lib",
    ]

    if dependencies is not None:
        if dependencies.edition != OLDEST_EDITION:
            cmd.append(f"--edition={dependencies.edition}")

        cmd.extend(
            [
                "-L",
                str(target_dir),
                "-L",
                str(target_dir / profile / "deps"),
                "--target",
                target_triple,
            ]
        )

        for extern in externs:
            cmd.extend(["--extern", extern])

        for libname, fingerprint in sorted(dependencies.artifacts.items()):
            cmd.extend(["--extern", f"{libname}={fingerprint.archive_path}"])

    binary_path = binary_path_for(testcase_path)
    if mode == "full":
        cmd.extend(["-o", str(binary_path)])
    else:
        cmd.append(f"--emit=dep-info={binary_path}.d,metadata={binary_path}.m")

    return cmd


async def capture(
    cmd: Sequence[str],
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> ProcessOutput:
    """Run a command to completion and capture its output.

    Raises:
        OSError: If the process cannot be started

    """
    process = await asyncio.create_subprocess_exec(
        *cmd,
        cwd=cwd,
        env=env,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()
    return ProcessOutput(
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=stdout,
        stderr=stderr,
    )


async def run_test(
    *,
    testcase_path: Path,
    mode: CompileMode,
    terminal_colors: bool,
    target_dir: Path,
    target_triple: str,
    externs: Sequence[str] = (),
    dependencies: ProjectDependencies | None = None,
    profile: str = "debug",
) -> TestOutcome:
    """Compile an example and, in full mode, run it.

    Args:
        testcase_path: Rust source file of the example
        mode: "full" to compile and run, "check" to compile only
        terminal_colors: Whether rustc should color its diagnostics
        target_dir: Cargo target directory holding the project's build
        target_triple: Target to compile for
        externs: Extra ``--extern`` arguments passed through unchanged
        dependencies: Resolved project libraries, None without a manifest
        profile: Build profile subdirectory of target_dir

    Returns:
        The outcome, carrying the compiler's output

    Raises:
        OSError: If the compiler or the example binary cannot be started

    """
    cmd = build_compile_command(
        testcase_path=testcase_path,
        mode=mode,
        terminal_colors=terminal_colors,
        target_dir=target_dir,
        target_triple=target_triple,
        externs=externs,
        dependencies=dependencies,
        profile=profile,
    )
    log.debug("Compiling: %s", " ".join(cmd))
    compiled = await capture(cmd)

    if compiled.returncode != 0:
        return TestOutcome.compile_failed(compiled)
    if mode == "check":
        return TestOutcome.successful(compiled)

    # Run from the example's directory so relative paths resolve there.
    binary_path = binary_path_for(testcase_path).resolve()
    ran = await capture([str(binary_path)], cwd=testcase_path.parent)
    log.debug("%s exited with %d", binary_path.name, ran.returncode)

    if ran.returncode == 0:
        return TestOutcome.successful(compiled)
    return TestOutcome.run_failed(compiled)
