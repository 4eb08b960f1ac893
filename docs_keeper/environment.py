"""Prepare the working directory and the project build."""

import logging
import os

from docs_keeper.cargo import cargo_command
from docs_keeper.config import KeeperSettings
from docs_keeper.executor import capture, rustc_command

log = logging.getLogger(__name__)


class BuildError(Exception):
    """Raised when the project cannot be built."""


async def prepare_environment(settings: KeeperSettings) -> None:
    """Create the working directory and build the project, if one is configured.

    Raises:
        BuildError: If ``cargo build`` fails

    """
    settings.test_dir.mkdir(parents=True, exist_ok=True)

    if settings.manifest_dir is None:
        return

    log.info("Building project in %s", settings.manifest_dir)
    cmd = [cargo_command(), "build"]
    if settings.profile == "release":
        cmd.append("--release")
    elif settings.profile != "debug":
        cmd.extend(["--profile", settings.profile])

    env = {
        **os.environ,
        "CARGO_TARGET_DIR": str(settings.target_dir),
        "CARGO_MANIFEST_DIR": str(settings.manifest_dir),
    }
    output = await capture(cmd, cwd=settings.manifest_dir, env=env)

    if output.returncode != 0:
        raise BuildError(f"cargo build failed: {output.stderr.decode().strip()}")


async def host_target_triple() -> str:
    """Ask rustc for the triple of the machine it runs on.

    Raises:
        BuildError: If rustc does not report a host triple

    """
    output = await capture([rustc_command(), "-vV"])
    for line in output.stdout.decode().splitlines():
        if line.startswith("host:"):
            return line.removeprefix("host:").strip()
    raise BuildError(f"Cannot determine host triple: {output.stderr.decode().strip()}")
