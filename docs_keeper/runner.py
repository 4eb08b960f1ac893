"""Run the harness over a set of extracted examples."""

import logging
from collections.abc import Sequence

from docs_keeper.cache import CacheManager
from docs_keeper.config import KeeperSettings
from docs_keeper.environment import host_target_triple, prepare_environment
from docs_keeper.models.outcome import TestOutcome
from docs_keeper.models.test import Test
from docs_keeper.resolver import resolve_artifacts

log = logging.getLogger(__name__)


async def run_book(
    settings: KeeperSettings, tests: Sequence[Test]
) -> dict[Test, TestOutcome]:
    """Build the project, resolve its libraries and verify every example.

    Dependencies are resolved once, before any example is compiled.
    """
    await prepare_environment(settings)

    dependencies = None
    target_triple = settings.target or ""
    if settings.manifest_dir is not None:
        dependencies = await resolve_artifacts(
            settings.manifest_dir, settings.target_dir, settings.profile
        )
        if not target_triple:
            target_triple = await host_target_triple()

    log.info("Verifying %d example(s)", len(tests))
    manager = CacheManager(
        settings=settings,
        target_triple=target_triple,
        dependencies=dependencies,
    )
    return await manager.run_all(tests)
