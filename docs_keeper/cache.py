"""Content-addressed cache of verified examples.

Each example is written to ``keeper_<hash>.rs`` in the working directory
before it is compiled. The file survives a run only if the example met its
expectations, so its presence on the next run means the exact same source has
already been verified.
"""

import contextlib
import logging
import os
import tempfile
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from docs_keeper.config import KeeperSettings
from docs_keeper.executor import binary_path_for, run_test
from docs_keeper.extractor import create_test_input
from docs_keeper.models.outcome import TestOutcome, meets_expectations
from docs_keeper.models.test import Test
from docs_keeper.resolver import ProjectDependencies

log = logging.getLogger(__name__)

CACHE_PREFIX = "keeper_"
CACHE_EXTENSION = ".rs"
CACHE_FILE_MODE = 0o644


def get_test_path(test: Test, test_dir: Path) -> Path:
    """Return the cache file path for an example."""
    return test_dir / f"{CACHE_PREFIX}{test.hash}{CACHE_EXTENSION}"


def hash_from_path(path: Path) -> str | None:
    """Extract the content hash from a cache file name."""
    if path.suffix != CACHE_EXTENSION or not path.stem.startswith(CACHE_PREFIX):
        return None
    return path.stem.removeprefix(CACHE_PREFIX) or None


def build_products_for(path: Path) -> tuple[Path, ...]:
    """Return the files compiling a cache file can leave beside it."""
    binary_path = binary_path_for(path)
    return (
        binary_path,
        binary_path.with_name(f"{binary_path.name}.d"),
        binary_path.with_name(f"{binary_path.name}.m"),
    )


def write_test_to_path(test: Test, path: Path) -> None:
    """Atomically write an example's cleaned source to path.

    Readers never observe a partially written cache file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    tmp = Path(tmp_path)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(create_test_input(test.lines))
        os.chmod(tmp, CACHE_FILE_MODE)
        tmp.replace(path)
    except BaseException:
        with contextlib.suppress(OSError):
            tmp.unlink()
        raise


@dataclass(frozen=True, kw_only=True)
class CacheManager:
    """Runs examples against the working directory cache."""

    settings: KeeperSettings
    target_triple: str
    dependencies: ProjectDependencies | None = None

    async def run_all(self, tests: Iterable[Test]) -> dict[Test, TestOutcome]:
        """Verify every example that is not ignored or already cached.

        Examples run one after another. An example whose source and mode
        match one already run in this call gets that outcome instead of a
        second compile. Afterwards the working directory is reconciled so it
        holds exactly the examples that met expectations.

        Raises:
            OSError: If a cache file cannot be written or a process spawned

        """
        results: dict[Test, TestOutcome] = {}
        seen: dict[tuple[str, bool], TestOutcome] = {}
        written: set[str] = set()
        for test in tests:
            if test.ignore:
                log.debug("Ignoring %s", test.name)
                continue

            key = (test.hash, test.no_run)
            if (outcome := seen.get(key)) is None:
                outcome = await self._run_one(test, written)
                seen[key] = outcome
            else:
                log.debug("Reusing outcome of identical example for %s", test.name)
            results[test] = outcome

        self.cleanup(results)
        return results

    async def _run_one(self, test: Test, written: set[str]) -> TestOutcome:
        testcase_path = get_test_path(test, self.settings.test_dir)
        # A file written earlier in this run has not been verified yet.
        if test.hash not in written and testcase_path.is_file():
            log.debug("Cached: %s", test.name)
            return TestOutcome.cached()

        write_test_to_path(test, testcase_path)
        written.add(test.hash)
        log.info("Running %s", test.name)
        return await run_test(
            testcase_path=testcase_path,
            mode="check" if test.no_run else "full",
            terminal_colors=self.settings.terminal_colors,
            target_dir=self.settings.target_dir,
            target_triple=self.target_triple,
            externs=self.settings.externs,
            dependencies=self.dependencies,
            profile=self.settings.profile,
        )

    def cleanup(self, results: Mapping[Test, TestOutcome]) -> None:
        """Delete cache files that are stale or did not meet expectations.

        Examples with identical source share one file, which is kept only if
        every one of them met expectations. Build products of a deleted file
        go with it.
        """
        passed: dict[str, bool] = {}
        for test, outcome in results.items():
            passed[test.hash] = passed.get(test.hash, True) and meets_expectations(
                outcome, test
            )

        for path in sorted(
            self.settings.test_dir.glob(f"{CACHE_PREFIX}*{CACHE_EXTENSION}")
        ):
            if (file_hash := hash_from_path(path)) is None:
                continue

            match passed.get(file_hash):
                case None:
                    log.debug("Removing stale cache file %s", path.name)
                case False:
                    log.debug("Removing cache file of failed example %s", path.name)
                case True:
                    continue
            path.unlink()
            for product in build_products_for(path):
                product.unlink(missing_ok=True)
