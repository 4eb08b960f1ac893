"""Tests for running the harness over a book."""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from docs_keeper.config import KeeperSettings
from docs_keeper.resolver import ProjectDependencies
from docs_keeper.runner import run_book
from docs_keeper.testing.factories import TestFactory


@pytest.fixture
def dependencies() -> ProjectDependencies:
    """Resolved dependencies without libraries."""
    return ProjectDependencies(edition="2021", artifacts={})


async def test_runs_without_project(tmp_path: Path) -> None:
    """Skips resolution and host detection when no manifest is configured."""
    settings = KeeperSettings(test_dir=tmp_path / "cache", target_dir=tmp_path)
    tests = [TestFactory.build()]

    with (
        patch(
            "docs_keeper.runner.resolve_artifacts", new_callable=AsyncMock
        ) as resolve,
        patch(
            "docs_keeper.runner.host_target_triple", new_callable=AsyncMock
        ) as host,
        patch("docs_keeper.runner.CacheManager") as manager_cls,
    ):
        manager_cls.return_value.run_all = AsyncMock(return_value={})
        results = await run_book(settings, tests)

    assert results == {}
    assert settings.test_dir.is_dir()
    resolve.assert_not_called()
    host.assert_not_called()
    manager_cls.assert_called_once_with(
        settings=settings, target_triple="", dependencies=None
    )
    manager_cls.return_value.run_all.assert_called_once_with(tests)


async def test_resolves_project_once(
    tmp_path: Path, dependencies: ProjectDependencies
) -> None:
    """Builds and resolves the project before running examples."""
    settings = KeeperSettings(
        test_dir=tmp_path / "cache",
        target_dir=tmp_path / "target",
        manifest_dir=tmp_path,
        profile="release",
    )

    with (
        patch("docs_keeper.runner.prepare_environment", new_callable=AsyncMock),
        patch(
            "docs_keeper.runner.resolve_artifacts",
            new_callable=AsyncMock,
            return_value=dependencies,
        ) as resolve,
        patch(
            "docs_keeper.runner.host_target_triple",
            new_callable=AsyncMock,
            return_value="aarch64-apple-darwin",
        ),
        patch("docs_keeper.runner.CacheManager") as manager_cls,
    ):
        manager_cls.return_value.run_all = AsyncMock(return_value={})
        await run_book(settings, [TestFactory.build(), TestFactory.build()])

    resolve.assert_called_once_with(tmp_path, tmp_path / "target", "release")
    manager_cls.assert_called_once_with(
        settings=settings,
        target_triple="aarch64-apple-darwin",
        dependencies=dependencies,
    )


async def test_configured_target_overrides_host(
    tmp_path: Path, dependencies: ProjectDependencies
) -> None:
    """Uses the configured triple instead of asking rustc."""
    settings = KeeperSettings(
        test_dir=tmp_path / "cache",
        target_dir=tmp_path,
        manifest_dir=tmp_path,
        target="wasm32-wasip1",
    )

    with (
        patch("docs_keeper.runner.prepare_environment", new_callable=AsyncMock),
        patch(
            "docs_keeper.runner.resolve_artifacts",
            new_callable=AsyncMock,
            return_value=dependencies,
        ),
        patch(
            "docs_keeper.runner.host_target_triple", new_callable=AsyncMock
        ) as host,
        patch("docs_keeper.runner.CacheManager") as manager_cls,
    ):
        manager_cls.return_value.run_all = AsyncMock(return_value={})
        await run_book(settings, [])

    host.assert_not_called()
    assert manager_cls.call_args.kwargs["target_triple"] == "wasm32-wasip1"
