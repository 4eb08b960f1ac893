"""Fixtures for integration tests.

Integration tests run real subprocesses against shell scripts that stand in
for ``rustc`` and ``cargo``, selected through ``$RUSTC`` and ``$CARGO``.
"""

import sys
from pathlib import Path

import pytest

from docs_keeper.testing.toolchain import (
    FAKE_CARGO,
    FAKE_RUSTC,
    FakeToolchain,
    write_script,
)


@pytest.fixture
def toolchain(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> FakeToolchain:
    """Install the fake toolchain for the duration of a test."""
    if sys.platform == "win32":
        pytest.skip("fake toolchain uses POSIX shell scripts")

    bin_dir = tmp_path / "toolchain"
    bin_dir.mkdir()
    fake = FakeToolchain(
        rustc_log=bin_dir / "rustc.log",
        cargo_log=bin_dir / "cargo.log",
        metadata_path=bin_dir / "metadata.json",
    )

    monkeypatch.setenv("RUSTC", str(write_script(bin_dir / "rustc", FAKE_RUSTC)))
    monkeypatch.setenv("CARGO", str(write_script(bin_dir / "cargo", FAKE_CARGO)))
    monkeypatch.setenv("KEEPER_RUSTC_LOG", str(fake.rustc_log))
    monkeypatch.setenv("KEEPER_CARGO_LOG", str(fake.cargo_log))
    monkeypatch.setenv("KEEPER_CARGO_METADATA", str(fake.metadata_path))
    monkeypatch.delenv("KEEPER_CARGO_FAIL", raising=False)
    return fake
