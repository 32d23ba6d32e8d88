"""Shared fixtures for lunepack tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from fakes import FakeRegistry
from lunepack.config import Settings
from lunepack.install import PackageStore


@pytest.fixture
def registry() -> FakeRegistry:
    """A registry with a small, realistic package set.

    - ``http``: 1.2.0, 1.2.9, 1.3.0 (no dependencies)
    - ``json``: 0.4.0, 0.4.2 (no dependencies)
    - ``router``: 2.0.0 depends on ``http ^1.2``
    """
    reg = FakeRegistry()
    for version in ("1.2.0", "1.2.9", "1.3.0"):
        reg.publish("http", version)
    for version in ("0.4.0", "0.4.2"):
        reg.publish("json", version)
    reg.publish("router", "2.0.0", dependencies={"http": "^1.2"})
    return reg


@pytest.fixture
def store(tmp_path: Path) -> PackageStore:
    return PackageStore(tmp_path / "store")


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated under tmp_path, with a single worker-free retry."""
    return Settings(
        registry_url=str(tmp_path / "catalog"),
        store_dir=tmp_path / "store",
        runtime_dirs=(tmp_path / "runtimes",),
        workers=4,
        retries=1,
        backoff=0.0,
    )


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root
