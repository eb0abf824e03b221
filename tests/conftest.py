"""Test configuration."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import ux_embed.paths as paths  # noqa: E402
import ux_embed.services.library_store as library_store_module  # noqa: E402
from ux_embed.visualizers.presets import PresetCatalog  # noqa: E402


class FakeAppDirs:
    def __init__(self, root: Path) -> None:
        self.user_data_dir = str(root / "data")


@pytest.fixture(autouse=True)
def isolated_app_dirs(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Keep per-user data, logs and the default library inside ``tmp_path``."""
    monkeypatch.setattr(paths, "AppDirs", lambda app_name: FakeAppDirs(tmp_path))
    paths.get_app_dirs.cache_clear()
    yield
    paths.get_app_dirs.cache_clear()


@pytest.fixture(autouse=True)
def run_blocking_inline(monkeypatch: pytest.MonkeyPatch):
    """Run SQLite work inline so store calls never wait on the IO executor."""

    async def _inline(func, /, *args, **kwargs):
        return func(*args, **kwargs)

    monkeypatch.setattr(library_store_module, "run_blocking", _inline)


@pytest.fixture
def catalog() -> PresetCatalog:
    return PresetCatalog.load()
