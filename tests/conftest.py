"""Shared test fixtures."""

from pathlib import Path

import pytest

from clipfade.manifest import EngineConfig
from clipfade.web import create_app

FIXTURES_DIR = Path(__file__).parent / "fixtures"

# Durations (seconds) of the clips used across engine and web tests.
CLIP_DURATIONS = {"a.mp4": 10.0, "b.mp4": 8.0, "c.mp4": 12.0}


@pytest.fixture
def sample_manifest_path() -> Path:
    return FIXTURES_DIR / "sample_manifest.json"


@pytest.fixture
def clip_paths(tmp_path) -> list[Path]:
    """Three clip paths, in merge order; the files themselves are not created."""
    return [tmp_path / name for name in CLIP_DURATIONS]


@pytest.fixture
def app(tmp_path):
    app = create_app(
        work_dir=tmp_path,
        engine=EngineConfig(timeout_seconds=30),
        progress_timeout=5.0,
    )
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
