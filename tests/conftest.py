"""Shared fixtures."""

import json
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from reelvault.config import ConfigStore, Settings
from reelvault.infrastructure import lifecycle
from reelvault.infrastructure.lifecycle import ProcessOrchestrator
from reelvault.infrastructure.transcoder import TranscoderLocator, TranscoderPaths


@pytest.fixture
def home_dir(tmp_path: Path) -> Path:
    """An isolated ~/.reelvault."""
    directory = tmp_path / "home"
    directory.mkdir()
    return directory


@pytest.fixture(autouse=True)
def isolated_cwd(
    tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch
) -> Path:
    """Keep ./config.json lookups away from the repository."""
    cwd = tmp_path_factory.mktemp("cwd")
    monkeypatch.chdir(cwd)
    return cwd


@pytest.fixture
def configured_values(tmp_path: Path) -> dict[str, Any]:
    """Config values of a fully configured system."""
    return {
        "generated": str(tmp_path / "generated"),
        "database": str(tmp_path / "data" / "reelvault.sqlite"),
    }


@pytest.fixture
def make_config(
    tmp_path: Path, home_dir: Path
) -> Callable[..., ConfigStore]:
    """Build and load a ConfigStore backed by tmp_path/config/config.json.

    values=None means no config file exists at all.
    """

    def _make(
        values: dict[str, Any] | None = None,
        env: dict[str, str] | None = None,
    ) -> ConfigStore:
        config_file: Path | None = None
        if values is not None:
            config_file = tmp_path / "config" / "config.json"
            config_file.parent.mkdir(parents=True, exist_ok=True)
            config_file.write_text(json.dumps(values), encoding="utf-8")
        store = ConfigStore(config_file, home_dir=home_dir, env=env or {})
        store.load()
        return store

    return _make


@pytest.fixture
def settings(tmp_path: Path, home_dir: Path) -> Settings:
    """Bootstrap settings that never touch the real home directory."""
    return Settings(
        _env_file=None,
        home_dir=home_dir,
        config_file=None,
        temp_cleanup_timeout=1.0,
    )


@pytest.fixture(autouse=True)
def keep_test_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    """Stop the orchestrator from replacing pytest's log capture handlers."""
    monkeypatch.setattr(lifecycle, "configure_logging", lambda **kwargs: None)


@pytest.fixture
def locator() -> MagicMock:
    """Transcoder locator that always finds both binaries."""
    mock = MagicMock(spec=TranscoderLocator)
    mock.resolve.return_value = TranscoderPaths(ffmpeg="/opt/ffmpeg", ffprobe="/opt/ffprobe")
    return mock


@pytest.fixture
def make_orchestrator(
    settings: Settings, locator: MagicMock
) -> Iterator[Callable[[ConfigStore], ProcessOrchestrator]]:
    """Build orchestrators that are closed after the test."""
    created: list[ProcessOrchestrator] = []

    def _make(config: ConfigStore) -> ProcessOrchestrator:
        orchestrator = ProcessOrchestrator(settings, config, locator)
        created.append(orchestrator)
        return orchestrator

    yield _make
    for orchestrator in created:
        orchestrator.close()
