
import sys
from pathlib import Path
from typing import Any, Callable, Dict

ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

import pytest
from fastapi.testclient import TestClient

from config import Settings, settings
from main import create_app
from services.health import HealthTracker
from services.store import MonitorStore


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def settings_override() -> Callable[..., None]:
    original: Dict[str, Any] = {}

    def _apply(**overrides: Any) -> None:
        for key, value in overrides.items():
            if key not in original:
                original[key] = getattr(settings, key)
            setattr(settings, key, value)

    yield _apply

    for key, value in original.items():
        setattr(settings, key, value)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "envmonitor.sqlite"


@pytest.fixture
def test_settings(db_path: Path) -> Settings:
    return Settings(
        database_path=str(db_path),
        scheduler_enabled=False,
        air_quality_api_key="test-key",
        weather_stations=["KORD", "KLAX"],
        marine_stations=["8518750"],
    )


@pytest.fixture
def store(db_path: Path) -> MonitorStore:
    return MonitorStore(db_path=db_path)


@pytest.fixture
def health(store: MonitorStore) -> HealthTracker:
    return HealthTracker(store)


@pytest.fixture
def client(settings_override: Callable[..., None], db_path: Path) -> TestClient:
    settings_override(database_path=str(db_path), scheduler_enabled=False, webcam_catalog_path=None)
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
