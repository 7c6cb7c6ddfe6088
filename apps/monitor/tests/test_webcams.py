import json
from pathlib import Path

import pytest

from services.webcams import DEFAULT_WEBCAMS, WebcamCatalog


@pytest.mark.anyio
async def test_catalog_loads_entries_from_file(tmp_path: Path) -> None:
    path = tmp_path / "webcams.json"
    path.write_text(
        json.dumps(
            {
                "webcams": [
                    {"webcamId": "cam-1", "name": "Harbor", "url": "https://cams.example/1", "category": "Marine"},
                    {"webcamId": "cam-2", "name": "Ridge", "url": "https://cams.example/2", "isActive": False},
                    {"name": "No id", "url": "https://cams.example/3"},
                ]
            }
        ),
        encoding="utf-8",
    )

    catalog = WebcamCatalog.from_file(str(path))

    assert [cam.webcam_id for cam in await catalog.active()] == ["cam-1"]
    assert [cam.webcam_id for cam in await catalog.by_category("marine")] == ["cam-1"]


@pytest.mark.anyio
async def test_malformed_catalog_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "webcams.json"
    path.write_text("{not json", encoding="utf-8")

    catalog = WebcamCatalog.from_file(str(path))

    assert len(await catalog.active()) == len(DEFAULT_WEBCAMS)


@pytest.mark.anyio
async def test_missing_catalog_falls_back_to_defaults(tmp_path: Path) -> None:
    catalog = WebcamCatalog.from_file(str(tmp_path / "absent.json"))
    assert len(await catalog.active()) == len(DEFAULT_WEBCAMS)
