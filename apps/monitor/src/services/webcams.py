from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, List, Optional

from .readings import Webcam

logger = logging.getLogger("envmonitor.hub.webcams")

DEFAULT_WEBCAMS: tuple[Webcam, ...] = (
    Webcam(
        webcam_id="nps-yose-half-dome",
        name="Half Dome from Glacier Point",
        url="https://www.nps.gov/yose/learn/photosmultimedia/webcams.htm",
        location="Yosemite National Park, CA",
        latitude=37.7306,
        longitude=-119.5741,
        category="wildfire",
        description="Smoke and haze over Yosemite Valley.",
    ),
    Webcam(
        webcam_id="noaa-battery-ny",
        name="The Battery Harbor Cam",
        url="https://tidesandcurrents.noaa.gov/stationhome.html?id=8518750",
        location="New York, NY",
        latitude=40.7006,
        longitude=-74.0142,
        category="marine",
    ),
    Webcam(
        webcam_id="faa-denver",
        name="Denver Weather Cam",
        url="https://weathercams.faa.gov/",
        location="Denver, CO",
        latitude=39.7392,
        longitude=-104.9903,
        category="weather",
    ),
)


def _coerce_webcam(entry: Any) -> Optional[Webcam]:
    if not isinstance(entry, dict):
        return None
    webcam_id = str(entry.get("webcamId") or entry.get("webcam_id") or "").strip()
    name = str(entry.get("name") or "").strip()
    url = str(entry.get("url") or "").strip()
    if not webcam_id or not name or not url:
        return None

    def _float(key: str) -> Optional[float]:
        value = entry.get(key)
        try:
            return float(value) if value is not None else None
        except (TypeError, ValueError):
            return None

    return Webcam(
        webcam_id=webcam_id,
        name=name,
        url=url,
        location=entry.get("location"),
        latitude=_float("latitude"),
        longitude=_float("longitude"),
        thumbnail_url=entry.get("thumbnailUrl") or entry.get("thumbnail_url"),
        description=entry.get("description"),
        category=entry.get("category"),
        is_active=bool(entry.get("isActive", entry.get("is_active", True))),
    )


class WebcamCatalog:
    """Static reference list of webcams shown next to the readings."""

    def __init__(self, webcams: Iterable[Webcam]) -> None:
        self._webcams: List[Webcam] = list(webcams)

    @classmethod
    def from_file(cls, path: Optional[str]) -> "WebcamCatalog":
        if not path:
            return cls(DEFAULT_WEBCAMS)
        catalog_path = Path(path).expanduser()
        try:
            raw = json.loads(catalog_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.warning("Webcam catalog %s not found; using built-in defaults", catalog_path)
            return cls(DEFAULT_WEBCAMS)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Unable to load webcam catalog %s: %s; using built-in defaults", catalog_path, exc)
            return cls(DEFAULT_WEBCAMS)
        entries = raw.get("webcams", []) if isinstance(raw, dict) else raw
        webcams = [cam for cam in (_coerce_webcam(entry) for entry in entries or []) if cam is not None]
        logger.info("Loaded %d webcam(s) from %s", len(webcams), catalog_path)
        return cls(webcams)

    async def active(self) -> List[Webcam]:
        return [cam for cam in self._webcams if cam.is_active]

    async def by_category(self, category: str) -> List[Webcam]:
        wanted = category.strip().lower()
        return [cam for cam in await self.active() if (cam.category or "").lower() == wanted]

    async def categories(self) -> List[str]:
        return sorted({cam.category for cam in self._webcams if cam.category})


__all__ = ["DEFAULT_WEBCAMS", "WebcamCatalog"]
