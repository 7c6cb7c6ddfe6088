from .air_quality import AirQualityAdapter
from .base import DEFAULT_CITIES, BulkResult, FetchOutcome, Location, SourceAdapter
from .gridded_forecast import GriddedForecastAdapter
from .marine import MarineAdapter
from .station_weather import StationWeatherAdapter
from .wildfire import WildfireAdapter

__all__ = [
    "AirQualityAdapter",
    "BulkResult",
    "DEFAULT_CITIES",
    "FetchOutcome",
    "GriddedForecastAdapter",
    "Location",
    "MarineAdapter",
    "SourceAdapter",
    "StationWeatherAdapter",
    "WildfireAdapter",
]
