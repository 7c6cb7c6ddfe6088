"""SQLite persistence for readings, wildfire incidents and source health."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, fields
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Type, TypeVar

from .errors import PersistenceError
from .readings import (
    AirQualityReading,
    GriddedForecastReading,
    MarineReading,
    SourceHealth,
    StationWeatherReading,
    WildfireEntity,
)
from .units import isoformat, parse_iso_timestamp, utc_now

logger = logging.getLogger("envmonitor.hub.store")

Reading = TypeVar(
    "Reading",
    StationWeatherReading,
    GriddedForecastReading,
    MarineReading,
    AirQualityReading,
)

# Fields handled explicitly instead of mapping 1:1 onto a column.
_SPECIAL_FIELDS = {"timestamp", "raw_payload", "created_at"}


@dataclass(frozen=True, slots=True)
class _ReadingTable:
    name: str
    key_columns: tuple[str, ...]
    columns: tuple[str, ...]


def _reading_table(name: str, record_type: type, key_columns: tuple[str, ...]) -> _ReadingTable:
    columns = tuple(f.name for f in fields(record_type) if f.name not in _SPECIAL_FIELDS)
    return _ReadingTable(name=name, key_columns=key_columns, columns=columns)


READING_TABLES: Dict[type, _ReadingTable] = {
    StationWeatherReading: _reading_table("weather_readings", StationWeatherReading, ("station_id",)),
    GriddedForecastReading: _reading_table("meteo_readings", GriddedForecastReading, ("latitude", "longitude")),
    MarineReading: _reading_table("marine_readings", MarineReading, ("station_id",)),
    AirQualityReading: _reading_table("air_quality_readings", AirQualityReading, ("station_id",)),
}

_COLUMN_TYPES = {
    "station_id": "TEXT NOT NULL",
    "conditions_text": "TEXT",
    "wind_direction_deg": "INTEGER",
    "wave_direction": "INTEGER",
    "aqi": "INTEGER",
}

_FIRE_COLUMNS = (
    "fire_id",
    "name",
    "latitude",
    "longitude",
    "discovery_date",
    "containment_date",
    "size_acres",
    "cause",
    "status",
    "incident_type",
    "raw_json",
    "created_at",
    "updated_at",
)


def _dump_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, separators=(",", ":"), default=str)


def _load_json(value: Optional[str]) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except ValueError:
        return value


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


class MonitorStore:
    """Narrow CRUD/query contract over one SQLite file.

    Every call opens its own connection inside a worker thread, so writes for
    different sources proceed concurrently and SQLite's own locking arbitrates.
    """

    def __init__(self, *, db_path: Path, busy_timeout: float = 30.0) -> None:
        self._db_path = db_path
        self._busy_timeout = busy_timeout
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize()

    @property
    def db_path(self) -> Path:
        return self._db_path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._db_path, timeout=self._busy_timeout, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _initialize(self) -> None:
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL;")
            for table in READING_TABLES.values():
                column_defs = ",\n".join(
                    f"    {column} {_COLUMN_TYPES.get(column, 'REAL')}" for column in table.columns
                )
                unique = ", ".join((*table.key_columns, "ts"))
                conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {table.name} (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        ts TEXT NOT NULL,
                    {column_defs},
                        raw_json TEXT,
                        created_at TEXT NOT NULL,
                        UNIQUE ({unique})
                    );
                    """
                )
                conn.execute(f"CREATE INDEX IF NOT EXISTS idx_{table.name}_ts ON {table.name}(ts);")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS wildfires (
                    fire_id TEXT PRIMARY KEY,
                    name TEXT,
                    latitude REAL,
                    longitude REAL,
                    discovery_date TEXT,
                    containment_date TEXT,
                    size_acres REAL,
                    cause TEXT,
                    status TEXT,
                    incident_type TEXT,
                    raw_json TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_wildfires_updated ON wildfires(updated_at);")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS source_health (
                    source_name TEXT PRIMARY KEY,
                    last_success_at TEXT,
                    last_error_at TEXT,
                    last_error_message TEXT,
                    fetch_count INTEGER NOT NULL DEFAULT 0,
                    error_count INTEGER NOT NULL DEFAULT 0,
                    is_active INTEGER NOT NULL DEFAULT 1
                );
                """
            )
            conn.commit()

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as exc:
            logger.warning("Store operation %s failed: %s", getattr(func, "__name__", func), exc)
            raise PersistenceError(f"Store operation failed: {exc}") from exc

    # Readings -----------------------------------------------------------------

    async def save_reading(self, reading: Reading) -> bool:
        """Append a reading; returns False when the key/timestamp already exists."""
        table = self._table_for(type(reading))
        return await self._run(self._insert_reading, table, reading)

    def _insert_reading(self, table: _ReadingTable, reading: Any) -> bool:
        created_at = reading.created_at or utc_now()
        values: Dict[str, Any] = {column: getattr(reading, column) for column in table.columns}
        values["ts"] = isoformat(reading.timestamp)
        values["raw_json"] = _dump_json(reading.raw_payload)
        values["created_at"] = isoformat(created_at)
        names = list(values)
        placeholders = ", ".join(f":{name}" for name in names)
        with self._connect() as conn:
            cursor = conn.execute(
                f"INSERT OR IGNORE INTO {table.name} ({', '.join(names)}) VALUES ({placeholders});",
                values,
            )
            conn.commit()
            inserted = cursor.rowcount > 0
        if inserted:
            reading.created_at = created_at
        return inserted

    async def recent_readings(self, record_type: Type[Reading], since: datetime) -> List[Reading]:
        """Readings with ``timestamp >= since``, newest first."""
        table = self._table_for(record_type)
        return await self._run(
            self._select_readings,
            record_type,
            f"SELECT * FROM {table.name} WHERE ts >= ? ORDER BY ts DESC, id DESC;",
            (isoformat(since),),
        )

    async def readings_for_key(self, record_type: Type[Reading], key: Any, *, limit: Optional[int] = None) -> List[Reading]:
        table = self._table_for(record_type)
        key_values = tuple(key) if isinstance(key, (tuple, list)) else (key,)
        if len(key_values) != len(table.key_columns):
            raise ValueError(f"{record_type.__name__} key needs {len(table.key_columns)} component(s)")
        where = " AND ".join(f"{column} = ?" for column in table.key_columns)
        sql = f"SELECT * FROM {table.name} WHERE {where} ORDER BY ts DESC, id DESC"
        params: tuple[Any, ...] = key_values
        if limit is not None:
            sql += " LIMIT ?"
            params = (*key_values, max(1, limit))
        return await self._run(self._select_readings, record_type, sql + ";", params)

    async def latest_reading(self, record_type: Type[Reading], key: Any) -> Optional[Reading]:
        rows = await self.readings_for_key(record_type, key, limit=1)
        return rows[0] if rows else None

    async def distinct_keys(self, record_type: Type[Reading]) -> List[str]:
        table = self._table_for(record_type)
        if table.key_columns != ("station_id",):
            raise ValueError(f"{record_type.__name__} is not keyed by station")
        return await self._run(self._select_column, f"SELECT DISTINCT station_id FROM {table.name} ORDER BY station_id;", ())

    async def readings_in_bbox(
        self,
        record_type: Type[Reading],
        *,
        lat_min: float,
        lat_max: float,
        lon_min: float,
        lon_max: float,
        since: datetime,
    ) -> List[Reading]:
        table = self._table_for(record_type)
        return await self._run(
            self._select_readings,
            record_type,
            f"""
            SELECT * FROM {table.name}
            WHERE latitude BETWEEN ? AND ? AND longitude BETWEEN ? AND ? AND ts >= ?
            ORDER BY ts DESC, id DESC;
            """,
            (lat_min, lat_max, lon_min, lon_max, isoformat(since)),
        )

    async def high_aqi_readings(self, threshold: int, since: datetime) -> List[AirQualityReading]:
        table = READING_TABLES[AirQualityReading]
        return await self._run(
            self._select_readings,
            AirQualityReading,
            f"SELECT * FROM {table.name} WHERE aqi > ? AND ts >= ? ORDER BY aqi DESC, ts DESC;",
            (threshold, isoformat(since)),
        )

    def _select_readings(self, record_type: type, sql: str, params: Sequence[Any]) -> List[Any]:
        table = READING_TABLES[record_type]
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        results: List[Any] = []
        for row in rows:
            kwargs = {column: row[column] for column in table.columns}
            kwargs["timestamp"] = parse_iso_timestamp(row["ts"])
            kwargs["raw_payload"] = _load_json(row["raw_json"])
            kwargs["created_at"] = parse_iso_timestamp(row["created_at"])
            results.append(record_type(**kwargs))
        return results

    def _select_column(self, sql: str, params: Sequence[Any]) -> List[Any]:
        with self._connect() as conn:
            return [row[0] for row in conn.execute(sql, params)]

    @staticmethod
    def _table_for(record_type: type) -> _ReadingTable:
        try:
            return READING_TABLES[record_type]
        except KeyError:
            raise TypeError(f"No reading table for {record_type.__name__}") from None

    # Wildfires ----------------------------------------------------------------

    async def get_fire(self, fire_id: str) -> Optional[WildfireEntity]:
        rows = await self._run(self._select_fires, "SELECT * FROM wildfires WHERE fire_id = ?;", (fire_id,))
        return rows[0] if rows else None

    async def apply_fire(
        self,
        fire_id: str,
        mutate: Callable[[Optional[WildfireEntity]], WildfireEntity],
    ) -> WildfireEntity:
        """Read, transform and write one fire row inside a single write transaction."""
        return await self._run(self._apply_fire, fire_id, mutate)

    def _apply_fire(
        self,
        fire_id: str,
        mutate: Callable[[Optional[WildfireEntity]], WildfireEntity],
    ) -> WildfireEntity:
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE;")
            try:
                row = conn.execute("SELECT * FROM wildfires WHERE fire_id = ?;", (fire_id,)).fetchone()
                current = self._fire_from_row(row) if row is not None else None
                updated = mutate(current)
                values = self._fire_values(updated)
                assignments = ", ".join(f"{column} = excluded.{column}" for column in _FIRE_COLUMNS[1:])
                conn.execute(
                    f"""
                    INSERT INTO wildfires ({', '.join(_FIRE_COLUMNS)})
                    VALUES ({', '.join(':' + column for column in _FIRE_COLUMNS)})
                    ON CONFLICT(fire_id) DO UPDATE SET {assignments};
                    """,
                    values,
                )
                conn.commit()
            except BaseException:
                conn.rollback()
                raise
        return updated

    async def fires_updated_since(self, since: datetime) -> List[WildfireEntity]:
        return await self._run(
            self._select_fires,
            "SELECT * FROM wildfires WHERE updated_at >= ? ORDER BY updated_at DESC;",
            (isoformat(since),),
        )

    async def fires_by_status(self, status: str) -> List[WildfireEntity]:
        return await self._run(
            self._select_fires,
            "SELECT * FROM wildfires WHERE status = ? ORDER BY updated_at DESC;",
            (status,),
        )

    async def fires_in_bbox(self, *, lat_min: float, lat_max: float, lon_min: float, lon_max: float) -> List[WildfireEntity]:
        return await self._run(
            self._select_fires,
            """
            SELECT * FROM wildfires
            WHERE latitude BETWEEN ? AND ? AND longitude BETWEEN ? AND ?
            ORDER BY updated_at DESC;
            """,
            (lat_min, lat_max, lon_min, lon_max),
        )

    async def large_fires(self, min_size_acres: float) -> List[WildfireEntity]:
        return await self._run(
            self._select_fires,
            "SELECT * FROM wildfires WHERE size_acres > ? ORDER BY size_acres DESC;",
            (min_size_acres,),
        )

    async def fire_statuses(self) -> List[str]:
        return await self._run(
            self._select_column,
            "SELECT DISTINCT status FROM wildfires WHERE status IS NOT NULL ORDER BY status;",
            (),
        )

    def _select_fires(self, sql: str, params: Sequence[Any]) -> List[WildfireEntity]:
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._fire_from_row(row) for row in rows]

    @staticmethod
    def _fire_from_row(row: sqlite3.Row) -> WildfireEntity:
        return WildfireEntity(
            fire_id=row["fire_id"],
            name=row["name"],
            latitude=row["latitude"],
            longitude=row["longitude"],
            discovery_date=_parse_date(row["discovery_date"]),
            containment_date=_parse_date(row["containment_date"]),
            size_acres=row["size_acres"],
            cause=row["cause"],
            status=row["status"],
            incident_type=row["incident_type"],
            raw_payload=_load_json(row["raw_json"]),
            created_at=parse_iso_timestamp(row["created_at"]),
            updated_at=parse_iso_timestamp(row["updated_at"]),
        )

    @staticmethod
    def _fire_values(fire: WildfireEntity) -> Dict[str, Any]:
        now = utc_now()
        return {
            "fire_id": fire.fire_id,
            "name": fire.name,
            "latitude": fire.latitude,
            "longitude": fire.longitude,
            "discovery_date": fire.discovery_date.isoformat() if fire.discovery_date else None,
            "containment_date": fire.containment_date.isoformat() if fire.containment_date else None,
            "size_acres": fire.size_acres,
            "cause": fire.cause,
            "status": fire.status,
            "incident_type": fire.incident_type,
            "raw_json": _dump_json(fire.raw_payload),
            "created_at": isoformat(fire.created_at or now),
            "updated_at": isoformat(fire.updated_at or now),
        }

    # Source health --------------------------------------------------------------

    async def get_health(self, source_name: str) -> Optional[SourceHealth]:
        rows = await self._run(
            self._select_health,
            "SELECT * FROM source_health WHERE source_name = ?;",
            (source_name,),
        )
        return rows[0] if rows else None

    async def list_health(self) -> List[SourceHealth]:
        return await self._run(self._select_health, "SELECT * FROM source_health ORDER BY source_name;", ())

    async def apply_health(
        self,
        source_name: str,
        mutate: Callable[[Optional[SourceHealth]], Optional[SourceHealth]],
    ) -> Optional[SourceHealth]:
        """Get-or-transform one health row atomically. ``mutate`` may return None to skip the write."""
        return await self._run(self._apply_health, source_name, mutate)

    def _apply_health(
        self,
        source_name: str,
        mutate: Callable[[Optional[SourceHealth]], Optional[SourceHealth]],
    ) -> Optional[SourceHealth]:
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE;")
            try:
                row = conn.execute("SELECT * FROM source_health WHERE source_name = ?;", (source_name,)).fetchone()
                current = self._health_from_row(row) if row is not None else None
                updated = mutate(current)
                if updated is None:
                    conn.rollback()
                    return None
                conn.execute(
                    """
                    INSERT INTO source_health
                        (source_name, last_success_at, last_error_at, last_error_message, fetch_count, error_count, is_active)
                    VALUES
                        (:source_name, :last_success_at, :last_error_at, :last_error_message, :fetch_count, :error_count, :is_active)
                    ON CONFLICT(source_name) DO UPDATE SET
                        last_success_at = excluded.last_success_at,
                        last_error_at = excluded.last_error_at,
                        last_error_message = excluded.last_error_message,
                        fetch_count = excluded.fetch_count,
                        error_count = excluded.error_count,
                        is_active = excluded.is_active;
                    """,
                    {
                        "source_name": updated.source_name,
                        "last_success_at": isoformat(updated.last_success_at),
                        "last_error_at": isoformat(updated.last_error_at),
                        "last_error_message": updated.last_error_message,
                        "fetch_count": updated.fetch_count,
                        "error_count": updated.error_count,
                        "is_active": 1 if updated.is_active else 0,
                    },
                )
                conn.commit()
            except BaseException:
                conn.rollback()
                raise
        return updated

    def _select_health(self, sql: str, params: Sequence[Any]) -> List[SourceHealth]:
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._health_from_row(row) for row in rows]

    @staticmethod
    def _health_from_row(row: sqlite3.Row) -> SourceHealth:
        return SourceHealth(
            source_name=row["source_name"],
            last_success_at=parse_iso_timestamp(row["last_success_at"]),
            last_error_at=parse_iso_timestamp(row["last_error_at"]),
            last_error_message=row["last_error_message"],
            fetch_count=int(row["fetch_count"] or 0),
            error_count=int(row["error_count"] or 0),
            is_active=bool(row["is_active"]),
        )

    # Maintenance ----------------------------------------------------------------

    async def clear(self) -> None:
        await self._run(self._truncate)

    def _truncate(self) -> None:
        with self._connect() as conn:
            for table in READING_TABLES.values():
                conn.execute(f"DELETE FROM {table.name};")
            conn.execute("DELETE FROM wildfires;")
            conn.execute("DELETE FROM source_health;")
            conn.commit()


__all__ = ["MonitorStore", "READING_TABLES"]
