from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, Literal, Mapping, Optional, Set

from .adapters.base import BulkResult, SourceAdapter
from .errors import PersistenceError
from .health import HealthTracker
from .units import isoformat, utc_now

logger = logging.getLogger("envmonitor.hub.scheduler")

JobTrigger = Literal["schedule", "manual"]
JobStatus = Literal["running", "succeeded", "failed", "cancelled"]


@dataclass(slots=True)
class JobRecord:
    """Bookkeeping for one bulk job run."""

    token: str
    source_name: str
    trigger: JobTrigger
    started_at: datetime = field(default_factory=utc_now)
    finished_at: Optional[datetime] = None
    status: JobStatus = "running"
    targets_ok: int = 0
    targets_failed: int = 0
    error: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        data = asdict(self)
        data["startedAt"] = isoformat(data.pop("started_at"))
        data["finishedAt"] = isoformat(data.pop("finished_at"))
        data["sourceName"] = data.pop("source_name")
        data["targetsOk"] = data.pop("targets_ok")
        data["targetsFailed"] = data.pop("targets_failed")
        return data


class IngestScheduler:
    """One independent repeating timer per source.

    A tick starts the source's bulk job as a task and returns straight to the
    timer; the job handle is retained until it finishes so its outcome is
    logged and kept in the recent-job history. Sources marked inactive in the
    health tracker are skipped. With ``allow_overlap`` disabled a tick is also
    skipped while the previous job for that source is still running.
    """

    def __init__(
        self,
        adapters: Mapping[str, SourceAdapter],
        intervals: Mapping[str, float],
        health: HealthTracker,
        *,
        allow_overlap: bool = True,
        history_limit: int = 200,
        shutdown_grace_seconds: float = 10.0,
    ) -> None:
        missing = set(adapters) - set(intervals)
        if missing:
            raise ValueError(f"No polling interval configured for: {', '.join(sorted(missing))}")
        self._adapters: Dict[str, SourceAdapter] = dict(adapters)
        self._intervals: Dict[str, float] = {token: float(intervals[token]) for token in adapters}
        self._health = health
        self._allow_overlap = allow_overlap
        self._shutdown_grace = max(shutdown_grace_seconds, 0.0)
        self._timers: Dict[str, asyncio.Task[None]] = {}
        self._jobs: Dict[str, Set[asyncio.Task[JobRecord]]] = {token: set() for token in adapters}
        self._history: Deque[JobRecord] = deque(maxlen=max(1, history_limit))
        self._stop: Optional[asyncio.Event] = None

    @property
    def adapters(self) -> Mapping[str, SourceAdapter]:
        return self._adapters

    @property
    def running(self) -> bool:
        return bool(self._timers)

    def interval_for(self, token: str) -> float:
        return self._intervals[token]

    def in_flight(self, token: str) -> int:
        return len(self._jobs.get(token, ()))

    def recent_jobs(self, token: Optional[str] = None) -> list[JobRecord]:
        return [job for job in self._history if token is None or job.token == token]

    async def start(self) -> None:
        if self._timers:
            return
        self._stop = asyncio.Event()
        for token in self._adapters:
            self._timers[token] = asyncio.create_task(self._timer_loop(token), name=f"ingest-timer-{token}")
        logger.info(
            "Ingest scheduler started (%s)",
            ", ".join(f"{token}={self._intervals[token]:.0f}s" for token in self._adapters),
        )

    async def stop(self) -> None:
        if self._stop is not None:
            self._stop.set()
        timers = list(self._timers.values())
        self._timers.clear()
        for task in timers:
            task.cancel()
        await asyncio.gather(*timers, return_exceptions=True)
        self._stop = None

        pending = [task for jobs in self._jobs.values() for task in jobs]
        if pending:
            _, still_running = await asyncio.wait(pending, timeout=self._shutdown_grace)
            for task in still_running:
                task.cancel()
            if still_running:
                await asyncio.gather(*still_running, return_exceptions=True)
                logger.warning("Cancelled %d bulk job(s) still running at shutdown", len(still_running))
        logger.info("Ingest scheduler stopped")

    def run_now(self, token: str, *, trigger: JobTrigger = "manual") -> asyncio.Task[JobRecord]:
        """Start ``token``'s bulk job without waiting for it; returns the retained task handle."""
        adapter = self._adapters[token]
        record = JobRecord(token=token, source_name=adapter.source_name, trigger=trigger)
        task = asyncio.create_task(self._run_job(adapter, record), name=f"ingest-{token}-{trigger}")
        self._jobs.setdefault(token, set()).add(task)
        task.add_done_callback(lambda done: self._on_job_done(token, done))
        return task

    def _on_job_done(self, token: str, task: asyncio.Task[JobRecord]) -> None:
        self._jobs.get(token, set()).discard(task)
        if task.cancelled():
            logger.info("Bulk %s job cancelled", token)
            return
        record = task.result()
        if record.status == "succeeded":
            logger.info("Bulk %s job (%s) finished: %d target(s) ok", token, record.trigger, record.targets_ok)
        else:
            logger.warning("Bulk %s job (%s) finished with errors: %s", token, record.trigger, record.error)

    async def _timer_loop(self, token: str) -> None:
        stop_event = self._stop
        assert stop_event is not None
        interval = self._intervals[token]
        while not stop_event.is_set():
            try:
                await self.tick(token)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Scheduled %s tick failed: %s", token, exc)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue
        logger.debug("Ingest timer for %s exiting", token)

    async def tick(self, token: str) -> Optional[asyncio.Task[JobRecord]]:
        adapter = self._adapters[token]
        if not self._allow_overlap and self.in_flight(token):
            logger.info("Skipping scheduled %s fetch; previous run still in flight", token)
            return None
        try:
            active = await self._health.is_active(adapter.source_name)
        except PersistenceError as exc:
            logger.warning("Could not read active flag for %s, polling anyway: %s", adapter.source_name, exc)
            active = True
        if not active:
            logger.info("Skipping scheduled %s fetch; source %s is disabled", token, adapter.source_name)
            return None
        logger.info("Scheduled %s data fetch starting", token)
        return self.run_now(token, trigger="schedule")

    async def _run_job(self, adapter: SourceAdapter, record: JobRecord) -> JobRecord:
        try:
            result: BulkResult = await adapter.fetch_defaults()
        except asyncio.CancelledError:
            record.status = "cancelled"
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("Bulk %s job failed", record.token)
            record.status = "failed"
            record.error = str(exc) or type(exc).__name__
            try:
                await self._health.record_error(adapter.source_name, f"Bulk job failed: {record.error}")
            except PersistenceError as health_exc:
                logger.error("Could not record bulk failure for %s: %s", adapter.source_name, health_exc)
        else:
            record.targets_ok = result.succeeded
            record.targets_failed = result.failed
            record.status = "succeeded" if result.failed == 0 else "failed"
            if result.failed:
                record.error = f"{result.failed} of {len(result.outcomes)} target(s) failed"
        finally:
            record.finished_at = utc_now()
            self._history.append(record)
        return record


__all__ = ["IngestScheduler", "JobRecord", "JobStatus", "JobTrigger"]
