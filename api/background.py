"""In-memory background jobs, used for league data refreshes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from threading import RLock, Thread
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from domain import LeagueData
from store import SessionStore

logger = logging.getLogger(__name__)

LEAGUE_REFRESH_JOB = "league-refresh"


@dataclass
class JobRecord:
    job_id: str
    job_type: str
    status: str
    created_at: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    result: Optional[Any] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def finished(self) -> bool:
        return self.status in ("completed", "failed")


class JobManager:
    """Run jobs in daemon threads and keep their records in memory.

    Only one job per type runs at a time: submitting a type that is already
    pending or running returns the existing job id. At most ``keep_finished``
    completed or failed records are kept; older ones are dropped on submit.
    """

    def __init__(self, keep_finished: int = 50) -> None:
        self._lock = RLock()
        self._keep_finished = keep_finished
        self._jobs: Dict[str, JobRecord] = {}
        self._threads: Dict[str, Thread] = {}

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def _update(self, job_id: str, **fields: Any) -> None:
        with self._lock:
            record = self._jobs.get(job_id)
            if record is not None:
                self._jobs[job_id] = replace(record, **fields)

    def _prune(self) -> None:
        with self._lock:
            done = sorted(
                (r for r in self._jobs.values() if r.finished),
                key=lambda r: r.finished_at or r.created_at,
            )
            for record in done[: max(len(done) - self._keep_finished, 0)]:
                del self._jobs[record.job_id]

    def active_job(self, job_type: str) -> Optional[str]:
        with self._lock:
            for record in self._jobs.values():
                if record.job_type == job_type and not record.finished:
                    return record.job_id
        return None

    def submit(
        self,
        job_type: str,
        func: Callable[[], Any],
        *,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        with self._lock:
            existing = self.active_job(job_type)
            if existing is not None:
                return existing
            self._prune()
            job_id = uuid4().hex
            self._jobs[job_id] = JobRecord(
                job_id=job_id,
                job_type=job_type,
                status="pending",
                created_at=self._now(),
                metadata=metadata or {},
            )

        def runner() -> None:
            self._update(job_id, status="running", started_at=self._now())
            try:
                result = func()
            except Exception as exc:
                logger.error("Job %s (%s) failed: %s", job_id, job_type, exc)
                self._update(job_id, status="failed", finished_at=self._now(), error=str(exc))
            else:
                self._update(job_id, status="completed", finished_at=self._now(), result=result)
            finally:
                with self._lock:
                    self._threads.pop(job_id, None)

        thread = Thread(target=runner, name=f"job-{job_id}", daemon=True)
        with self._lock:
            self._threads[job_id] = thread
        thread.start()
        return job_id

    def wait(self, job_id: str, timeout: Optional[float] = None) -> Optional[JobRecord]:
        with self._lock:
            thread = self._threads.get(job_id)
        if thread is not None:
            thread.join(timeout)
        return self.get(job_id)

    def list_jobs(self, job_type: Optional[str] = None) -> List[JobRecord]:
        """Records newest first, optionally restricted to one job type."""
        with self._lock:
            records = [r for r in self._jobs.values() if job_type is None or r.job_type == job_type]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def get(self, job_id: str) -> Optional[JobRecord]:
        with self._lock:
            record = self._jobs.get(job_id)
            # Records are replaced on update, so handing out a copy is enough.
            return replace(record, metadata=dict(record.metadata)) if record else None


def refresh_league_data(store: SessionStore, loader: Callable[[], LeagueData]) -> Dict[str, Any]:
    league = loader()
    store.set_league_data(league)
    return {
        "tableRows": len(league.table),
        "fixtures": len(league.fixtures),
        "formRows": len(league.form),
        "sources": len(league.sources),
    }


def start_league_refresh(
    manager: JobManager,
    store: SessionStore,
    loader: Callable[[], LeagueData],
) -> str:
    return manager.submit(
        LEAGUE_REFRESH_JOB,
        lambda: refresh_league_data(store, loader),
        metadata={"statePath": str(store.path)},
    )


# Global singleton used throughout the API layer.
job_manager = JobManager()
