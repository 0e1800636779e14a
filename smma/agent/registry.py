"""In-memory registry of pipeline runs, one per domain.

The registry is volatile: it lives for the lifetime of the process and is
never persisted.  A fresh :class:`RunRegistry` is created at application
start-up (and per test) and handed to whoever needs it.

Readers only ever receive copies (:meth:`RunRegistry.get`,
:meth:`RunRegistry.snapshot`), so polling clients cannot mutate a run.
"""

from __future__ import annotations

import copy
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from smma.config import settings


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"


class StepState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"


class LogLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class LogEntry:
    time: str
    level: LogLevel
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"time": self.time, "level": self.level.value, "message": self.message}


@dataclass
class PipelineRun:
    domain_id: str
    log_limit: int
    status: RunStatus = RunStatus.IDLE
    current_step: Optional[str] = None
    error: Optional[str] = None
    steps: dict[str, StepState] = field(default_factory=dict)
    logs: deque = field(default_factory=deque)

    def __post_init__(self) -> None:
        self.logs = deque(self.logs, maxlen=self.log_limit)

    def to_dict(self) -> dict[str, Any]:
        return {
            "domainId": self.domain_id,
            "status": self.status.value,
            "currentStep": self.current_step,
            "error": self.error,
            "steps": {k: v.value for k, v in self.steps.items()},
            "logs": [entry.to_dict() for entry in self.logs],
        }


class RunRegistry:
    """Process-wide ``domain_id -> PipelineRun`` mapping.

    Mutations are serialised by a re-entrant lock so the registry stays
    consistent when sync endpoints (thread pool) and the event loop touch it
    concurrently.
    """

    def __init__(self, log_limit: Optional[int] = None) -> None:
        self._log_limit = log_limit or settings.pipeline_log_limit
        self._runs: dict[str, PipelineRun] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, domain_id: str) -> Optional[PipelineRun]:
        """Return a copy of the run for *domain_id*, or ``None``."""
        with self._lock:
            run = self._runs.get(domain_id)
            return copy.deepcopy(run) if run else None

    def snapshot(self, domain_id: str) -> Optional[dict[str, Any]]:
        """Return the run for *domain_id* as a JSON-ready dict, or ``None``."""
        with self._lock:
            run = self._runs.get(domain_id)
            return run.to_dict() if run else None

    def is_running(self, domain_id: str) -> bool:
        with self._lock:
            run = self._runs.get(domain_id)
            return run is not None and run.status is RunStatus.RUNNING

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def try_start(self, domain_id: str) -> tuple[bool, dict[str, Any]]:
        """Start a fresh run unless one is already running.

        Returns ``(started, snapshot)``.  When a run is already running it is
        left untouched and ``started`` is ``False``; otherwise any previous
        run of the domain is overwritten by a new ``running`` one.
        """
        with self._lock:
            existing = self._runs.get(domain_id)
            if existing is not None and existing.status is RunStatus.RUNNING:
                return False, existing.to_dict()
            run = PipelineRun(
                domain_id=domain_id,
                log_limit=self._log_limit,
                status=RunStatus.RUNNING,
            )
            self._runs[domain_id] = run
            return True, run.to_dict()

    def update(
        self,
        domain_id: str,
        step: Optional[str],
        status: str,
        error: Optional[str] = None,
    ) -> None:
        """Record a state change, creating the run lazily.

        With a *step*, that step's entry is set to *status* and the run stays
        ``running`` (or becomes ``error`` when the step failed).  Without a
        *step*, *status* applies to the run as a whole.  A non-empty *error*
        is also appended to the log.
        """
        with self._lock:
            run = self._runs.get(domain_id)
            if run is None:
                run = PipelineRun(domain_id=domain_id, log_limit=self._log_limit)
                self._runs[domain_id] = run

            run.current_step = step
            run.error = error
            if step:
                run.steps[step] = StepState(status)
                run.status = RunStatus.ERROR if status == StepState.ERROR.value else RunStatus.RUNNING
            else:
                run.status = RunStatus(status)

            if error:
                self.log(domain_id, LogLevel.ERROR, f"❌ {error}")

    def discard(self, domain_id: str) -> None:
        """Forget the run of *domain_id* entirely (no-op without a run)."""
        with self._lock:
            self._runs.pop(domain_id, None)

    def log(self, domain_id: str, level: LogLevel | str, message: str) -> None:
        """Append a log entry to the run of *domain_id* (no-op without a run).

        The buffer holds at most ``log_limit`` entries; the oldest entry is
        evicted first.
        """
        with self._lock:
            run = self._runs.get(domain_id)
            if run is None:
                return
            run.logs.append(
                LogEntry(
                    time=datetime.now(timezone.utc).isoformat(),
                    level=LogLevel(level),
                    message=message,
                )
            )
        print(f"[PIPELINE] {message}")
