"""Translation session state and its transitions.

A session is an immutable value. Each pipeline event has one transition
function that returns the next value, so a run can be replayed and checked
without any UI attached.
"""
import asyncio
import time
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Optional, Tuple

from errors import FileWarning, RunInProgress
from models import SessionProgress, TranslationRecord


class SessionState(str, Enum):
    IDLE = "idle"
    QUEUED = "queued"
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = {SessionState.FINISHED, SessionState.FAILED, SessionState.CANCELLED}
ACTIVE_STATES = {SessionState.QUEUED, SessionState.RUNNING}


@dataclass(frozen=True)
class TranslationSession:
    job_id: str
    state: SessionState = SessionState.IDLE
    quality: str = "fast"
    total_units: int = 0
    completed_units: int = 0
    percent: int = 0
    status_message: str = ""
    records: Tuple[TranslationRecord, ...] = ()
    warnings: Tuple[FileWarning, ...] = ()
    error: Optional[str] = None
    started_at: float = 0.0
    finished_at: Optional[float] = None

    @property
    def is_processing(self) -> bool:
        return self.state in ACTIVE_STATES

    @property
    def duration_seconds(self) -> float:
        if not self.started_at:
            return 0.0
        end = self.finished_at if self.finished_at is not None else time.time()
        return end - self.started_at


def new_session(quality: str = "fast", job_id: Optional[str] = None) -> TranslationSession:
    return TranslationSession(job_id=job_id or str(uuid.uuid4())[:8], quality=quality)


def _percent(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    return min(100, round(100 * completed / total))


def run_queued(session: TranslationSession) -> TranslationSession:
    """The run is registered; planning has not reported back yet."""
    return replace(
        session,
        state=SessionState.QUEUED,
        status_message="Preparing files...",
        started_at=time.time(),
    )


def units_discovered(
    session: TranslationSession,
    total_units: int,
    warnings: Tuple[FileWarning, ...] = ()
) -> TranslationSession:
    """The upload was planned; dispatch is about to start."""
    return replace(
        session,
        state=SessionState.RUNNING,
        total_units=total_units,
        completed_units=0,
        percent=0,
        status_message=f"Found {total_units} sections to translate...",
        records=(),
        warnings=tuple(warnings),
        error=None,
        started_at=time.time(),
        finished_at=None,
    )


def unit_started(session: TranslationSession, source: str) -> TranslationSession:
    """A unit has been handed to the remote model."""
    return replace(session, status_message=f"Translating {source}...")


def unit_completed(
    session: TranslationSession,
    source: str,
    record: Optional[TranslationRecord] = None,
    warning: Optional[FileWarning] = None
) -> TranslationSession:
    """A unit finished, either with a record or skipped with a warning."""
    completed = min(session.completed_units + 1, session.total_units)
    records = session.records + (record,) if record is not None else session.records
    warnings = session.warnings + (warning,) if warning is not None else session.warnings
    verb = "Translated" if record is not None else "Skipped"
    return replace(
        session,
        completed_units=completed,
        percent=max(session.percent, _percent(completed, session.total_units)),
        status_message=f"{verb} {source} ({completed}/{session.total_units})",
        records=records,
        warnings=warnings,
    )


def run_finished(session: TranslationSession) -> TranslationSession:
    """All units are done. Records are re-sorted into upload order."""
    records = tuple(sorted(session.records, key=lambda r: r.unit_index))
    if session.total_units > 0 and not records:
        failures = "; ".join(w.message for w in session.warnings) or "no sections were translated"
        return run_failed(session, f"Translation failed: {failures}")
    return replace(
        session,
        state=SessionState.FINISHED,
        completed_units=session.total_units,
        percent=100,
        status_message="Success! Your manuscript is ready.",
        records=records,
        finished_at=time.time(),
    )


def run_failed(session: TranslationSession, error: str) -> TranslationSession:
    return replace(
        session,
        state=SessionState.FAILED,
        status_message="Translation failed.",
        error=error,
        finished_at=time.time(),
    )


def run_cancelled(session: TranslationSession) -> TranslationSession:
    records = tuple(sorted(session.records, key=lambda r: r.unit_index))
    return replace(
        session,
        state=SessionState.CANCELLED,
        status_message=f"Cancelled after {session.completed_units}/{session.total_units} sections.",
        records=records,
        finished_at=time.time(),
    )


def progress_of(session: TranslationSession) -> SessionProgress:
    return SessionProgress(
        completed_units=session.completed_units,
        total_units=session.total_units,
        percent=session.percent,
        status_message=session.status_message,
    )


class SessionRegistry:
    """
    In-memory session store.

    Only one run may be in flight at a time; ``begin`` raises
    ``RunInProgress`` otherwise.
    """

    def __init__(self):
        self._sessions: Dict[str, TranslationSession] = {}
        self._cancel_events: Dict[str, asyncio.Event] = {}
        self._active_job: Optional[str] = None
        self._lock = asyncio.Lock()

    async def begin(self, quality: str = "fast") -> Tuple[TranslationSession, asyncio.Event]:
        async with self._lock:
            if self._active_job is not None and self._sessions[self._active_job].state not in TERMINAL_STATES:
                raise RunInProgress(
                    f"Translation {self._active_job} is still running; wait for it to finish."
                )
            session = run_queued(new_session(quality))
            cancel_event = asyncio.Event()
            self._sessions[session.job_id] = session
            self._cancel_events[session.job_id] = cancel_event
            self._active_job = session.job_id
            return session, cancel_event

    def update(self, session: TranslationSession) -> None:
        self._sessions[session.job_id] = session
        if session.state in TERMINAL_STATES and self._active_job == session.job_id:
            self._active_job = None

    def get(self, job_id: str) -> Optional[TranslationSession]:
        return self._sessions.get(job_id)

    def cancel(self, job_id: str) -> bool:
        event = self._cancel_events.get(job_id)
        if event is None:
            return False
        event.set()
        return True

    @property
    def is_processing(self) -> bool:
        return self._active_job is not None
