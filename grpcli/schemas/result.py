"""
Result schemas - reporting records produced by a run.

JobResult -> StageResult -> ExecutionResult

Each record is produced exactly once and is not modified after it has been
appended to its parent. StageResult.jobs accumulates in wave-completion
order: every wave is recorded in its dispatch order.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class StageStatus(str, Enum):
    """Lifecycle of a stage within a run."""
    PENDING = "pending"
    AWAITING_APPROVAL = "awaiting_approval"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class JobResult:
    """Outcome of a single job dispatch."""
    name: str
    type: str
    success: bool = False
    message: str = ""
    started_at: datetime = field(default_factory=_utcnow)
    ended_at: Optional[datetime] = None
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def duration_seconds(self) -> float:
        if self.ended_at is None:
            return 0.0
        return (self.ended_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "success": self.success,
            "message": self.message,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_seconds": self.duration_seconds,
            "data": self.data,
        }


@dataclass
class StageResult:
    """
    Outcome of a stage.

    Attributes:
        name: Stage name
        status: Final (or current) stage status
        jobs: Job results in wave-completion order
        started_at: When the stage was entered
        ended_at: When the stage finished
        error_message: Failure cause, if the stage failed
    """
    name: str
    status: StageStatus = StageStatus.PENDING
    jobs: list[JobResult] = field(default_factory=list)
    started_at: datetime = field(default_factory=_utcnow)
    ended_at: Optional[datetime] = None
    error_message: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == StageStatus.SUCCEEDED

    @property
    def duration_seconds(self) -> float:
        if self.ended_at is None:
            return 0.0
        return (self.ended_at - self.started_at).total_seconds()

    def get_job(self, name: str) -> Optional[JobResult]:
        """Get the recorded result for a job by name."""
        for job in self.jobs:
            if job.name == name:
                return job
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "success": self.success,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_seconds": self.duration_seconds,
            "error_message": self.error_message,
            "jobs": [job.to_dict() for job in self.jobs],
        }


@dataclass
class ExecutionResult:
    """
    Aggregated outcome of a plan execution.

    A failed run still carries every StageResult recorded up to the failure
    point; `error` holds the terminal exception.
    """
    execution_id: str
    plan_name: str = ""
    success: bool = False
    dry_run: bool = False
    total_stages: int = 0
    total_jobs: int = 0
    completed_jobs: int = 0
    failed_jobs: int = 0
    started_at: datetime = field(default_factory=_utcnow)
    ended_at: Optional[datetime] = None
    stages: list[StageResult] = field(default_factory=list)
    rollback_stages: list[StageResult] = field(default_factory=list)
    rolled_back: bool = False
    error: Optional[Exception] = None

    @property
    def duration_seconds(self) -> float:
        if self.ended_at is None:
            return 0.0
        return (self.ended_at - self.started_at).total_seconds()

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None

    @property
    def failed_stage(self) -> Optional[StageResult]:
        """The first forward stage that did not succeed, if any."""
        for stage in self.stages:
            if stage.status == StageStatus.FAILED:
                return stage
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        result = {
            "execution_id": self.execution_id,
            "plan_name": self.plan_name,
            "success": self.success,
            "dry_run": self.dry_run,
            "total_stages": self.total_stages,
            "total_jobs": self.total_jobs,
            "completed_jobs": self.completed_jobs,
            "failed_jobs": self.failed_jobs,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_seconds": self.duration_seconds,
            "stages": [stage.to_dict() for stage in self.stages],
        }
        if self.rolled_back:
            result["rollback_stages"] = [stage.to_dict() for stage in self.rollback_stages]
        if self.error is not None:
            result["error"] = self.error_message
        return result
