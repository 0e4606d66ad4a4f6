"""
grpcli.schemas - Data structures for release execution.

Plan -> ExecutionContext -> JobResult -> StageResult -> ExecutionResult

Lifecycle:
1. Plan: Loaded and validated release definition (stages, jobs, rollback, variables)
2. ExecutionContext: Read-only run facts (execution id, variables, active stage)
3. JobResult: Outcome of one job dispatch
4. StageResult: Job results of a stage in wave-completion order
5. ExecutionResult: Aggregated run outcome, returned even when the run fails
"""

from .plan import (
    Job,
    Stage,
    Plan,
    Metadata,
    Include,
    Rollback,
)
from .context import (
    ExecutionContext,
    new_execution_id,
)
from .result import (
    JobResult,
    StageResult,
    StageStatus,
    ExecutionResult,
)
from .approval import (
    ApprovalStatus,
    ApprovalRequest,
    ApprovalResponse,
)

__all__ = [
    # Plan
    "Job",
    "Stage",
    "Plan",
    "Metadata",
    "Include",
    "Rollback",
    # Context
    "ExecutionContext",
    "new_execution_id",
    # Results
    "JobResult",
    "StageResult",
    "StageStatus",
    "ExecutionResult",
    # Approval
    "ApprovalStatus",
    "ApprovalRequest",
    "ApprovalResponse",
]
