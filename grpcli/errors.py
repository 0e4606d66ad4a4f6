"""
Error classes for grp release execution.

The taxonomy follows the points where a release can break:
- Structural: the plan itself is malformed (PlanLoadError, PlanValidationError,
  CycleDetectedError). Reported before any job runs.
- Resolution: a whole-value ${...} reference cannot be resolved (ResolutionError).
- Plugin: a handler is missing, rejects its config, or fails to execute.
- Execution: a job in a wave failed (JobFailedError), which fails the stage
  (StageFailedError), or the run was cancelled (ExecutionCancelledError).
- Approval: a gate rejected the stage or could not be consulted.

Error handling contract:
- Errors are exceptions, not values
- Wrappers keep the original exception as __cause__ (raise ... from e)
- Rollback failures are logged by the orchestrator, never raised
"""

from typing import Optional


class GrpError(Exception):
    """Base exception for grp."""
    pass


class ConfigError(GrpError):
    """CLI configuration file is invalid."""
    pass


# -----------------------------------------------------------------------------
# Structural errors
# -----------------------------------------------------------------------------


class PlanLoadError(GrpError):
    """Raised when a plan file cannot be read or parsed."""
    pass


class PlanValidationError(GrpError):
    """Raised when a plan fails structural validation."""
    pass


class CycleDetectedError(PlanValidationError):
    """Raised when a stage's job dependencies form a cycle."""
    pass


# -----------------------------------------------------------------------------
# Resolution errors
# -----------------------------------------------------------------------------


class ResolutionError(GrpError):
    """
    Raised when a ${path} reference cannot be resolved.

    Only whole-value references raise this. References embedded in
    other text are left untouched when they cannot be resolved.
    """

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


# -----------------------------------------------------------------------------
# Plugin errors
# -----------------------------------------------------------------------------


class PluginError(GrpError):
    """Base class for plugin registry and dispatch failures."""
    pass


class PluginNotFoundError(PluginError):
    """No plugin is registered under the requested name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"plugin {name} not found")


class PluginAlreadyRegisteredError(PluginError):
    """A plugin with the same name is already registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"plugin {name} is already registered")


class PluginValidationError(PluginError):
    """The plugin rejected the job configuration."""
    pass


class PluginExecutionError(PluginError):
    """The plugin raised while executing."""
    pass


class PluginLoadError(PluginError):
    """A plugin candidate could not be discovered or loaded."""
    pass


# -----------------------------------------------------------------------------
# Execution errors
# -----------------------------------------------------------------------------


class JobFailedError(GrpError):
    """Raised by the executor when a job in the current wave failed."""

    def __init__(self, job_name: str, message: str):
        self.job_name = job_name
        self.message = message
        super().__init__(f"job {job_name} failed: {message}")


class ExecutionCancelledError(GrpError):
    """Raised when the run was cancelled before the next wave could start."""
    pass


class StageFailedError(GrpError):
    """Terminal error of a run whose stage did not succeed."""

    def __init__(self, stage_name: str, cause: Exception):
        self.stage_name = stage_name
        self.cause = cause
        super().__init__(f"Stage {stage_name} failed: {cause}")


# -----------------------------------------------------------------------------
# Approval errors
# -----------------------------------------------------------------------------


class ApprovalError(GrpError):
    """The approval gate could not produce a decision."""
    pass


class ApprovalRejectedError(ApprovalError):
    """The approval gate rejected the stage."""

    def __init__(self, stage_name: str, approvers: Optional[list[str]] = None):
        self.stage_name = stage_name
        self.approvers = list(approvers or [])
        super().__init__(f"Stage {stage_name} was not approved")
