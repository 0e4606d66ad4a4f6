"""
Plan validator - structural checks run before any job executes.

Checks, in order:
- apiVersion, kind and metadata.name are set
- at least one stage; every stage named, unique and non-empty
- every job named, unique within its stage and typed
- dependsOn only names jobs declared earlier in the same stage
- no dependency cycles within a stage
- a rollback section, when present, has stages passing the same job checks

The executor re-checks each stage graph for cycles on its own.
"""

from typing import Optional

from grpcli.errors import CycleDetectedError, PlanValidationError
from grpcli.schemas import Job, Plan, Stage


class PlanValidator:
    """Validates Plan structure."""

    def validate_plan(self, plan: Optional[Plan]) -> None:
        """
        Validate a plan.

        Raises:
            PlanValidationError: On the first structural problem found
            CycleDetectedError: If a stage's jobs depend on each other in a cycle
        """
        if plan is None:
            raise PlanValidationError("plan cannot be None")

        if not plan.api_version:
            raise PlanValidationError("apiVersion is required")
        if not plan.kind:
            raise PlanValidationError("kind is required")
        if not plan.metadata.name:
            raise PlanValidationError("metadata.name is required")
        if not plan.stages:
            raise PlanValidationError("at least one stage is required")

        stage_names: set[str] = set()
        for i, stage in enumerate(plan.stages):
            if not stage.name:
                raise PlanValidationError(f"stage[{i}].name is required")
            if stage.name in stage_names:
                raise PlanValidationError(f"duplicate stage name: {stage.name}")
            stage_names.add(stage.name)

            self._validate_jobs(stage, prefix="stage", label="stage")

            try:
                check_circular_dependencies(stage.jobs)
            except CycleDetectedError as e:
                raise CycleDetectedError(f"in stage {stage.name}: {e}") from e

        if plan.rollback is not None:
            if not plan.rollback.stages:
                raise PlanValidationError("rollback must have at least one stage")

            for i, stage in enumerate(plan.rollback.stages):
                if not stage.name:
                    raise PlanValidationError(f"rollback.stage[{i}].name is required")

                self._validate_jobs(stage, prefix="rollback.stage", label="rollback stage")

                try:
                    check_circular_dependencies(stage.jobs)
                except CycleDetectedError as e:
                    raise CycleDetectedError(f"in rollback stage {stage.name}: {e}") from e

    def _validate_jobs(self, stage: Stage, prefix: str, label: str) -> None:
        if not stage.jobs:
            raise PlanValidationError(f"{prefix}[{stage.name}] must have at least one job")

        job_names: set[str] = set()
        for j, job in enumerate(stage.jobs):
            if not job.name:
                raise PlanValidationError(f"{prefix}[{stage.name}].job[{j}].name is required")
            if job.name in job_names:
                raise PlanValidationError(
                    f"duplicate job name in {label} {stage.name}: {job.name}"
                )
            job_names.add(job.name)

            if not job.type:
                raise PlanValidationError(
                    f"{prefix}[{stage.name}].job[{job.name}].type is required"
                )

            for dep in job.depends_on:
                if dep not in job_names:
                    raise PlanValidationError(
                        f"{prefix}[{stage.name}].job[{job.name}] depends on unknown job: {dep}"
                    )


def check_circular_dependencies(jobs: tuple[Job, ...]) -> None:
    """
    Depth-first cycle check over one stage's jobs.

    Uses an explicit stack, so chain length is not bounded by the
    interpreter's recursion limit. Unknown dependency names are skipped.

    Raises:
        CycleDetectedError: "circular dependency detected: a -> b" for the
            first back edge found
    """
    by_name = {job.name: job for job in jobs}
    visited: set[str] = set()
    on_stack: set[str] = set()

    for root in jobs:
        if root.name in visited:
            continue
        visited.add(root.name)
        on_stack.add(root.name)
        stack = [(root, iter(root.depends_on))]

        while stack:
            job, deps = stack[-1]
            for dep in deps:
                if dep in on_stack:
                    raise CycleDetectedError(f"circular dependency detected: {job.name} -> {dep}")
                if dep not in visited and dep in by_name:
                    visited.add(dep)
                    on_stack.add(dep)
                    stack.append((by_name[dep], iter(by_name[dep].depends_on)))
                    break
            else:
                on_stack.discard(job.name)
                stack.pop()


def validate_plan(plan: Optional[Plan]) -> None:
    """Validate a plan with a default PlanValidator."""
    PlanValidator().validate_plan(plan)
