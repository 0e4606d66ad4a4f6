"""
Orchestrator - runs a Plan stage by stage.

Stages execute strictly in plan order, never concurrently:

    PENDING -> (approval, if required) -> RUNNING -> SUCCEEDED | FAILED

Each stage gets a fresh JobGraph and Executor. On the first failed stage
the run stops; with auto-rollback on, the plan's rollback stages then run
best-effort (a failing rollback stage is logged and the next one still
runs). Plans without a rollback section fall back to asking each plugin
that completed jobs to roll back, in reverse completion order.

execute_plan always returns the ExecutionResult, partial on failure, with
`error` holding the terminal exception.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional

from grpcli.approval import ApprovalGate
from grpcli.engine.executor import DRY_RUN_DELAY_S, Executor
from grpcli.engine.jobgraph import JobGraph
from grpcli.errors import (
    ApprovalError,
    ApprovalRejectedError,
    ExecutionCancelledError,
    GrpError,
    StageFailedError,
)
from grpcli.plugins.manager import PluginManager
from grpcli.resolver import VariableResolver
from grpcli.schemas import (
    ExecutionContext,
    ExecutionResult,
    Plan,
    Stage,
    StageResult,
    StageStatus,
    new_execution_id,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ExecuteOptions:
    """Per-run switches."""
    auto_rollback: bool = False
    skip_approval: bool = False
    dry_run: bool = False


class Orchestrator:
    """
    Sequential stage runner.

    Usage:
        orchestrator = Orchestrator(PluginManager.create_default(), AutoApprovalGate())
        result = orchestrator.execute_plan(None, plan, ExecuteOptions(auto_rollback=True))
        if not result.success:
            print(result.error_message)
    """

    def __init__(
        self,
        plugin_manager: PluginManager,
        approval_gate: Optional[ApprovalGate] = None,
        max_workers: Optional[int] = None,
        dry_run_delay: float = DRY_RUN_DELAY_S,
    ):
        self.plugin_manager = plugin_manager
        self.approval_gate = approval_gate
        self.max_workers = max_workers
        self.dry_run_delay = dry_run_delay
        self.resolver = VariableResolver()

    def execute_plan(
        self,
        ctx: Optional[ExecutionContext],
        plan: Plan,
        options: Optional[ExecuteOptions] = None,
    ) -> ExecutionResult:
        """
        Execute a validated plan.

        Args:
            ctx: Caller context, used for its cancel event. None creates one.
            plan: The plan to run
            options: Rollback/approval/dry-run switches

        Returns:
            ExecutionResult; on failure success is False and error is one of
            StageFailedError, ApprovalRejectedError or ApprovalError
        """
        options = options or ExecuteOptions()
        base = ctx or ExecutionContext()
        run_ctx = replace(
            base,
            execution_id=new_execution_id(),
            variables=plan.variables,
            include_data=plan.include_data,
            stage_name=None,
        )

        result = ExecutionResult(
            execution_id=run_ctx.execution_id,
            plan_name=plan.name,
            dry_run=options.dry_run,
            total_stages=len(plan.stages),
            total_jobs=plan.total_jobs(),
        )

        logger.info(
            f"Starting plan: {plan.name}",
            extra={
                "event": "plan_started",
                "metadata": {
                    "execution_id": run_ctx.execution_id,
                    "stages": len(plan.stages),
                    "jobs": result.total_jobs,
                    "dry_run": options.dry_run,
                    "auto_rollback": options.auto_rollback,
                },
            },
        )

        for stage in plan.stages:
            stage_ctx = run_ctx.for_stage(stage.name)
            stage_result = StageResult(name=stage.name, started_at=_utcnow())

            if stage.require_approval and not options.skip_approval:
                stage_result.status = StageStatus.AWAITING_APPROVAL
                try:
                    self._request_approval(stage_ctx, stage)
                except ApprovalError as e:
                    self._close_stage(stage_result, StageStatus.FAILED, str(e))
                    result.stages.append(stage_result)
                    logger.error(
                        f"Stage {stage.name} not approved: {e}",
                        extra={"event": "stage_failed", "stage": stage.name},
                    )
                    return self._finalize(result, e)

            stage_result.status = StageStatus.RUNNING
            logger.info(
                f"Starting stage: {stage.name} ({len(stage.jobs)} jobs)",
                extra={"event": "stage_started", "stage": stage.name},
            )

            try:
                self._execute_stage(stage_ctx, stage, stage_result, options.dry_run)
            except GrpError as e:
                self._close_stage(stage_result, StageStatus.FAILED, str(e))
                result.stages.append(stage_result)
                logger.error(
                    f"Stage {stage.name} failed: {e}",
                    extra={
                        "event": "stage_failed",
                        "stage": stage.name,
                        "metadata": {"duration_seconds": stage_result.duration_seconds},
                    },
                )

                if options.auto_rollback:
                    if isinstance(e, ExecutionCancelledError):
                        logger.warning("Run cancelled, skipping rollback")
                    else:
                        self._execute_rollback(run_ctx, plan, result, options.dry_run)

                error = StageFailedError(stage.name, e)
                error.__cause__ = e
                return self._finalize(result, error)

            self._close_stage(stage_result, StageStatus.SUCCEEDED)
            result.stages.append(stage_result)
            logger.info(
                f"Stage {stage.name} completed successfully",
                extra={
                    "event": "stage_completed",
                    "stage": stage.name,
                    "metadata": {"duration_seconds": stage_result.duration_seconds},
                },
            )

        return self._finalize(result)

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def _execute_stage(
        self,
        ctx: ExecutionContext,
        stage: Stage,
        stage_result: StageResult,
        dry_run: bool,
    ) -> None:
        graph = JobGraph.from_jobs(stage.jobs)
        executor = Executor(
            self.plugin_manager,
            resolver=self.resolver,
            max_workers=self.max_workers,
            dry_run_delay=self.dry_run_delay,
        )
        executor.execute_graph(ctx, graph, stage_result, dry_run)

    @staticmethod
    def _close_stage(
        stage_result: StageResult,
        status: StageStatus,
        error_message: Optional[str] = None,
    ) -> None:
        stage_result.status = status
        stage_result.error_message = error_message
        stage_result.ended_at = _utcnow()

    def _request_approval(self, ctx: ExecutionContext, stage: Stage) -> None:
        """
        Block on the approval gate.

        Raises:
            ApprovalRejectedError: The gate said no
            ApprovalError: No gate configured, or the gate failed
        """
        if self.approval_gate is None:
            raise ApprovalError(
                f"Stage {stage.name} requires approval but no approval gate is configured"
            )

        logger.info(
            f"Stage {stage.name} requires approval. Waiting for approval...",
            extra={
                "event": "approval_requested",
                "stage": stage.name,
                "metadata": {"approvers": list(stage.approvers)},
            },
        )

        try:
            approved = self.approval_gate.request_approval(ctx, stage)
        except ApprovalError:
            raise
        except Exception as e:
            raise ApprovalError(f"approval request for stage {stage.name} failed: {e}") from e

        if not approved:
            raise ApprovalRejectedError(stage.name, list(stage.approvers))

        logger.info(f"Stage {stage.name} approved.", extra={"stage": stage.name})

    # -------------------------------------------------------------------------
    # Rollback
    # -------------------------------------------------------------------------

    def _execute_rollback(
        self,
        ctx: ExecutionContext,
        plan: Plan,
        result: ExecutionResult,
        dry_run: bool,
    ) -> None:
        """Best-effort rollback. Never raises."""
        logger.warning(
            "Starting rollback execution...",
            extra={
                "event": "rollback_started",
                "metadata": {
                    "execution_id": ctx.execution_id,
                    "mode": "plan" if plan.rollback is not None else "plugins",
                },
            },
        )

        if plan.rollback is None:
            self._rollback_plugins(ctx, result, dry_run)
            return

        result.rolled_back = True
        for stage in plan.rollback.stages:
            stage_ctx = ctx.for_stage(stage.name)
            stage_result = StageResult(
                name=stage.name, status=StageStatus.RUNNING, started_at=_utcnow()
            )
            try:
                self._execute_stage(stage_ctx, stage, stage_result, dry_run)
            except Exception as e:
                self._close_stage(stage_result, StageStatus.FAILED, str(e))
                logger.error(
                    f"Rollback stage {stage.name} failed: {e}",
                    extra={"event": "rollback_stage_failed", "stage": stage.name},
                )
            else:
                self._close_stage(stage_result, StageStatus.SUCCEEDED)
            result.rollback_stages.append(stage_result)

        logger.info("Rollback execution completed", extra={"event": "rollback_completed"})

    def _rollback_plugins(self, ctx: ExecutionContext, result: ExecutionResult, dry_run: bool) -> None:
        """Ask every plugin type that completed jobs to roll back, newest first."""
        types: list[str] = []
        for stage in result.stages:
            for job in stage.jobs:
                if job.success:
                    if job.type in types:
                        types.remove(job.type)
                    types.append(job.type)

        if dry_run:
            logger.info(f"Dry run: skipping plugin rollback for {types}")
            return

        for job_type in reversed(types):
            try:
                self.plugin_manager.rollback_plugin(ctx, job_type)
            except GrpError as e:
                logger.error(
                    f"Rollback of plugin {job_type} failed: {e}",
                    extra={"event": "rollback_plugin_failed", "metadata": {"plugin": job_type}},
                )
        result.rolled_back = bool(types)

    # -------------------------------------------------------------------------
    # Result
    # -------------------------------------------------------------------------

    def _finalize(self, result: ExecutionResult, error: Optional[Exception] = None) -> ExecutionResult:
        result.ended_at = _utcnow()
        result.success = error is None
        result.error = error

        for stage in result.stages:
            for job in stage.jobs:
                if job.success:
                    result.completed_jobs += 1
                else:
                    result.failed_jobs += 1

        if error is None:
            logger.info(
                f"Plan {result.plan_name} completed successfully",
                extra={
                    "event": "plan_completed",
                    "metadata": {
                        "execution_id": result.execution_id,
                        "completed_jobs": result.completed_jobs,
                        "duration_seconds": result.duration_seconds,
                    },
                },
            )
        else:
            logger.error(
                f"Plan {result.plan_name} failed: {error}",
                extra={
                    "event": "plan_failed",
                    "metadata": {
                        "execution_id": result.execution_id,
                        "completed_jobs": result.completed_jobs,
                        "failed_jobs": result.failed_jobs,
                        "rolled_back": result.rolled_back,
                        "duration_seconds": result.duration_seconds,
                    },
                },
            )
        return result
