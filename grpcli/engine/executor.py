"""
Executor - wave-based execution of a stage's JobGraph.

Each wave is the graph's current ready set:
1. Check cancellation; a cancelled run dispatches nothing more
2. Dispatch every ready job concurrently (thread pool sized to the wave)
3. Wait for all of them (full barrier, even if some already failed)
4. Record every JobResult in dispatch order
5. Abort on the first failure in that order, otherwise mark the
   successful jobs completed and compute the next wave

A single failed job aborts the whole stage graph. Independent branches
are not continued. A graph whose frontier runs dry with jobs still
incomplete is a structural error, not a success.

Dry-run dispatch calls no plugin: it sleeps briefly and reports success.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Optional

from grpcli.engine.jobgraph import JobGraph
from grpcli.errors import (
    CycleDetectedError,
    ExecutionCancelledError,
    JobFailedError,
    PlanValidationError,
    ResolutionError,
)
from grpcli.plugins.manager import PluginManager
from grpcli.resolver import VariableResolver
from grpcli.schemas import ExecutionContext, Job, JobResult, StageResult

logger = logging.getLogger(__name__)

DRY_RUN_DELAY_S = 0.1
DRY_RUN_MESSAGE = "Dry run simulation"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Executor:
    """
    Runs one JobGraph to completion or first failure.

    Usage:
        executor = Executor(plugin_manager)
        executor.execute_graph(ctx.for_stage("deploy"), graph, stage_result, dry_run=False)
    """

    def __init__(
        self,
        plugin_manager: PluginManager,
        resolver: Optional[VariableResolver] = None,
        max_workers: Optional[int] = None,
        dry_run_delay: float = DRY_RUN_DELAY_S,
    ):
        """
        Initialize executor.

        Args:
            plugin_manager: Registry jobs are dispatched through
            resolver: Resolver for ${...} references in job configs
            max_workers: Upper bound on concurrent jobs per wave (None = wave size)
            dry_run_delay: Simulated job duration in dry-run mode, in seconds
        """
        self.plugin_manager = plugin_manager
        self.resolver = resolver or VariableResolver()
        self.max_workers = max_workers
        self.dry_run_delay = dry_run_delay

    def execute_graph(
        self,
        ctx: ExecutionContext,
        graph: JobGraph,
        stage_result: StageResult,
        dry_run: bool = False,
    ) -> None:
        """
        Execute every job of a graph in dependency waves.

        Job results are appended to stage_result.jobs as each wave finishes.

        Args:
            ctx: Execution context with the stage set
            graph: Fresh graph for this stage
            stage_result: Accumulator for job results
            dry_run: Simulate jobs instead of calling plugins

        Raises:
            CycleDetectedError: If the graph has a cycle (nothing is dispatched)
            ExecutionCancelledError: If the run was cancelled before a wave
            JobFailedError: On the first failed job of a wave
            PlanValidationError: If jobs remain that can never become ready
        """
        if graph.has_cycles():
            raise CycleDetectedError("dependency cycle detected in job graph")

        ready = graph.get_ready_jobs()
        wave = 0

        while ready:
            if ctx.cancelled:
                raise ExecutionCancelledError(
                    f"execution cancelled before wave {wave + 1} of stage {ctx.stage_name}"
                )

            wave += 1
            logger.debug(
                f"Dispatching wave {wave}: {[job.name for job in ready]}",
                extra={
                    "event": "wave_started",
                    "stage": ctx.stage_name,
                    "metadata": {"wave": wave, "jobs": [job.name for job in ready]},
                },
            )

            results = self._run_wave(ctx, ready, dry_run)
            stage_result.jobs.extend(results)

            for result in results:
                if not result.success:
                    raise JobFailedError(result.name, result.message)
                graph.mark_completed(result.name)

            ready = graph.get_ready_jobs()

        if not graph.is_completed():
            remaining = [job.name for job in graph.get_remaining_jobs()]
            raise PlanValidationError(f"unsatisfiable dependencies: {', '.join(remaining)}")

    def _run_wave(
        self,
        ctx: ExecutionContext,
        jobs: list[Job],
        dry_run: bool,
    ) -> list[JobResult]:
        """Run one wave concurrently; results come back in dispatch order."""
        workers = len(jobs)
        if self.max_workers:
            workers = min(workers, self.max_workers)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="grp-job") as pool:
            futures = [pool.submit(self._dispatch, ctx, job, dry_run) for job in jobs]
            return [future.result() for future in futures]

    def _dispatch(self, ctx: ExecutionContext, job: Job, dry_run: bool) -> JobResult:
        result = JobResult(name=job.name, type=job.type, started_at=_utcnow())

        if dry_run:
            time.sleep(self.dry_run_delay)
            result.success = True
            result.message = DRY_RUN_MESSAGE
        else:
            try:
                success, message, data = self._execute_job(ctx, job)
            except Exception as e:
                logger.exception(
                    f"Job {job.name} raised unexpectedly: {e}",
                    extra={"event": "job_failed", "stage": ctx.stage_name, "job": job.name},
                )
                success, message, data = False, f"unexpected error: {e}", {}
            result.success = success
            result.message = message
            result.data = data

        result.ended_at = _utcnow()
        return result

    def _execute_job(self, ctx: ExecutionContext, job: Job) -> tuple[bool, str, dict[str, Any]]:
        """
        Resolve a job's config and run it through its plugin.

        Never raises: every failure is mapped to (False, message, data).
        """
        logger.info(
            f"Executing job: {job.name} (type: {job.type})",
            extra={"event": "job_started", "stage": ctx.stage_name, "job": job.name},
        )

        try:
            config = job.config
            if self.resolver.contains_references(config):
                config = self.resolver.resolve_values(config, ctx.resolution_context())
        except ResolutionError as e:
            return False, f"variable resolution failed: {e}", {}

        try:
            plugin_result = self.plugin_manager.execute_plugin(ctx, job.type, config)
        except Exception as e:
            logger.warning(
                f"Job {job.name} failed: {e}",
                extra={"event": "job_failed", "stage": ctx.stage_name, "job": job.name},
            )
            return False, f"Failed to execute job: {e}", {}

        data = dict(plugin_result.data or {})
        if not plugin_result.success:
            logger.warning(
                f"Job {job.name} reported failure: {plugin_result.message}",
                extra={"event": "job_failed", "stage": ctx.stage_name, "job": job.name},
            )
        return plugin_result.success, plugin_result.message, data
