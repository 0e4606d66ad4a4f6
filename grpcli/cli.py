"""
CLI interface for grp release automation.

Provides commands: run, validate, plugins list, version.

Plans are YAML documents (apiVersion/kind/metadata/stages/rollback). A run
loads and validates the plan, registers the built-in and discovered
plugins, then executes stages in order.
"""

import json
import logging
import platform
import signal
import sys
from pathlib import Path
from typing import Optional

import click

from grpcli import __version__
from grpcli.approval import ConsoleApprovalGate
from grpcli.config import GrpConfig, load_config, load_config_or_default
from grpcli.engine import ExecuteOptions, Orchestrator
from grpcli.errors import ConfigError, GrpError, PluginLoadError
from grpcli.loader import PlanLoader
from grpcli.plugins import PluginManager
from grpcli.schemas import ExecutionContext, ExecutionResult, Plan
from grpcli.utils import (
    format_duration,
    print_banner,
    print_error,
    print_info,
    print_success,
    print_warning,
    setup_logging,
)
from grpcli.validator import PlanValidator

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="grp")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Configuration file (default: $GRP_HOME/config.yaml)",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx, config_path: Optional[Path], verbose: bool, debug: bool):
    """
    grp - release automation for multi-stage deployments.

    Executes YAML release plans with dependent jobs, approvals and rollback.
    """
    ctx.ensure_object(dict)
    try:
        config = load_config(config_path) if config_path else load_config_or_default()
    except ConfigError as e:
        print_error(f"Invalid configuration: {e}")
        raise SystemExit(1)

    if debug:
        log_level = "DEBUG"
    elif verbose:
        log_level = "INFO"
    else:
        log_level = config.log_level

    setup_logging(log_level, config.log_format, config.get_log_file_path())

    ctx.obj["config"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug


def _load_plan(plan_file: Path) -> Plan:
    """Load and validate a plan, exiting with status 1 on failure."""
    try:
        plan = PlanLoader().load_plan(plan_file)
    except GrpError as e:
        print_error(f"Failed to load plan: {e}")
        raise SystemExit(1)

    try:
        PlanValidator().validate_plan(plan)
    except GrpError as e:
        print_error(f"Validation failed: {e}")
        raise SystemExit(1)

    return plan


def _build_plugin_manager(plugin_dir: Path, quiet: bool = False) -> PluginManager:
    manager = PluginManager.create_default(plugin_dir)
    try:
        manager.load_plugins()
    except PluginLoadError as e:
        if quiet:
            logger.warning(f"Failed to load plugins: {e}")
        else:
            print_warning(f"Failed to load plugins: {e}")
    return manager


def _install_signal_handlers(run_ctx: ExecutionContext) -> dict:
    """Cancel the run on SIGINT/SIGTERM. Returns the previous handlers."""

    def _handle(signum, frame):
        print_warning("Received signal, attempting graceful shutdown...")
        run_ctx.cancel()

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            previous[sig] = signal.signal(sig, _handle)
        except ValueError:
            # Not in the main thread
            pass
    return previous


def _restore_signal_handlers(previous: dict) -> None:
    for sig, handler in previous.items():
        signal.signal(sig, handler)


def _print_summary(result: ExecutionResult) -> None:
    for stage in result.stages:
        line = f"{stage.name}: {len(stage.jobs)} jobs in {format_duration(stage.duration_seconds)}"
        if stage.success:
            print_success(line)
        else:
            print_error(f"{line} ({stage.error_message})")

    if result.rolled_back:
        for stage in result.rollback_stages:
            status = "ok" if stage.success else f"failed ({stage.error_message})"
            print_warning(f"rollback {stage.name}: {status}")

    click.echo()
    if result.success:
        print_success(f"Execution completed successfully in {format_duration(result.duration_seconds)}")
    else:
        print_error(f"Execution failed: {result.error_message}")
    click.echo(f"ID: {result.execution_id}")
    click.echo(f"Total stages: {result.total_stages}, Jobs: {result.total_jobs}")
    click.echo(f"Completed jobs: {result.completed_jobs}, Failed jobs: {result.failed_jobs}")


@main.command("run")
@click.argument("plan_file", type=click.Path(path_type=Path))
@click.option("--auto-rollback", is_flag=True, help="Automatically rollback on failure")
@click.option("--skip-approval", is_flag=True, help="Skip approval steps")
@click.option(
    "--dry-run",
    is_flag=True,
    help="Validate and simulate execution without making changes",
)
@click.option(
    "--plugin-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory containing plugins (default: ./plugins)",
)
@click.option(
    "--max-workers",
    type=click.IntRange(min=1),
    help="Maximum number of jobs running at once within a wave",
)
@click.option("--json", "as_json", is_flag=True, help="Print the execution result as JSON")
@click.pass_context
def run(
    ctx,
    plan_file: Path,
    auto_rollback: bool,
    skip_approval: bool,
    dry_run: bool,
    plugin_dir: Optional[Path],
    max_workers: Optional[int],
    as_json: bool,
):
    """
    Execute a release plan.

    Validates PLAN_FILE, processes approvals, executes all stages and
    reports the results.

    Examples:

        grp run release.yaml

        grp run release.yaml --dry-run

        grp run release.yaml --auto-rollback --skip-approval
    """
    config: GrpConfig = ctx.obj["config"]

    plan = _load_plan(plan_file)
    manager = _build_plugin_manager(plugin_dir or Path(config.plugin_dir), quiet=as_json)

    orchestrator = Orchestrator(
        manager,
        approval_gate=ConsoleApprovalGate(timeout_seconds=config.approval_timeout),
        max_workers=max_workers or config.max_workers,
    )
    options = ExecuteOptions(
        auto_rollback=auto_rollback,
        skip_approval=skip_approval,
        dry_run=dry_run,
    )

    if not as_json:
        title = f"Release: {plan.name}"
        if dry_run:
            title += " (dry run)"
        print_banner(title)
        print_info(f"Starting execution of plan: {plan.name}")

    run_ctx = ExecutionContext()
    previous = _install_signal_handlers(run_ctx)
    try:
        result = orchestrator.execute_plan(run_ctx, plan, options)
    finally:
        _restore_signal_handlers(previous)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _print_summary(result)

    if not result.success:
        raise SystemExit(1)


@main.command("validate")
@click.argument("plan_file", type=click.Path(path_type=Path))
@click.option("-v", "--verbose", is_flag=True, help="Show detailed validation information")
def validate(plan_file: Path, verbose: bool):
    """
    Validate a release plan.

    Checks the YAML syntax and plan structure, verifies that all
    dependencies reference known jobs and that there are no cycles.
    """
    if not plan_file.exists():
        print_error(f"Plan file not found: {plan_file}")
        raise SystemExit(1)

    plan = _load_plan(plan_file)

    print_success("Plan validation successful!")
    click.echo(f"Plan: {plan.name} (version: {plan.metadata.version or 'not specified'})")
    click.echo(f"Stages: {len(plan.stages)}")

    if verbose:
        for i, stage in enumerate(plan.stages, start=1):
            suffix = " [requires approval]" if stage.require_approval else ""
            click.echo(f"Stage {i}: {stage.name} ({len(stage.jobs)} jobs){suffix}")
            for j, job in enumerate(stage.jobs, start=1):
                click.echo(f"  Job {j}: {job.name} (type: {job.type})")
                if job.depends_on:
                    click.echo(f"    Dependencies: {', '.join(job.depends_on)}")
        if plan.rollback is not None:
            click.echo(f"Rollback stages: {len(plan.rollback.stages)}")


@main.group("plugins")
def plugins_group():
    """Inspect available plugins."""
    pass


@plugins_group.command("list")
@click.option(
    "--plugin-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory containing plugins (default: ./plugins)",
)
@click.pass_context
def list_plugins(ctx, plugin_dir: Optional[Path]):
    """List registered plugins."""
    config: GrpConfig = ctx.obj["config"]
    manager = _build_plugin_manager(plugin_dir or Path(config.plugin_dir))

    for plugin in sorted(manager.list_plugins(), key=lambda p: p.name):
        click.echo(f"{plugin.name} ({plugin.version})")
        if plugin.description:
            click.echo(f"  {plugin.description}")


@main.command("version")
def version():
    """Print version information."""
    click.echo(f"Version:        {__version__}")
    click.echo(f"Python Version: {platform.python_version()}")
    click.echo(f"OS/Arch:        {sys.platform}/{platform.machine()}")


if __name__ == "__main__":
    main()
