import logging
import threading
from typing import Any, Optional

import pytest

from grpcli.plugins import Plugin, PluginManager, PluginResult
from grpcli.schemas import ExecutionContext, Job, Stage


class RecordingPlugin(Plugin):
    """
    Test plugin that records every call.

    Jobs fail when their config has `fail: true`, are rejected by validate
    when `invalid: true`, and raise from execute when `explode: true`.
    With `raw: true`, execute returns a plain dict instead of a PluginResult.
    """

    def __init__(self, name: str = "test", delay: float = 0.0):
        self._name = name
        self.delay = delay
        self.executed: list[str] = []
        self.configs: list[dict[str, Any]] = []
        self.contexts: list[ExecutionContext] = []
        self.rollbacks: list[str] = []
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    def validate(self, ctx: ExecutionContext, config: dict[str, Any]) -> None:
        if config.get("invalid"):
            raise ValueError("config marked invalid")

    def execute(self, ctx: ExecutionContext, config: dict[str, Any]) -> PluginResult:
        if self.delay:
            import time
            time.sleep(self.delay)
        with self._lock:
            self.executed.append(config.get("id", ""))
            self.configs.append(config)
            self.contexts.append(ctx)
        if config.get("explode"):
            raise RuntimeError("boom")
        if config.get("raw"):
            return {"success": True}
        if config.get("fail"):
            return PluginResult(success=False, message=f"{config.get('id')} failed")
        return PluginResult(
            success=True,
            message=f"{config.get('id')} ok",
            data={"id": config.get("id")},
            execution_id=ctx.execution_id,
        )

    def rollback(self, ctx: ExecutionContext, execution_id: str) -> None:
        self.rollbacks.append(execution_id)


def make_job(name: str, depends_on: tuple = (), job_type: str = "test", **config) -> Job:
    config.setdefault("id", name)
    return Job(name=name, type=job_type, depends_on=tuple(depends_on), config=config)


def make_stage(name: str, *jobs: Job, require_approval: bool = False, approvers: tuple = ()) -> Stage:
    return Stage(
        name=name,
        jobs=tuple(jobs),
        require_approval=require_approval,
        approvers=tuple(approvers),
    )


@pytest.fixture
def recording_plugin() -> RecordingPlugin:
    return RecordingPlugin()


@pytest.fixture
def plugin_manager(recording_plugin) -> PluginManager:
    manager = PluginManager(plugin_dir=None)
    manager.register_plugin(recording_plugin)
    return manager


@pytest.fixture
def ctx() -> ExecutionContext:
    return ExecutionContext(
        execution_id="exec-1",
        variables={"app": {"name": "web", "replicas": 3}},
        stage_name="deploy",
    )


@pytest.fixture(autouse=True)
def reset_grp_logger():
    """CLI tests install handlers bound to captured streams; drop them afterwards."""
    yield
    logger = logging.getLogger("grpcli")
    logger.handlers = []
    logger.setLevel(logging.NOTSET)


@pytest.fixture(autouse=True)
def isolated_grp_home(monkeypatch, tmp_path):
    """Never read the developer's real ~/.config/grp."""
    monkeypatch.setenv("GRP_HOME", str(tmp_path / "grp-home"))
    monkeypatch.delenv("GRP_PLUGIN_DIR", raising=False)
    monkeypatch.delenv("GRP_LOG_LEVEL", raising=False)
