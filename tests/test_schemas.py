"""Tests for plan, context and result schemas."""

from dataclasses import FrozenInstanceError
from datetime import timedelta

import pytest

from grpcli.errors import JobFailedError, StageFailedError
from grpcli.schemas import (
    ExecutionContext,
    ExecutionResult,
    Job,
    JobResult,
    Plan,
    StageResult,
    StageStatus,
    new_execution_id,
)


PLAN_DATA = {
    "apiVersion": "v1",
    "kind": "ReleasePlan",
    "metadata": {"name": "release", "owner": "platform", "version": 2},
    "includes": [{"path": "env.yaml"}],
    "variables": {"region": "eu-west-1"},
    "stages": [
        {
            "name": "deploy",
            "requireApproval": True,
            "approvers": ["ops"],
            "jobs": [
                {"name": "a", "type": "noop"},
                {"name": "b", "type": "noop", "dependsOn": ["a"], "timeout": "1m", "config": {"x": 1}},
            ],
        }
    ],
    "rollback": {"stages": [{"name": "undo", "jobs": [{"name": "r", "type": "noop"}]}]},
}


class TestPlan:
    """Tests for Plan/Stage/Job."""

    def test_from_dict(self):
        plan = Plan.from_dict(PLAN_DATA, include_data={"Environment": {"tier": "prod"}})

        assert plan.name == "release"
        assert plan.metadata.version == "2"
        assert plan.includes[0].path == "env.yaml"
        assert plan.include_data == {"Environment": {"tier": "prod"}}
        stage = plan.get_stage("deploy")
        assert stage.require_approval
        assert stage.approvers == ("ops",)
        assert stage.get_job("b").depends_on == ("a",)
        assert stage.get_job("b").config == {"x": 1}
        assert stage.get_job("missing") is None
        assert plan.rollback.stages[0].jobs[0].name == "r"
        assert plan.total_jobs() == 2

    def test_to_dict_restores_document_keys(self):
        data = Plan.from_dict(PLAN_DATA).to_dict()

        assert data["apiVersion"] == "v1"
        assert data["stages"][0]["requireApproval"] is True
        assert data["stages"][0]["jobs"][1]["dependsOn"] == ["a"]
        assert data["stages"][0]["jobs"][1]["timeout"] == "1m"
        assert "dependsOn" not in data["stages"][0]["jobs"][0]
        assert data["rollback"]["stages"][0]["name"] == "undo"
        assert data["includes"] == [{"path": "env.yaml"}]

    def test_plan_is_immutable(self):
        job = Job(name="a", type="noop")

        with pytest.raises(FrozenInstanceError):
            job.name = "b"

    def test_no_rollback_section(self):
        data = {k: v for k, v in PLAN_DATA.items() if k != "rollback"}

        assert Plan.from_dict(data).rollback is None


class TestExecutionContext:
    """Tests for ExecutionContext."""

    def test_execution_ids_are_unique(self):
        assert new_execution_id() != new_execution_id()
        assert ExecutionContext().execution_id != ExecutionContext().execution_id

    def test_for_stage_shares_cancellation(self):
        ctx = ExecutionContext(execution_id="exec-1", variables={"a": 1})

        stage_ctx = ctx.for_stage("deploy")
        ctx.cancel()

        assert stage_ctx.stage_name == "deploy"
        assert stage_ctx.execution_id == "exec-1"
        assert stage_ctx.variables == {"a": 1}
        assert ctx.stage_name is None
        assert stage_ctx.cancelled

    def test_resolution_context(self):
        ctx = ExecutionContext(
            execution_id="exec-1",
            variables={"a": 1},
            stage_name="deploy",
            include_data={"Environment": {"tier": "prod"}},
        )

        assert ctx.resolution_context() == {
            "Environment": {"tier": "prod"},
            "variables": {"a": 1},
            "execution": {"id": "exec-1", "stage": "deploy"},
        }


class TestResults:
    """Tests for result records."""

    def test_durations(self):
        job = JobResult(name="a", type="noop")
        assert job.duration_seconds == 0.0

        job.ended_at = job.started_at + timedelta(seconds=2)
        assert job.duration_seconds == 2.0

    def test_stage_result(self):
        stage = StageResult(name="deploy", jobs=[JobResult(name="a", type="noop", success=True)])

        assert not stage.success
        stage.status = StageStatus.SUCCEEDED
        assert stage.success
        assert stage.to_dict()["status"] == "succeeded"
        assert stage.get_job("a").success

    def test_execution_result_to_dict_with_error(self):
        failed = StageResult(name="deploy", status=StageStatus.FAILED, error_message="boom")
        result = ExecutionResult(
            execution_id="exec-1",
            plan_name="release",
            stages=[StageResult(name="build", status=StageStatus.SUCCEEDED), failed],
            rollback_stages=[StageResult(name="undo", status=StageStatus.SUCCEEDED)],
            rolled_back=True,
            error=StageFailedError("deploy", JobFailedError("a", "boom")),
        )

        data = result.to_dict()

        assert result.failed_stage is failed
        assert data["error"] == "Stage deploy failed: job a failed: boom"
        assert [s["name"] for s in data["rollback_stages"]] == ["undo"]
        assert data["ended_at"] is None
