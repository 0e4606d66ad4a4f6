"""Tests for the plan validator.

Tests cover:
- Required top-level fields
- Stage and job naming rules
- Dependency checks and cycle detection
- Rollback section checks
"""

import sys

import pytest

from grpcli.errors import CycleDetectedError, PlanValidationError
from grpcli.schemas import Job, Metadata, Plan, Rollback, Stage
from grpcli.validator import PlanValidator, check_circular_dependencies, validate_plan
from conftest import make_job, make_stage


def _plan(*stages, rollback=None, api_version="v1", kind="ReleasePlan", name="release") -> Plan:
    return Plan(
        api_version=api_version,
        kind=kind,
        metadata=Metadata(name=name),
        stages=tuple(stages),
        rollback=rollback,
    )


@pytest.fixture
def validator() -> PlanValidator:
    return PlanValidator()


class TestTopLevel:
    """Tests for plan-level checks."""

    def test_valid_plan(self, validator):
        plan = _plan(
            make_stage("build", make_job("a"), make_job("b", depends_on=["a"])),
            make_stage("deploy", make_job("a")),
        )

        validator.validate_plan(plan)

    def test_none_plan(self, validator):
        with pytest.raises(PlanValidationError, match="plan cannot be None"):
            validator.validate_plan(None)

    @pytest.mark.parametrize(
        "kwargs,message",
        [
            ({"api_version": ""}, "apiVersion is required"),
            ({"kind": ""}, "kind is required"),
            ({"name": ""}, "metadata.name is required"),
        ],
    )
    def test_required_fields(self, validator, kwargs, message):
        plan = _plan(make_stage("one", make_job("a")), **kwargs)

        with pytest.raises(PlanValidationError, match=message):
            validator.validate_plan(plan)

    def test_no_stages(self, validator):
        with pytest.raises(PlanValidationError, match="at least one stage is required"):
            validator.validate_plan(_plan())


class TestStagesAndJobs:
    """Tests for stage and job rules."""

    def test_unnamed_stage(self, validator):
        plan = _plan(make_stage("one", make_job("a")), make_stage("", make_job("b")))

        with pytest.raises(PlanValidationError, match=r"stage\[1\]\.name is required"):
            validator.validate_plan(plan)

    def test_duplicate_stage(self, validator):
        plan = _plan(make_stage("one", make_job("a")), make_stage("one", make_job("b")))

        with pytest.raises(PlanValidationError, match="duplicate stage name: one"):
            validator.validate_plan(plan)

    def test_empty_stage(self, validator):
        with pytest.raises(PlanValidationError, match=r"stage\[one\] must have at least one job"):
            validator.validate_plan(_plan(make_stage("one")))

    def test_unnamed_job(self, validator):
        plan = _plan(make_stage("one", make_job("a"), Job(name="", type="test")))

        with pytest.raises(PlanValidationError, match=r"stage\[one\]\.job\[1\]\.name is required"):
            validator.validate_plan(plan)

    def test_duplicate_job_in_stage(self, validator):
        plan = _plan(make_stage("one", make_job("a"), make_job("a")))

        with pytest.raises(PlanValidationError, match="duplicate job name in stage one: a"):
            validator.validate_plan(plan)

    def test_same_job_name_in_different_stages(self, validator):
        validator.validate_plan(_plan(make_stage("one", make_job("a")), make_stage("two", make_job("a"))))

    def test_untyped_job(self, validator):
        plan = _plan(make_stage("one", Job(name="a", type="")))

        with pytest.raises(PlanValidationError, match=r"stage\[one\]\.job\[a\]\.type is required"):
            validator.validate_plan(plan)

    def test_unknown_dependency(self, validator):
        plan = _plan(make_stage("one", make_job("a", depends_on=["ghost"])))

        with pytest.raises(PlanValidationError, match="depends on unknown job: ghost"):
            validator.validate_plan(plan)

    def test_forward_reference_is_rejected(self, validator):
        plan = _plan(make_stage("one", make_job("a", depends_on=["b"]), make_job("b")))

        with pytest.raises(PlanValidationError, match=r"job\[a\] depends on unknown job: b"):
            validator.validate_plan(plan)

    def test_cross_stage_dependency_is_rejected(self, validator):
        plan = _plan(
            make_stage("one", make_job("a")),
            make_stage("two", make_job("b", depends_on=["a"])),
        )

        with pytest.raises(PlanValidationError, match="depends on unknown job: a"):
            validator.validate_plan(plan)


class TestCycles:
    """Tests for dependency cycles."""

    def test_self_dependency(self, validator):
        plan = _plan(make_stage("one", make_job("a", depends_on=["a"])))

        with pytest.raises(CycleDetectedError, match="in stage one: circular dependency detected: a -> a"):
            validator.validate_plan(plan)

    def test_two_job_cycle(self):
        jobs = (make_job("a", depends_on=["b"]), make_job("b", depends_on=["a"]))

        with pytest.raises(CycleDetectedError, match="circular dependency detected: b -> a"):
            check_circular_dependencies(jobs)

    def test_acyclic_jobs(self):
        jobs = (
            make_job("a"),
            make_job("b", depends_on=["a"]),
            make_job("c", depends_on=["a", "b"]),
        )

        check_circular_dependencies(jobs)

    def test_long_chain(self):
        size = sys.getrecursionlimit() * 2
        jobs = [make_job("j0", depends_on=[f"j{size - 1}"])]
        jobs += [make_job(f"j{i}", depends_on=[f"j{i - 1}"]) for i in range(1, size)]

        with pytest.raises(CycleDetectedError, match="circular dependency detected: j1 -> j0"):
            check_circular_dependencies(tuple(jobs))

        check_circular_dependencies((make_job("j0"),) + tuple(jobs[1:]))

    def test_cycle_error_is_validation_error(self):
        with pytest.raises(PlanValidationError):
            check_circular_dependencies((make_job("a", depends_on=["a"]),))


class TestRollback:
    """Tests for the rollback section."""

    def test_empty_rollback(self, validator):
        plan = _plan(make_stage("one", make_job("a")), rollback=Rollback(stages=()))

        with pytest.raises(PlanValidationError, match="rollback must have at least one stage"):
            validator.validate_plan(plan)

    def test_unnamed_rollback_stage(self, validator):
        plan = _plan(
            make_stage("one", make_job("a")),
            rollback=Rollback(stages=(make_stage("", make_job("r")),)),
        )

        with pytest.raises(PlanValidationError, match=r"rollback\.stage\[0\]\.name is required"):
            validator.validate_plan(plan)

    def test_rollback_job_checks(self, validator):
        plan = _plan(
            make_stage("one", make_job("a")),
            rollback=Rollback(stages=(make_stage("undo", make_job("r"), make_job("r")),)),
        )

        with pytest.raises(PlanValidationError, match="duplicate job name in rollback stage undo: r"):
            validator.validate_plan(plan)

    def test_valid_rollback(self):
        plan = _plan(
            make_stage("one", make_job("a")),
            rollback=Rollback(stages=(Stage(name="undo", jobs=(make_job("r"),)),)),
        )

        validate_plan(plan)
