"""Tests for approval gates."""

from unittest.mock import patch

import pytest

from grpcli.approval import AutoApprovalGate, ConsoleApprovalGate
from grpcli.schemas import ApprovalStatus, ExecutionContext
from conftest import make_job, make_stage


@pytest.fixture
def stage():
    return make_stage("production", make_job("deploy"), require_approval=True, approvers=["ops-lead"])


@pytest.fixture
def run_ctx() -> ExecutionContext:
    return ExecutionContext(execution_id="exec-9")


class TestAutoApprovalGate:
    """Tests for AutoApprovalGate."""

    def test_approves_and_records(self, run_ctx, stage):
        gate = AutoApprovalGate()

        assert gate.request_approval(run_ctx, stage) is True

        request = gate.requests[0]
        assert request.execution_id == "exec-9"
        assert request.stage_name == "production"
        assert request.approvers == ["ops-lead"]
        assert request.status == ApprovalStatus.APPROVED
        assert gate.responses[0].request_id == request.id
        assert gate.responses[0].responder_id == "auto"

    def test_rejects(self, run_ctx, stage):
        gate = AutoApprovalGate(approve=False, responder_id="ci")

        assert gate.request_approval(run_ctx, stage) is False
        assert gate.requests[0].status == ApprovalStatus.REJECTED
        assert gate.responses[0].approved is False


class TestConsoleApprovalGate:
    """Tests for ConsoleApprovalGate."""

    def test_confirmed(self, run_ctx, stage, capsys):
        gate = ConsoleApprovalGate()

        with patch("grpcli.approval.click.confirm", return_value=True):
            assert gate.request_approval(run_ctx, stage) is True

        out = capsys.readouterr().out
        assert "Stage 'production' requires approval." in out
        assert "Approvers: ops-lead" in out
        assert gate.requests[0].status == ApprovalStatus.APPROVED
        assert gate.requests[0].expires_at is None

    def test_declined(self, run_ctx, stage):
        gate = ConsoleApprovalGate()

        with patch("grpcli.approval.click.confirm", return_value=False):
            assert gate.request_approval(run_ctx, stage) is False

        assert gate.requests[0].status == ApprovalStatus.REJECTED

    def test_late_answer_expires(self, run_ctx, stage):
        gate = ConsoleApprovalGate(timeout_seconds=10)

        with patch("grpcli.approval.click.confirm", return_value=True), \
                patch("grpcli.approval.time.monotonic", side_effect=[100.0, 125.0]):
            assert gate.request_approval(run_ctx, stage) is False

        request = gate.requests[0]
        assert request.status == ApprovalStatus.EXPIRED
        assert request.expires_at is not None
        assert gate.responses[0].comment == "approval request expired"

    def test_answer_within_timeout(self, run_ctx, stage):
        gate = ConsoleApprovalGate(timeout_seconds=10)

        with patch("grpcli.approval.click.confirm", return_value=True), \
                patch("grpcli.approval.time.monotonic", side_effect=[100.0, 102.0]):
            assert gate.request_approval(run_ctx, stage) is True
