"""
Approval gates for stages with requireApproval.

The orchestrator consults a gate before running a gated stage:
- True: the stage runs
- False: the run fails with ApprovalRejectedError
- Exception: the run fails with ApprovalError

Gates keep a history of ApprovalRequest/ApprovalResponse records so that
callers can report who decided what.
"""

import logging
import os
import time
import uuid
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Optional

import click

from grpcli.schemas import (
    ApprovalRequest,
    ApprovalResponse,
    ApprovalStatus,
    ExecutionContext,
    Stage,
)

logger = logging.getLogger(__name__)


class ApprovalGate(ABC):
    """Abstract approval collaborator."""

    def __init__(self) -> None:
        self.requests: list[ApprovalRequest] = []
        self.responses: list[ApprovalResponse] = []

    @abstractmethod
    def request_approval(self, ctx: ExecutionContext, stage: Stage) -> bool:
        """
        Decide whether a gated stage may run.

        Args:
            ctx: Execution context of the run
            stage: The stage awaiting approval

        Returns:
            True if approved, False if rejected

        Raises:
            Exception: If no decision could be obtained
        """
        pass

    def _new_request(
        self,
        ctx: ExecutionContext,
        stage: Stage,
        timeout_seconds: Optional[float] = None,
    ) -> ApprovalRequest:
        request = ApprovalRequest(
            id=str(uuid.uuid4()),
            execution_id=ctx.execution_id,
            stage_name=stage.name,
            approvers=list(stage.approvers),
        )
        if timeout_seconds is not None:
            request.expires_at = request.requested_at + timedelta(seconds=timeout_seconds)
        self.requests.append(request)
        return request

    def _record(
        self,
        request: ApprovalRequest,
        approved: bool,
        responder_id: str = "",
        comment: str = "",
        status: Optional[ApprovalStatus] = None,
    ) -> ApprovalResponse:
        request.status = status or (
            ApprovalStatus.APPROVED if approved else ApprovalStatus.REJECTED
        )
        response = ApprovalResponse(
            request_id=request.id,
            approved=approved,
            responder_id=responder_id,
            comment=comment,
        )
        self.responses.append(response)
        return response


class AutoApprovalGate(ApprovalGate):
    """
    Non-interactive gate with a fixed answer.

    Useful for CI and tests.
    """

    def __init__(self, approve: bool = True, responder_id: str = "auto"):
        super().__init__()
        self.approve = approve
        self.responder_id = responder_id

    def request_approval(self, ctx: ExecutionContext, stage: Stage) -> bool:
        request = self._new_request(ctx, stage)
        self._record(request, self.approve, responder_id=self.responder_id)
        return self.approve


class ConsoleApprovalGate(ApprovalGate):
    """
    Interactive gate that asks on the terminal.

    The prompt lists the stage's approvers. If timeout_seconds is set and
    the answer arrives after it, the request is marked expired and the
    stage is rejected.
    """

    def __init__(self, timeout_seconds: Optional[float] = None):
        super().__init__()
        self.timeout_seconds = timeout_seconds

    def request_approval(self, ctx: ExecutionContext, stage: Stage) -> bool:
        request = self._new_request(ctx, stage, self.timeout_seconds)

        click.echo()
        click.secho(f"Stage '{stage.name}' requires approval.", fg="yellow", bold=True)
        if stage.description:
            click.echo(f"  {stage.description}")
        if stage.approvers:
            click.echo(f"  Approvers: {', '.join(stage.approvers)}")
        click.echo(f"  Execution: {ctx.execution_id}")

        started = time.monotonic()
        approved = click.confirm("Approve this stage?", default=False)
        elapsed = time.monotonic() - started

        responder = os.environ.get("USER") or "console"

        if self.timeout_seconds is not None and elapsed > self.timeout_seconds:
            logger.warning(
                f"Approval for stage {stage.name} expired after {elapsed:.0f}s",
                extra={"event": "approval_expired", "stage": stage.name},
            )
            self._record(
                request,
                False,
                responder_id=responder,
                comment="approval request expired",
                status=ApprovalStatus.EXPIRED,
            )
            return False

        self._record(request, approved, responder_id=responder)
        return approved
