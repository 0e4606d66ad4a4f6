"""
Approval schemas - records kept by approval gates.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


@dataclass
class ApprovalRequest:
    """A request for a stage to be approved."""
    id: str
    execution_id: str
    stage_name: str
    approvers: list[str] = field(default_factory=list)
    status: ApprovalStatus = ApprovalStatus.PENDING
    requested_at: datetime = field(default_factory=_utcnow)
    expires_at: Optional[datetime] = None


@dataclass
class ApprovalResponse:
    """A decision on an approval request."""
    request_id: str
    approved: bool
    responder_id: str = ""
    comment: str = ""
    responded_at: datetime = field(default_factory=_utcnow)
