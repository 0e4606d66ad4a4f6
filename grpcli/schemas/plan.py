"""
Plan schema - the declarative release definition.

A Plan is the in-memory form of a release plan document:

    apiVersion: v1
    kind: ReleasePlan
    metadata: {name, description, owner, version}
    includes: [{path}]
    variables: {...}
    stages: [{name, description, requireApproval, approvers, jobs}]
    rollback: {stages: [...]}

Each job is {name, type, dependsOn, timeout, retries, config}. Config values
may contain ${dot.path} references; they are resolved per job at dispatch.

All objects here are immutable once loaded.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class Job:
    """
    A unit of work inside a stage.

    Attributes:
        name: Unique identifier within the owning stage
        type: Handler selector (plugin name)
        depends_on: Names of jobs in the same stage that must complete first
        config: Arbitrary configuration tree passed to the handler
        timeout: Declared timeout (owned by the handler, not enforced here)
        retries: Declared retry count (owned by the handler, not enforced here)
    """
    name: str
    type: str
    depends_on: tuple[str, ...] = field(default_factory=tuple)
    config: dict[str, Any] = field(default_factory=dict)
    timeout: Optional[str] = None
    retries: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the plan document shape."""
        return {
            "name": self.name,
            "type": self.type,
            **({"dependsOn": list(self.depends_on)} if self.depends_on else {}),
            **({"timeout": self.timeout} if self.timeout else {}),
            **({"retries": self.retries} if self.retries else {}),
            "config": self.config,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Job":
        """Deserialize from the plan document shape."""
        timeout = data.get("timeout")
        return cls(
            name=data.get("name") or "",
            type=data.get("type") or "",
            depends_on=tuple(data.get("dependsOn") or ()),
            config=dict(data.get("config") or {}),
            timeout=str(timeout) if timeout is not None else None,
            retries=int(data.get("retries") or 0),
        )


@dataclass(frozen=True)
class Stage:
    """
    An ordered phase of a plan.

    Attributes:
        name: Unique identifier within the plan
        jobs: Jobs of this stage, in declaration order
        description: Human-readable description
        require_approval: Whether the stage is gated behind an approval
        approvers: Identities allowed to approve the stage
    """
    name: str
    jobs: tuple[Job, ...] = field(default_factory=tuple)
    description: str = ""
    require_approval: bool = False
    approvers: tuple[str, ...] = field(default_factory=tuple)

    def get_job(self, name: str) -> Optional[Job]:
        """Get a job by name."""
        for job in self.jobs:
            if job.name == name:
                return job
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            **({"description": self.description} if self.description else {}),
            **({"requireApproval": True} if self.require_approval else {}),
            **({"approvers": list(self.approvers)} if self.approvers else {}),
            "jobs": [job.to_dict() for job in self.jobs],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Stage":
        return cls(
            name=data.get("name") or "",
            jobs=tuple(Job.from_dict(j) for j in data.get("jobs") or ()),
            description=data.get("description") or "",
            require_approval=bool(data.get("requireApproval", False)),
            approvers=tuple(data.get("approvers") or ()),
        )


@dataclass(frozen=True)
class Metadata:
    """Descriptive information about a plan."""
    name: str
    description: str = ""
    owner: str = ""
    version: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            **({"description": self.description} if self.description else {}),
            **({"owner": self.owner} if self.owner else {}),
            **({"version": self.version} if self.version else {}),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Metadata":
        return cls(
            name=data.get("name") or "",
            description=data.get("description") or "",
            owner=data.get("owner") or "",
            version=str(data.get("version") or ""),
        )


@dataclass(frozen=True)
class Include:
    """Reference to an external YAML document, relative to the plan file."""
    path: str


@dataclass(frozen=True)
class Rollback:
    """Stages executed best-effort when forward execution fails."""
    stages: tuple[Stage, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Plan:
    """
    A complete release plan.

    Attributes:
        api_version: Document API version (e.g. "v1")
        kind: Document kind (e.g. "ReleasePlan")
        metadata: Plan metadata
        stages: Forward stages, executed strictly in order
        variables: Nested variable map, available as ${variables.*}
        rollback: Optional rollback plan
        includes: Declared include references
        include_data: Loaded include documents keyed by kind (or file name)
    """
    api_version: str
    kind: str
    metadata: Metadata
    stages: tuple[Stage, ...] = field(default_factory=tuple)
    variables: dict[str, Any] = field(default_factory=dict)
    rollback: Optional[Rollback] = None
    includes: tuple[Include, ...] = field(default_factory=tuple)
    include_data: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.metadata.name

    def get_stage(self, name: str) -> Optional[Stage]:
        """Get a forward stage by name."""
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None

    def total_jobs(self) -> int:
        """Count jobs across all forward stages."""
        return sum(len(stage.jobs) for stage in self.stages)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the plan document shape."""
        result: dict[str, Any] = {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": self.metadata.to_dict(),
        }
        if self.includes:
            result["includes"] = [{"path": inc.path} for inc in self.includes]
        if self.variables:
            result["variables"] = self.variables
        result["stages"] = [stage.to_dict() for stage in self.stages]
        if self.rollback is not None:
            result["rollback"] = {"stages": [s.to_dict() for s in self.rollback.stages]}
        return result

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        include_data: Optional[dict[str, Any]] = None,
    ) -> "Plan":
        """Deserialize from the plan document shape."""
        rollback = None
        if data.get("rollback") is not None:
            rollback_data = data["rollback"] or {}
            rollback = Rollback(
                stages=tuple(Stage.from_dict(s) for s in rollback_data.get("stages") or ()),
            )

        return cls(
            api_version=str(data.get("apiVersion") or ""),
            kind=str(data.get("kind") or ""),
            metadata=Metadata.from_dict(data.get("metadata") or {}),
            stages=tuple(Stage.from_dict(s) for s in data.get("stages") or ()),
            variables=dict(data.get("variables") or {}),
            rollback=rollback,
            includes=tuple(
                Include(path=inc["path"])
                for inc in data.get("includes") or ()
                if isinstance(inc, dict) and "path" in inc
            ),
            include_data=dict(include_data or {}),
        )
