"""
Plugin capability contract and common implementations.

A plugin handles every job whose `type` equals the plugin's name:
- validate: reject a (variable-resolved) job config before execution
- execute: perform the job and report a PluginResult
- rollback: best-effort undo of whatever the plugin did in one execution

Plugins may optionally describe their configuration with a ConfigSchema
for external tooling. The core never enforces it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from grpcli.schemas import ExecutionContext


@dataclass
class ConfigSchema:
    """
    Declarative description of a plugin's configuration.

    Attributes:
        type: JSON-schema style type ("object", "string", ...)
        properties: Nested schemas keyed by property name
        required: Names of required properties
        items: Item schema for array types
        description: Human-readable description
    """
    type: str = "object"
    properties: dict[str, "ConfigSchema"] = field(default_factory=dict)
    required: list[str] = field(default_factory=list)
    items: Optional["ConfigSchema"] = None
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type}
        if self.description:
            result["description"] = self.description
        if self.properties:
            result["properties"] = {k: v.to_dict() for k, v in self.properties.items()}
        if self.required:
            result["required"] = list(self.required)
        if self.items is not None:
            result["items"] = self.items.to_dict()
        return result


@dataclass
class Artifact:
    """Something a plugin produced (an image, a manifest, a report...)."""
    name: str
    type: str
    location: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class PluginResult:
    """Outcome reported by Plugin.execute."""
    success: bool
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    artifacts: list[Artifact] = field(default_factory=list)
    execution_id: Optional[str] = None


class Plugin(ABC):
    """
    Abstract base class for job handlers.

    Subclasses declare a unique `name`; the PluginManager dispatches every
    job whose type equals that name to the plugin.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique plugin name, matched against Job.type."""
        pass

    @property
    def description(self) -> str:
        return ""

    @property
    def version(self) -> str:
        return "0.0.0"

    def config_schema(self) -> Optional[ConfigSchema]:
        """Describe the accepted configuration, if the plugin publishes one."""
        return None

    @abstractmethod
    def validate(self, ctx: ExecutionContext, config: dict[str, Any]) -> None:
        """
        Validate a job configuration.

        Args:
            ctx: Execution context of the run
            config: Job configuration with references already resolved

        Raises:
            Exception: If the configuration is not acceptable
        """
        pass

    @abstractmethod
    def execute(self, ctx: ExecutionContext, config: dict[str, Any]) -> PluginResult:
        """
        Execute a job.

        Args:
            ctx: Execution context of the run
            config: Job configuration with references already resolved

        Returns:
            PluginResult describing the outcome

        Raises:
            Exception: If execution fails
        """
        pass

    def rollback(self, ctx: ExecutionContext, execution_id: str) -> None:
        """Undo the effects of an execution. Plugins without side effects do nothing."""
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, version={self.version!r})"


class NoOpPlugin(Plugin):
    """
    No-op plugin for testing and smoke plans.

    Accepts any configuration and echoes it back without doing anything.
    """

    @property
    def name(self) -> str:
        return "noop"

    @property
    def description(self) -> str:
        return "Accepts any configuration and does nothing"

    @property
    def version(self) -> str:
        return "1.0.0"

    def validate(self, ctx: ExecutionContext, config: dict[str, Any]) -> None:
        return None

    def execute(self, ctx: ExecutionContext, config: dict[str, Any]) -> PluginResult:
        """Return a successful result without executing."""
        return PluginResult(
            success=True,
            message="noop",
            data={"config": config, "stage": ctx.stage_name},
            execution_id=ctx.execution_id,
        )
