"""
ExecutionContext - the read-only bag threaded through a run.

The orchestrator creates one context per execute_plan call and derives a
per-stage copy with for_stage(). Executor, PluginManager and plugins all
receive the same typed object rather than opaque key lookups.

The cancel event is shared between a context and every copy derived from
it, so cancelling the run is visible to whichever stage is active.
"""

import threading
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Optional


def new_execution_id() -> str:
    """Generate a unique execution identifier."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class ExecutionContext:
    """
    Typed execution context.

    Attributes:
        execution_id: Unique per execute_plan call, constant for the whole run
        variables: The plan's variable map
        stage_name: Active stage, set while a stage executes
        include_data: Documents loaded from plan includes, keyed by kind
        cancel_event: Set when the run should stop before the next wave
    """
    execution_id: str = field(default_factory=new_execution_id)
    variables: dict[str, Any] = field(default_factory=dict)
    stage_name: Optional[str] = None
    include_data: dict[str, Any] = field(default_factory=dict)
    cancel_event: threading.Event = field(
        default_factory=threading.Event, compare=False, repr=False
    )

    def for_stage(self, stage_name: str) -> "ExecutionContext":
        """Return a copy of this context with the active stage set."""
        return replace(self, stage_name=stage_name)

    def resolution_context(self) -> dict[str, Any]:
        """
        Build the mapping used to resolve ${...} references.

        Include documents sit at the top level under their kind, plan
        variables under "variables" and run facts under "execution".
        """
        return {
            **self.include_data,
            "variables": self.variables,
            "execution": {
                "id": self.execution_id,
                "stage": self.stage_name,
            },
        }

    def cancel(self) -> None:
        """Request cancellation. In-flight work finishes; no new wave starts."""
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()
