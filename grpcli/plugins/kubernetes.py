"""
Kubernetes plugin - manages deployments, services and other resources.

Execution is simulated: the plugin validates the job config, logs the
action it would take and reports success. No cluster calls are made.

Job config:
    namespace: Target namespace (required)
    resource: Resource reference, e.g. "deployment/example-app" (required)
    action: One of apply, delete, restart, scale (required)
    manifest: Manifest text (required for apply)
    wait: Whether to wait for the rollout
    timeout: Rollout timeout, e.g. "2m"
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Optional

from grpcli.errors import PluginValidationError
from grpcli.plugins.base import ConfigSchema, Plugin, PluginResult
from grpcli.schemas import ExecutionContext

logger = logging.getLogger(__name__)

VALID_ACTIONS = frozenset({"apply", "delete", "restart", "scale"})
REQUIRED_FIELDS = ("namespace", "resource", "action")


class KubernetesPlugin(Plugin):
    """Simulated Kubernetes resource management."""

    # Simulated latency of a cluster operation
    execute_delay_s: float = 0.5
    rollback_delay_s: float = 0.3

    @property
    def name(self) -> str:
        return "kubernetes"

    @property
    def description(self) -> str:
        return "Manages Kubernetes deployments, services, and other resources"

    @property
    def version(self) -> str:
        return "0.1.0"

    def config_schema(self) -> Optional[ConfigSchema]:
        return ConfigSchema(
            type="object",
            properties={
                "namespace": ConfigSchema(type="string"),
                "resource": ConfigSchema(type="string"),
                "manifest": ConfigSchema(type="string"),
                "action": ConfigSchema(type="string"),
                "wait": ConfigSchema(type="boolean"),
                "timeout": ConfigSchema(type="string"),
            },
            required=list(REQUIRED_FIELDS),
        )

    def validate(self, ctx: ExecutionContext, config: dict[str, Any]) -> None:
        for field_name in REQUIRED_FIELDS:
            if field_name not in config:
                raise PluginValidationError(f"missing required field: {field_name}")

        action = config.get("action")
        if action not in VALID_ACTIONS:
            raise PluginValidationError(f"invalid action: {action}")

        if action == "apply" and config.get("manifest") is None:
            raise PluginValidationError("manifest is required for apply action")

    def execute(self, ctx: ExecutionContext, config: dict[str, Any]) -> PluginResult:
        namespace = str(config["namespace"])
        resource = str(config["resource"])
        action = str(config["action"])

        logger.info(
            f"Executing {action} {resource} in namespace {namespace}",
            extra={
                "event": "kubernetes_execute",
                "stage": ctx.stage_name,
                "metadata": {"execution_id": ctx.execution_id},
            },
        )
        time.sleep(self.execute_delay_s)

        return PluginResult(
            success=True,
            message=f"Successfully executed {action} on {resource} in namespace {namespace}",
            execution_id=ctx.execution_id,
            data={
                "namespace": namespace,
                "resource": resource,
                "action": action,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    def rollback(self, ctx: ExecutionContext, execution_id: str) -> None:
        logger.info(
            f"Rolling back Kubernetes changes for execution {execution_id}",
            extra={"event": "kubernetes_rollback", "stage": ctx.stage_name},
        )
        time.sleep(self.rollback_delay_s)
