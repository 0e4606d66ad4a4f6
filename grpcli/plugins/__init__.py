"""
Job handlers for grp.

Plugins validate and execute jobs of one type:
- noop: accepts anything, does nothing (tests and smoke plans)
- kubernetes: simulated Kubernetes resource management

Third-party plugins register through the "grp.plugins" entry point group
or as *.py files in the plugin directory.
"""

from grpcli.plugins.base import Artifact, ConfigSchema, NoOpPlugin, Plugin, PluginResult
from grpcli.plugins.kubernetes import KubernetesPlugin
from grpcli.plugins.manager import ENTRY_POINT_GROUP, PluginManager

__all__ = [
    "Plugin",
    "PluginResult",
    "ConfigSchema",
    "Artifact",
    "NoOpPlugin",
    "KubernetesPlugin",
    "PluginManager",
    "ENTRY_POINT_GROUP",
]
