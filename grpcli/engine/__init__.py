"""
grpcli.engine - execution core.

- JobGraph: per-stage dependency graph
- Executor: wave-based concurrent execution of one graph
- Orchestrator: sequential stage runner with approval and rollback
"""

from grpcli.engine.executor import Executor
from grpcli.engine.jobgraph import JobGraph
from grpcli.engine.orchestrator import ExecuteOptions, Orchestrator

__all__ = [
    "JobGraph",
    "Executor",
    "Orchestrator",
    "ExecuteOptions",
]
