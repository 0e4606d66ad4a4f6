"""
JobGraph - dependency graph of the jobs of one stage.

Built fresh at stage entry (and for every rollback stage) and discarded at
stage exit. Only the executor that owns a graph mutates it, and only after
a wave's barrier has cleared.

The graph does not check that dependency targets exist; plan validation
guarantees that upstream, and the executor reports any job left
unreachable once the ready frontier runs dry. Cycle-freedom is re-checked with has_cycles()
before the first wave.
"""

from typing import Iterable

from grpcli.schemas import Job


class JobGraph:
    """
    In-memory DAG of jobs.

    Edges point from a job to the jobs it depends on. The ready frontier is
    every incomplete job whose dependencies are all completed. It is a set:
    callers must not rely on its order for scheduling decisions. Jobs are
    kept in insertion order, so the frontier comes back in declaration order.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}
        self._dependencies: dict[str, list[str]] = {}
        self._dependents: dict[str, list[str]] = {}
        self._completed: set[str] = set()

    @classmethod
    def from_jobs(cls, jobs: Iterable[Job]) -> "JobGraph":
        """
        Build a graph from a snapshot of a stage's jobs.

        Args:
            jobs: Jobs of one stage

        Returns:
            JobGraph with every job and dependsOn edge registered
        """
        jobs = list(jobs)
        graph = cls()
        for job in jobs:
            graph.add_job(job)
        for job in jobs:
            for dep in job.depends_on:
                graph.add_dependency(job.name, dep)
        return graph

    def add_job(self, job: Job) -> None:
        """Register a job. A later add with the same name overwrites it."""
        self._jobs[job.name] = job
        self._dependencies.setdefault(job.name, [])
        self._dependents.setdefault(job.name, [])

    def add_dependency(self, job_name: str, depends_on: str) -> None:
        """Record that job_name depends on depends_on."""
        self._dependencies.setdefault(job_name, []).append(depends_on)
        self._dependents.setdefault(depends_on, []).append(job_name)

    def get_ready_jobs(self) -> list[Job]:
        """Return every incomplete job whose dependencies are all completed."""
        ready = []
        for name, job in self._jobs.items():
            if name in self._completed:
                continue
            if all(dep in self._completed for dep in self._dependencies.get(name, ())):
                ready.append(job)
        return ready

    def mark_completed(self, job_name: str) -> None:
        """Mark a job as done. Idempotent and irreversible."""
        self._completed.add(job_name)

    def is_completed(self) -> bool:
        """True iff every registered job is completed."""
        return all(name in self._completed for name in self._jobs)

    def get_remaining_jobs(self) -> list[Job]:
        """Return the jobs that are not yet completed."""
        return [job for name, job in self._jobs.items() if name not in self._completed]

    def dependencies_of(self, job_name: str) -> list[str]:
        return list(self._dependencies.get(job_name, ()))

    def dependents_of(self, job_name: str) -> list[str]:
        return list(self._dependents.get(job_name, ()))

    def has_cycles(self) -> bool:
        """
        Check the graph for dependency cycles.

        Depth-first search from every unvisited job with an explicit stack,
        so long dependency chains do not hit the recursion limit. An edge
        into a job that is still on the current path is a cycle.
        """
        visited: set[str] = set()
        on_path: set[str] = set()

        for root in self._jobs:
            if root in visited:
                continue
            visited.add(root)
            on_path.add(root)
            stack = [(root, iter(self._dependencies.get(root, ())))]

            while stack:
                node, deps = stack[-1]
                for dep in deps:
                    if dep in on_path:
                        return True
                    if dep not in visited:
                        visited.add(dep)
                        on_path.add(dep)
                        stack.append((dep, iter(self._dependencies.get(dep, ()))))
                        break
                else:
                    on_path.discard(node)
                    stack.pop()
        return False

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_name: object) -> bool:
        return job_name in self._jobs

    def __repr__(self) -> str:
        return f"JobGraph(jobs={len(self._jobs)}, completed={len(self._completed)})"
