"""Core data types for nodes, jobs and their node states."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime


class StateKind(enum.Enum):
    """Base state of a node as reported by the scheduler."""

    IDLE = "IDLE"
    MIXED = "MIXED"
    ALLOCATED = "ALLOCATED"
    DOWN = "DOWN"
    ERROR = "ERROR"
    FUTURE = "FUTURE"
    UNKNOWN = "UNKNOWN"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class NodeState:
    """A base state plus optional flags such as DRAIN or MAINT.

    A state with flags is a compound state; without flags it is simple.
    """

    base: StateKind
    flags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "flags", tuple(self.flags))

    def with_base(self, kind: StateKind) -> NodeState:
        """Return a state with the same flags and a different base."""
        return NodeState(kind, self.flags)

    def is_compound(self) -> bool:
        """True when the state carries flags."""
        return bool(self.flags)

    def __str__(self) -> str:
        if not self.flags:
            return str(self.base)
        return f"{self.base}+{'+'.join(self.flags).upper()}"


@dataclass
class GpuInfo:
    """GPU resources of a node."""

    name: str
    total_gpus: int
    allocated_gpus: int = 0


@dataclass
class Node:
    """A compute node."""

    id: int
    name: str
    cpus: int
    state: NodeState
    features: list[str] = field(default_factory=list)
    gpu_info: GpuInfo | None = None


@dataclass
class Job:
    """A running job and the nodes it occupies."""

    job_id: int
    num_cpus: int
    num_nodes: int
    node_ids: list[int] = field(default_factory=list)
    preemptable_time: datetime | None = None


def build_node_to_job_map(jobs: Mapping[int, Job]) -> dict[int, list[int]]:
    """Map each node id to the ids of the jobs running on it."""
    node_to_jobs: dict[int, list[int]] = {}
    for job in jobs.values():
        for node_id in job.node_ids:
            node_to_jobs.setdefault(node_id, []).append(job.job_id)
    return node_to_jobs


def _cpus_per_node(job: Job) -> int:
    return job.num_cpus // job.num_nodes if job.num_nodes > 0 else job.num_cpus


def alloc_cpus_on_node(
    node: Node, jobs: Mapping[int, Job], node_to_job_map: Mapping[int, list[int]]
) -> int:
    """Number of CPUs on ``node`` allocated to jobs, assuming even spread."""
    return sum(
        _cpus_per_node(jobs[job_id])
        for job_id in node_to_job_map.get(node.id, ())
        if job_id in jobs
    )


def derive_state(node: Node, alloc_cpus: int) -> NodeState:
    """Mark a partly allocated node as mixed, keeping its flags."""
    if 0 < alloc_cpus < node.cpus:
        return node.state.with_base(StateKind.MIXED)
    return node.state