"""The tree report: node and core availability arranged by node features."""

from __future__ import annotations

import enum
from collections.abc import Collection, Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from finodes.model import Job, Node, NodeState, StateKind, alloc_cpus_on_node, derive_state

# Uninformative or redundant features left out of the default presentation.
HIDDEN_FEATURES = frozenset(
    {"rocky8", "rocky9", "sxm", "sxm2", "sxm4", "sxm5", "nvlink", "a100", "h100", "v100", "ib"}
)

_UNAVAILABLE_FLAGS = frozenset({"MAINT", "DOWN", "DRAIN", "INVALID_REG"})


class GpuFilter(enum.Enum):
    """Which nodes to show: only GPU nodes, only non-GPU nodes, or all."""

    GPU = "gpu"
    NOT_GPU = "not_gpu"
    ALL = "all"


@dataclass
class TreeStats:
    """Statistics for one branch of the tree.

    In GPU mode the CPU fields count GPUs instead.
    """

    total_nodes: int = 0
    idle_nodes: int = 0
    preempt_nodes: int | None = None
    total_cpus: int = 0
    idle_cpus: int = 0
    preempt_cpus: int | None = None
    alloc_cpus: int = 0
    node_names: list[str] = field(default_factory=list)


@dataclass
class TreeNode:
    """A branch of the feature hierarchy."""

    name: str = ""
    stats: TreeStats = field(default_factory=TreeStats)
    single_filter: bool = False
    children: dict[str, TreeNode] = field(default_factory=dict)


TreeReportData = TreeNode


def _has_no_disqualifying_flag(state: NodeState) -> bool:
    return not any(flag in _UNAVAILABLE_FLAGS for flag in state.flags)


def is_node_available(state: NodeState) -> bool:
    """True for idle nodes without a disqualifying flag."""
    return state.base is StateKind.IDLE and _has_no_disqualifying_flag(state)


def is_node_mixed(state: NodeState) -> bool:
    """True for mixed nodes without a disqualifying flag."""
    return state.base is StateKind.MIXED and _has_no_disqualifying_flag(state)


@dataclass(frozen=True)
class _Contribution:
    """What a single node adds to every branch it appears in."""

    name: str
    capacity: int
    used: int
    available: bool
    mixed: bool
    preempt: bool
    preemptable: bool

    @property
    def free(self) -> int:
        return max(self.capacity - self.used, 0)

    def add_to(self, stats: TreeStats, with_name: bool = False) -> None:
        stats.total_nodes += 1
        stats.total_cpus += self.capacity
        stats.alloc_cpus += self.used

        if self.available and self.preempt:
            # Preemptable nodes were already moved to idle, so count their whole capacity.
            stats.idle_nodes += 1
            stats.idle_cpus += self.capacity
            if self.preemptable:
                stats.preempt_nodes = (stats.preempt_nodes or 0) + 1
                stats.preempt_cpus = (stats.preempt_cpus or 0) + self.capacity
        elif self.available:
            stats.idle_nodes += 1
            stats.idle_cpus += self.free
        elif self.mixed:
            stats.idle_cpus += self.free
            if self.preempt and self.preemptable:
                stats.preempt_cpus = (stats.preempt_cpus or 0) + self.free

        if with_name:
            stats.node_names.append(self.name)


def _child(parent: TreeNode, name: str) -> TreeNode:
    child = parent.children.setdefault(name, TreeNode(name=name))
    child.name = name
    return child


def _add_chain(
    start: TreeNode,
    features: Iterable[str],
    contribution: _Contribution,
    show_node_names: bool,
) -> None:
    level = start
    for feature in features:
        level = _child(level, feature)
        contribution.add_to(level.stats, show_node_names)


def build_tree_report(
    nodes: Iterable[Node],
    jobs: Mapping[int, Job],
    node_to_job_map: Mapping[int, list[int]],
    feature_filter: Sequence[str] = (),
    show_hidden_features: bool = False,
    show_node_names: bool = False,
    preemptable_nodes: Collection[int] | None = None,
    preempt: bool = False,
    gpu: bool = False,
) -> TreeReportData:
    """Build a feature hierarchy tree from a flat list of nodes.

    Without a feature filter each node is added along the path of its
    (visible) features. With a filter every matching filter feature becomes
    a top-level branch holding the node's remaining features below it.
    """
    if preempt and preemptable_nodes is None:
        raise ValueError("preempt mode needs the ids of the preemptable nodes")
    preempt_ids = set(preemptable_nodes or ()) if preempt else set()

    root = TreeNode(name="Total", single_filter=len(feature_filter) == 1)

    for node in nodes:
        alloc_cpus = alloc_cpus_on_node(node, jobs, node_to_job_map)
        state = derive_state(node, alloc_cpus)
        gpu_info = node.gpu_info
        if gpu:
            capacity = gpu_info.total_gpus if gpu_info else 0
            used = gpu_info.allocated_gpus if gpu_info else 0
        else:
            capacity, used = node.cpus, alloc_cpus

        contribution = _Contribution(
            name=node.name,
            capacity=capacity,
            used=used,
            available=is_node_available(state),
            mixed=is_node_mixed(state),
            preempt=preempt,
            preemptable=node.id in preempt_ids,
        )
        contribution.add_to(root.stats)

        visible = [
            feature
            for feature in node.features
            if show_hidden_features or feature not in HIDDEN_FEATURES
        ]

        if not feature_filter:
            _add_chain(root, visible, contribution, show_node_names)
            continue

        for wanted in feature_filter:
            # Membership uses the node's full feature list, hidden ones included.
            if wanted not in node.features:
                continue
            top = _child(root, wanted)
            contribution.add_to(top.stats)
            _add_chain(
                top,
                (feature for feature in visible if feature != wanted),
                contribution,
                show_node_names,
            )
    return root


__all__: Sequence[str] = (
    "HIDDEN_FEATURES",
    "GpuFilter",
    "TreeStats",
    "TreeNode",
    "TreeReportData",
    "is_node_available",
    "is_node_mixed",
    "build_tree_report",
)