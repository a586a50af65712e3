import pytest

from finodes.model import (
    GpuInfo,
    Job,
    Node,
    NodeState,
    StateKind,
    alloc_cpus_on_node,
    build_node_to_job_map,
    derive_state,
)


def _node(node_id=0, cpus=64, state=None):
    return Node(
        id=node_id,
        name=f"worker{node_id}",
        cpus=cpus,
        state=state or NodeState(StateKind.ALLOCATED),
    )


def test_with_base_keeps_flags():
    state = NodeState(StateKind.IDLE, ("DRAIN", "MAINT"))
    changed = state.with_base(StateKind.MIXED)
    assert changed.base is StateKind.MIXED
    assert changed.flags == state.flags


def test_is_compound():
    assert NodeState(StateKind.IDLE, ["DRAIN"]).is_compound() is True
    assert NodeState(StateKind.IDLE).is_compound() is False


def test_state_is_hashable_and_flags_become_tuple():
    a = NodeState(StateKind.DOWN, ["fail"])
    b = NodeState(StateKind.DOWN, ("fail",))
    assert a == b
    assert len({a, b}) == 1


def test_state_str():
    assert str(NodeState(StateKind.IDLE)) == "IDLE"
    assert str(NodeState(StateKind.IDLE, ("drain", "maint"))) == "IDLE+DRAIN+MAINT"


def test_build_node_to_job_map():
    jobs = {
        1: Job(job_id=1, num_cpus=8, num_nodes=2, node_ids=[10, 11]),
        2: Job(job_id=2, num_cpus=4, num_nodes=1, node_ids=[10]),
    }
    mapping = build_node_to_job_map(jobs)
    assert mapping == {10: [1, 2], 11: [1]}


def test_build_node_to_job_map_empty():
    assert build_node_to_job_map({}) == {}


def test_alloc_cpus_spreads_evenly():
    node = _node(node_id=3, cpus=64)
    jobs = {
        1: Job(job_id=1, num_cpus=40, num_nodes=2, node_ids=[3, 4]),
        2: Job(job_id=2, num_cpus=6, num_nodes=1, node_ids=[3]),
    }
    mapping = build_node_to_job_map(jobs)
    assert alloc_cpus_on_node(node, jobs, mapping) == 40 // 2 + 6


def test_alloc_cpus_zero_nodes_uses_all_cpus():
    node = _node(node_id=1)
    jobs = {5: Job(job_id=5, num_cpus=12, num_nodes=0, node_ids=[1])}
    assert alloc_cpus_on_node(node, jobs, {1: [5]}) == 12


def test_alloc_cpus_ignores_unknown_jobs_and_missing_nodes():
    node = _node(node_id=1)
    assert alloc_cpus_on_node(node, {}, {1: [99]}) == 0
    assert alloc_cpus_on_node(node, {}, {}) == 0


@pytest.mark.parametrize("alloc", [1, 32, 63])
def test_derive_state_partial_becomes_mixed(alloc):
    node = _node(cpus=64, state=NodeState(StateKind.ALLOCATED, ("RES",)))
    derived = derive_state(node, alloc)
    assert derived == NodeState(StateKind.MIXED, ("RES",))


@pytest.mark.parametrize("alloc", [0, 64])
def test_derive_state_keeps_reported_state(alloc):
    state = NodeState(StateKind.IDLE)
    node = _node(cpus=64, state=state)
    assert derive_state(node, alloc) == state


def test_node_defaults():
    node = Node(id=1, name="n1", cpus=4, state=NodeState(StateKind.IDLE))
    assert node.features == []
    assert node.gpu_info is None
    gpu = GpuInfo(name="gpu:a100", total_gpus=4)
    assert gpu.allocated_gpus == 0