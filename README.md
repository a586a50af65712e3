# finodes

`finodes` is a library that reports how busy a Slurm cluster is. It takes
node and job records and builds two kinds of report:

- a **tree report**, which arranges nodes by their features and shows how
  many nodes and cores (or GPUs) are free in each branch;
- a **detailed report**, which groups nodes by Slurm state (IDLE, MIXED,
  ALLOCATED, DOWN, ...) with their flags, and shows CPU and GPU counts
  followed by availability or utilization bars.

Both reports can be rendered as terminal text, with or without colour.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

| Module | Contents |
| --- | --- |
| `finodes.model` | `StateKind`, `NodeState`, `GpuInfo`, `Node`, `Job`; `build_node_to_job_map`, `alloc_cpus_on_node`, `derive_state`. |
| `finodes.preempt` | `preemptable_job_ids`, `preempt_nodes`: reclassify node states from job preemptability. |
| `finodes.report` | The detailed report: `build_report`, `get_report_widths`, `sort_states`, `is_node_available`, `format_report`, `print_report`. |
| `finodes.tree_report` | The tree report data: `GpuFilter`, `TreeStats`, `TreeNode`, `HIDDEN_FEATURES`, `is_node_available`, `is_node_mixed`, `build_tree_report`. |
| `finodes.tree_render` | Text rendering of the tree: `ColumnWidths`, `calculate_column_widths`, `calculate_max_width`, `create_avail_bar`, `format_tree_report`, `print_tree_report`. |
| `finodes.display` | `Color`, `colorize`, `bold`, `visible_len`, `count_blocks`, `compress_hostlist`. |

## Example

```python
from finodes.model import GpuInfo, Job, Node, NodeState, StateKind, build_node_to_job_map
from finodes.report import build_report, format_report
from finodes.tree_report import build_tree_report
from finodes.tree_render import format_tree_report

nodes = [
    Node(0, "worker001", 64, NodeState(StateKind.IDLE), ["icelake", "ib"]),
    Node(1, "worker002", 64, NodeState(StateKind.ALLOCATED), ["icelake", "ib"]),
    Node(2, "worker003", 64, NodeState(StateKind.IDLE, ("DRAIN",)), ["genoa"]),
    Node(3, "gpu001", 32, NodeState(StateKind.MIXED), ["icelake"],
         GpuInfo("gpu:a100", total_gpus=4, allocated_gpus=2)),
]
jobs = {
    10: Job(job_id=10, num_cpus=64, num_nodes=1, node_ids=[1]),
    11: Job(job_id=11, num_cpus=16, num_nodes=1, node_ids=[3]),
}
node_to_job_map = build_node_to_job_map(jobs)

detailed = build_report(nodes, jobs, node_to_job_map)
print(format_report(detailed, no_color=True))

tree = build_tree_report(nodes, jobs, node_to_job_map)
print(format_tree_report(tree, no_color=True))
```

Notes on the reports:

- A node whose allocated cores are more than zero but fewer than its total
  is counted as MIXED, keeping any flags of its reported state.
- In the tree report a node counts as available only when it is IDLE and
  carries none of the flags MAINT, DOWN, DRAIN or INVALID_REG. Features in
  `HIDDEN_FEATURES` are left out of the tree unless
  `show_hidden_features=True`.
- With `gpu=True` the tree counts GPUs instead of cores.
- `format_tree_report(..., sort=True)` orders branches alphabetically
  instead of by node count.
- With `show_node_names=True`, node names are shown as compressed host lists
  such as `worker[001-002]`.

### Preemption

`preempt_nodes(nodes, node_to_job_map, jobs, now)` changes node states in
place. A node where every job is preemptable goes from ALLOCATED or MIXED to
IDLE. A node where only some jobs are preemptable goes from ALLOCATED to
MIXED. It returns the ids of the nodes it changed. Pass that list to
`build_tree_report(..., preemptable_nodes=ids, preempt=True)`. The rendered
counts then read like `123(-45)/200`: 123 idle or preemptable, 45 of them
preemptable.

## What this package does not do

- It does not query a Slurm controller. You build the `Node` and `Job`
  values yourself, from whatever source you have.
- It installs no command-line program. The reports are produced by calling
  the functions above.