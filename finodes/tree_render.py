"""Text rendering of the feature tree report."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from finodes.display import Color, bold, colorize, compress_hostlist, count_blocks, visible_len
from finodes.tree_report import TreeNode, TreeReportData

_HEADER_FEATURE = "Feature"
_HEADER_NODES = ""
_HEADER_CPUS = ""
_HEADER_NODE_AVAIL = "Nodes Available  "
_HEADER_CPU_AVAIL = "Cores Available  "
_HEADER_GPU_AVAIL = "GPUs Available  "
_BAR_WIDTH = 20


@dataclass
class ColumnWidths:
    """Widths of the numeric parts of the node and CPU columns."""

    max_idle_nodes: int = 0
    max_total_nodes: int = 0
    max_preempt_nodes_width: int = 0
    max_idle_cpus: int = 0
    max_total_cpus: int = 0
    max_preempt_cpus_width: int = 0


def _width(value: int) -> int:
    return len(str(value))


def calculate_column_widths(tree_node: TreeNode) -> ColumnWidths:
    """Widths wide enough for ``tree_node`` and all of its descendants."""
    stats = tree_node.stats
    widths = ColumnWidths(
        max_idle_nodes=_width(stats.idle_nodes),
        max_total_nodes=_width(stats.total_nodes),
        max_preempt_nodes_width=_width(stats.preempt_nodes) if stats.preempt_nodes is not None else 0,
        max_idle_cpus=_width(stats.idle_cpus),
        max_total_cpus=_width(stats.total_cpus),
        max_preempt_cpus_width=_width(stats.preempt_cpus) if stats.preempt_cpus is not None else 0,
    )
    for child in tree_node.children.values():
        sub = calculate_column_widths(child)
        widths.max_idle_nodes = max(widths.max_idle_nodes, sub.max_idle_nodes)
        widths.max_total_nodes = max(widths.max_total_nodes, sub.max_total_nodes)
        widths.max_preempt_nodes_width = max(widths.max_preempt_nodes_width, sub.max_preempt_nodes_width)
        widths.max_idle_cpus = max(widths.max_idle_cpus, sub.max_idle_cpus)
        widths.max_total_cpus = max(widths.max_total_cpus, sub.max_total_cpus)
        widths.max_preempt_cpus_width = max(widths.max_preempt_cpus_width, sub.max_preempt_cpus_width)
    return widths


def create_avail_bar(
    current: int, total: int, width: int, color: Color, no_color: bool = False
) -> str:
    """A framed bar ``width`` cells wide showing ``current`` out of ``total``."""
    if total == 0:
        return f"│{' ' * width}│"
    full, empty, partial = count_blocks(width, current / total)
    bar_color = Color.WHITE if no_color else color
    filled = colorize("█" * full, bar_color)
    if partial is not None:
        return f"│{filled}{colorize(partial, bar_color)}{' ' * empty}│"
    return f"│{filled}{' ' * empty}│"


def _single_child(node: TreeNode) -> TreeNode:
    return next(iter(node.children.values()))


def calculate_max_width(tree_node: TreeNode, prefix_len: int = 0, collapse: bool = False) -> int:
    """Width needed for the feature column of ``tree_node`` and its subtree."""
    parts = [tree_node.name]
    current = tree_node
    if collapse:
        while len(current.children) == 1:
            current = _single_child(current)
            parts.append(current.name)
    own_width = prefix_len + len(", ".join(parts)) + 5
    return max(
        [own_width, *(calculate_max_width(child, prefix_len + 3, True) for child in current.children.values())]
    )


def _stat_text(
    idle: int,
    total: int,
    preempt: int | None,
    idle_width: int,
    total_width: int,
    preempt_width: int,
    missing_padding: int,
) -> str:
    idle_str = f"{idle:>{idle_width}}"
    total_str = f"{total:>{total_width}}"
    if preempt is not None:
        marker = colorize(f"(-{preempt:>{preempt_width}})", Color.YELLOW)
        return f"{idle_str}{marker}/{total_str}"
    if preempt_width > 0:
        return f"{idle_str}{' ' * (preempt_width + missing_padding)}/{total_str}"
    return f"{idle_str}/{total_str}"


def _rjust(text: str, width: int) -> str:
    return " " * max(width - visible_len(text), 0) + text


def _node_text(node: TreeNode, widths: ColumnWidths, missing_padding: int) -> str:
    stats = node.stats
    return _stat_text(
        stats.idle_nodes, stats.total_nodes, stats.preempt_nodes,
        widths.max_idle_nodes, widths.max_total_nodes, widths.max_preempt_nodes_width,
        missing_padding,
    )


def _cpu_text(node: TreeNode, widths: ColumnWidths) -> str:
    stats = node.stats
    return _stat_text(
        stats.idle_cpus, stats.total_cpus, stats.preempt_cpus,
        widths.max_idle_cpus, widths.max_total_cpus, widths.max_preempt_cpus_width,
        3,
    )


def _data_width(idle: int, total: int, preempt: int) -> int:
    base = idle + total + 1
    return base + preempt + 3 if preempt > 0 else base


def _ordered(children: Sequence[TreeNode], sort: bool) -> list[TreeNode]:
    if sort:
        return sorted(children, key=lambda child: child.name)
    return sorted(children, key=lambda child: child.stats.total_nodes, reverse=True)


@dataclass(frozen=True)
class _Layout:
    feature_width: int
    nodes_width: int
    cpus_width: int
    widths: ColumnWidths
    max_nodes: int
    max_cores: int
    no_color: bool
    show_node_names: bool
    sort: bool
    gpu: bool


def _render_branch(
    tree_node: TreeNode, prefix: str, is_last: bool, layout: _Layout, lines: list[str]
) -> None:
    parts = [tree_node.name]
    current = tree_node
    while len(current.children) == 1:
        child = _single_child(current)
        if current.stats.total_nodes != child.stats.total_nodes:
            break
        parts.append(child.name)
        current = child

    connector = "└──" if is_last else "├──"
    display_name = f"{prefix}{connector}{', '.join(parts)}"
    stats = current.stats

    node_text = _node_text(current, layout.widths, 3)
    cpu_text = _cpu_text(current, layout.widths)
    node_bar = create_avail_bar(stats.idle_nodes, layout.max_nodes, _BAR_WIDTH, Color.GREEN, layout.no_color)
    cpu_color = Color.RED if layout.gpu else Color.CYAN
    cpu_bar = create_avail_bar(stats.idle_cpus, layout.max_cores, _BAR_WIDTH, cpu_color, layout.no_color)
    names = compress_hostlist(stats.node_names) if layout.show_node_names else ""

    lines.append(
        f"{bold(f'{display_name:<{layout.feature_width}}')} "
        f"{_rjust(node_text, layout.nodes_width)} {node_bar} "
        f"{_rjust(cpu_text, layout.cpus_width)} {cpu_bar} {names}"
    )

    child_prefix = prefix + ("   " if is_last else "│  ")
    children = _ordered(list(current.children.values()), layout.sort)
    for index, child in enumerate(children):
        _render_branch(child, child_prefix, index == len(children) - 1, layout, lines)


def format_tree_report(
    root: TreeReportData,
    no_color: bool = False,
    show_node_names: bool = False,
    sort: bool = False,
    preempt: bool = False,
    gpu: bool = False,
) -> str:
    """Render the tree report as text.

    ``sort`` orders branches alphabetically instead of by node count.
    """
    top = root
    if root.single_filter and root.children:
        top = _single_child(root)

    feature_width = max(calculate_max_width(top, 0, False), len(_HEADER_FEATURE)) - 4
    widths = calculate_column_widths(top)

    nodes_width = max(
        _data_width(widths.max_idle_nodes, widths.max_total_nodes, widths.max_preempt_nodes_width),
        len(_HEADER_NODES),
    )
    cpus_width = max(
        _data_width(widths.max_idle_cpus, widths.max_total_cpus, widths.max_preempt_cpus_width),
        len(_HEADER_CPUS),
    )
    bar_final_width = max(_BAR_WIDTH + 2, len(_HEADER_NODE_AVAIL))

    stats = top.stats
    node_text = _node_text(top, widths, 2)
    cpu_text = _cpu_text(top, widths)
    node_bar = create_avail_bar(stats.idle_nodes, stats.total_nodes, _BAR_WIDTH, Color.GREEN, no_color)
    cpu_color = Color.RED if gpu else Color.CYAN
    cpu_bar = create_avail_bar(stats.idle_cpus, stats.total_cpus, _BAR_WIDTH, cpu_color, no_color)

    avail_header = _HEADER_GPU_AVAIL if gpu else _HEADER_CPU_AVAIL
    header = (
        f"{bold(f'{_HEADER_FEATURE:<{feature_width}}')} "
        f"{bold(f'{_HEADER_NODES:<{nodes_width}}')}  "
        f"{bold(f'{_HEADER_NODE_AVAIL:<{bar_final_width}}')}"
        f"{bold(f'{_HEADER_CPUS:<{cpus_width}}')}  "
        f"{bold(f'{avail_header:<{bar_final_width}}')}"
    )
    total_width = feature_width + nodes_width + cpus_width + bar_final_width * 2 + 6
    lines = [
        header,
        "═" * (total_width - 2),
        f"{bold(f'{top.name:<{feature_width}}')} {_rjust(node_text, nodes_width)} {node_bar} "
        f"{_rjust(cpu_text, cpus_width)} {cpu_bar}",
    ]

    layout = _Layout(
        feature_width=feature_width,
        nodes_width=nodes_width,
        cpus_width=cpus_width,
        widths=widths,
        max_nodes=stats.total_nodes,
        max_cores=stats.total_cpus,
        no_color=no_color,
        show_node_names=show_node_names,
        sort=sort,
        gpu=gpu,
    )
    children = _ordered(list(top.children.values()), sort)
    for index, child in enumerate(children):
        _render_branch(child, "", index == len(children) - 1, layout, lines)
    return "\n".join(lines)


def print_tree_report(
    root: TreeReportData,
    no_color: bool = False,
    show_node_names: bool = False,
    sort: bool = False,
    preempt: bool = False,
    gpu: bool = False,
) -> None:
    """Print the tree report to standard output."""
    print(format_tree_report(root, no_color, show_node_names, sort, preempt, gpu))


__all__: Sequence[str] = (
    "ColumnWidths",
    "calculate_column_widths",
    "calculate_max_width",
    "create_avail_bar",
    "format_tree_report",
    "print_tree_report",
)