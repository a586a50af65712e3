"""The detailed report: nodes grouped by state with CPU and GPU totals."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from finodes.display import Color, bold, colorize, compress_hostlist, count_blocks
from finodes.model import Job, Node, NodeState, StateKind, alloc_cpus_on_node, derive_state

_PADDING = "  "
_TOTAL_LABEL = "TOTAL (Idle/Total)"
_BAR_WIDTH = 50
_UNAVAILABLE_FLAGS = frozenset({"MAINT", "DOWN", "DRAIN", "INVALID_REG"})

_STATE_ORDER = {
    StateKind.IDLE: 0,
    StateKind.MIXED: 1,
    StateKind.ALLOCATED: 2,
    StateKind.ERROR: 3,
    StateKind.DOWN: 4,
}

_FLAG_ORDER = {
    name: rank
    for rank, name in enumerate(
        (
            "EXTERNAL", "RES", "UNDRAIN", "CLOUD", "RESUME", "DRAIN",
            "COMPLETING", "NO_RESPOND", "POWERED_DOWN", "FAIL", "POWERING_UP",
            "MAINT", "REBOOT_REQUESTED", "REBOOT_CANCEL", "POWERING_DOWN",
            "DYNAMIC_FUTURE", "REBOOT_ISSUED", "PLANNED", "INVALID_REG",
            "POWER_DOWN", "POWER_UP", "POWER_DRAIN", "DYNAMIC_NORM", "BLOCKED",
        )
    )
}

_STATE_COLORS = {
    StateKind.IDLE: Color.GREEN,
    StateKind.MIXED: Color.BLUE,
    StateKind.ALLOCATED: Color.YELLOW,
    StateKind.DOWN: Color.RED,
    StateKind.ERROR: Color.MAGENTA,
}


@dataclass
class ReportLine:
    """Aggregated statistics for one line of the report."""

    node_count: int = 0
    total_cpus: int = 0
    alloc_cpus: int = 0
    idle_cpus: int = 0
    total_gpus: int = 0
    alloc_gpus: int = 0
    idle_gpus: int = 0
    node_names: list[str] = field(default_factory=list)


@dataclass
class ReportGroup:
    """A state group: its summary line and its subgroups by feature or GPU."""

    summary: ReportLine = field(default_factory=ReportLine)
    subgroups: dict[str, ReportLine] = field(default_factory=dict)


ReportData = dict[NodeState, ReportGroup]


@dataclass
class ReportWidths:
    """Widths of the report's columns."""

    state_width: int
    count_width: int
    alloc_or_idle_cpu_width: int
    total_cpu_width: int
    alloc_or_idle_gpu_width: int
    total_gpu_width: int


def is_node_available(state: NodeState) -> bool:
    """True for idle nodes without a disqualifying flag."""
    return state.base is StateKind.IDLE and not any(
        flag in _UNAVAILABLE_FLAGS for flag in state.flags
    )


def build_report(
    nodes: Iterable[Node],
    jobs: Mapping[int, Job],
    node_to_job_map: Mapping[int, list[int]],
    show_node_names: bool = False,
    allocated: bool = False,
    verbose: bool = False,
) -> ReportData:
    """Aggregate nodes into groups keyed by their derived state."""
    report: ReportData = {}
    for node in nodes:
        alloc_cpus = alloc_cpus_on_node(node, jobs, node_to_job_map)
        state = derive_state(node, alloc_cpus)
        group = report.setdefault(state, ReportGroup())
        gpu = node.gpu_info

        if not allocated and state.base in (StateKind.IDLE, StateKind.MIXED):
            idle_cpus = max(node.cpus - alloc_cpus, 0)
            idle_gpus = max(gpu.total_gpus - gpu.allocated_gpus, 0) if gpu else 0
        else:
            idle_cpus = idle_gpus = 0

        lines = [group.summary]
        if gpu is not None:
            key = "gpu" if not verbose and gpu.name.startswith("gpu:") else gpu.name
            lines.append(group.subgroups.setdefault(key, ReportLine()))
        elif node.features:
            lines.append(group.subgroups.setdefault(node.features[0], ReportLine()))

        for line in lines:
            line.node_count += 1
            line.total_cpus += node.cpus
            line.alloc_cpus += alloc_cpus
            line.idle_cpus += idle_cpus
            if gpu is not None:
                line.total_gpus += gpu.total_gpus
                line.alloc_gpus += gpu.allocated_gpus
                line.idle_gpus += idle_gpus
            if show_node_names:
                line.node_names.append(node.name)
    return report


def _width(value: int) -> int:
    return len(str(value))


def get_report_widths(
    report_data: ReportData, allocated: bool = False
) -> tuple[ReportWidths, ReportLine]:
    """Column widths wide enough for every line, and the grand total line."""
    total = ReportLine()
    for group in report_data.values():
        summary = group.summary
        total.node_count += summary.node_count
        total.total_cpus += summary.total_cpus
        total.alloc_cpus += summary.alloc_cpus
        total.idle_cpus += summary.idle_cpus
        total.total_gpus += summary.total_gpus
        total.alloc_gpus += summary.alloc_gpus
        total.idle_gpus += summary.idle_gpus

    widths = ReportWidths(
        state_width=len("STATE"),
        count_width=_width(total.node_count),
        alloc_or_idle_cpu_width=_width(total.alloc_cpus if allocated else total.idle_cpus),
        total_cpu_width=_width(total.total_cpus),
        alloc_or_idle_gpu_width=_width(total.alloc_gpus if allocated else total.idle_gpus),
        total_gpu_width=_width(total.total_gpus),
    )

    def check(line: ReportLine) -> None:
        widths.count_width = max(widths.count_width, _width(line.node_count))
        cpu_value = line.alloc_cpus if allocated else line.idle_cpus
        gpu_value = line.alloc_gpus if allocated else line.idle_gpus
        widths.alloc_or_idle_cpu_width = max(widths.alloc_or_idle_cpu_width, _width(cpu_value))
        widths.alloc_or_idle_gpu_width = max(widths.alloc_or_idle_gpu_width, _width(gpu_value))
        widths.total_cpu_width = max(widths.total_cpu_width, _width(line.total_cpus))
        widths.total_gpu_width = max(widths.total_gpu_width, _width(line.total_gpus))

    for state, group in report_data.items():
        widths.state_width = max(widths.state_width, len(str(state)))
        check(group.summary)
        for name, line in group.subgroups.items():
            widths.state_width = max(widths.state_width, len(name) + 2)
            check(line)
    return widths, total


def _state_sort_key(state: NodeState) -> tuple[int, list[int], str]:
    flag_ranks = sorted(_FLAG_ORDER.get(flag.upper(), 99) for flag in state.flags)
    return _STATE_ORDER.get(state.base, 99), flag_ranks, str(state)


def sort_states(states: Iterable[NodeState]) -> list[NodeState]:
    """Order states for presentation: by base state, then by their flags."""
    return sorted(states, key=_state_sort_key)


def _state_label(state: NodeState, no_color: bool) -> str:
    if no_color:
        return str(state)
    if state.is_compound():
        base = colorize(str(state.base), _STATE_COLORS.get(state.base, Color.CYAN))
        return f"{base}+{'+'.join(state.flags).upper()}"
    return colorize(str(state), _STATE_COLORS.get(state.base, Color.DIM))


def _cpu_text(line: ReportLine, widths: ReportWidths, allocated: bool) -> str:
    value = line.alloc_cpus if allocated else line.idle_cpus
    return f"{value:>{widths.alloc_or_idle_cpu_width}}/{line.total_cpus:>{widths.total_cpu_width}}"


def _gpu_text(line: ReportLine, widths: ReportWidths, allocated: bool) -> str:
    if line.total_gpus == 0:
        span = widths.alloc_or_idle_gpu_width + widths.total_gpu_width + 1
        return f"{'-':^{span}}"
    value = line.alloc_gpus if allocated else line.idle_gpus
    return f"{value:>{widths.alloc_or_idle_gpu_width}}/{line.total_gpus:>{widths.total_gpu_width}}"


def _row(
    label: str,
    label_len: int,
    line: ReportLine,
    widths: ReportWidths,
    count_width: int,
    allocated: bool,
) -> str:
    padding = " " * max(widths.state_width - label_len, 0)
    return (
        f"{label}{padding}{_PADDING}{line.node_count:>{count_width}}{_PADDING}"
        f"{_cpu_text(line, widths, allocated)}{_PADDING}{_gpu_text(line, widths, allocated)}"
    )


def _names(line: ReportLine, show_node_names: bool) -> str:
    return compress_hostlist(line.node_names) if show_node_names else ""


def _bar_lines(
    percent: float, color: Color, name: str, no_color: bool, allocated: bool
) -> list[str]:
    full, empty, partial = count_blocks(_BAR_WIDTH, percent / 100.0)
    bar_color = Color.WHITE if no_color else color
    filled = colorize("█" * full, bar_color)
    partial_text = colorize(partial or "", bar_color)
    title = "Utilization" if allocated else "Availability"
    return [
        f"Overall {name} {title}: ",
        f" │{filled}{partial_text}{' ' * empty}│ {percent:.1f}%",
    ]


def _available_total(report_data: ReportData, attribute: str) -> int:
    return sum(
        getattr(group.summary, attribute)
        for state, group in report_data.items()
        if is_node_available(state)
    )


def _utilization_lines(
    report_data: ReportData, total: ReportLine, allocated: bool, no_color: bool
) -> list[str]:
    lines = [""]
    if allocated:
        used_nodes = sum(
            group.summary.node_count
            for state, group in report_data.items()
            if state.base in (StateKind.ALLOCATED, StateKind.MIXED)
        )
        node_part, cpu_part, gpu_part = used_nodes, total.alloc_cpus, total.alloc_gpus
    else:
        node_part = _available_total(report_data, "node_count")
        cpu_part = _available_total(report_data, "total_cpus")
        gpu_part = _available_total(report_data, "total_gpus")

    for part, whole, color, name in (
        (node_part, total.node_count, Color.GREEN, "Node"),
        (cpu_part, total.total_cpus, Color.CYAN, "CPU"),
        (gpu_part, total.total_gpus, Color.RED, "GPU"),
    ):
        if whole > 0:
            lines.extend(_bar_lines(part / whole * 100.0, color, name, no_color, allocated))
    return lines


def format_report(
    report_data: ReportData,
    no_color: bool = False,
    show_node_names: bool = False,
    allocated: bool = False,
) -> str:
    """Render the detailed report as text."""
    widths, total = get_report_widths(report_data, allocated)

    count_width = max(widths.count_width, len("COUNT"))
    cpu_width = widths.alloc_or_idle_cpu_width + widths.total_cpu_width + 1
    gpu_width = widths.alloc_or_idle_gpu_width + widths.total_gpu_width + 1

    header = _PADDING.join(
        (
            bold(f"{'STATE':<{widths.state_width}}"),
            bold(f"{'COUNT':>{count_width}}"),
            bold(f"{'CPU':>{cpu_width}}"),
            bold(f"{'GPU':>{gpu_width}}"),
        )
    )
    separator = "═" * (widths.state_width + count_width + cpu_width + gpu_width + 3 * len(_PADDING))

    lines = [header, separator]
    for state in sort_states(report_data):
        group = report_data[state]
        label = str(state)
        row = _row(_state_label(state, no_color), len(label), group.summary, widths, count_width, allocated)
        lines.append(f"{row}  {_names(group.summary, show_node_names)}")
        for name in sorted(group.subgroups):
            line = group.subgroups[name]
            sub_label = f"  {name}"
            row = _row(sub_label, len(sub_label), line, widths, count_width, allocated)
            lines.append(f"{row}  {_names(line, show_node_names)}")

    lines.append(separator)
    lines.append(_row(_TOTAL_LABEL, len(_TOTAL_LABEL), total, widths, count_width, allocated))
    lines.extend(_utilization_lines(report_data, total, allocated, no_color))
    return "\n".join(lines)


def print_report(
    report_data: ReportData,
    no_color: bool = False,
    show_node_names: bool = False,
    allocated: bool = False,
) -> None:
    """Print the detailed report to standard output."""
    print(format_report(report_data, no_color, show_node_names, allocated))


__all__: Sequence[str] = (
    "ReportLine",
    "ReportGroup",
    "ReportWidths",
    "ReportData",
    "build_report",
    "get_report_widths",
    "sort_states",
    "is_node_available",
    "format_report",
    "print_report",
)