"""Reclassify node states according to the preemptability of their jobs."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone

from finodes.model import Job, Node, StateKind

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _is_preemptable(job: Job, now: datetime) -> bool:
    if job.preemptable_time is None:
        return False
    moment = _as_utc(job.preemptable_time)
    # An unset preemption time is reported as the start of the epoch.
    return moment != _EPOCH and moment <= now


def preemptable_job_ids(
    jobs: Mapping[int, Job], now: datetime | None = None
) -> set[int]:
    """Ids of the jobs whose preemptable time has passed by ``now``."""
    moment = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    return {job.job_id for job in jobs.values() if _is_preemptable(job, moment)}


def preempt_nodes(
    nodes: Iterable[Node],
    node_to_job_map: Mapping[int, list[int]],
    jobs: Mapping[int, Job],
    now: datetime | None = None,
) -> list[int]:
    """Change node states to reflect preemptable jobs and return the changed ids.

    A node whose jobs are all preemptable goes from allocated or mixed to
    idle; a node with only some preemptable jobs goes from allocated to
    mixed. Flags of compound states are kept.
    """
    preemptable = preemptable_job_ids(jobs, now)

    all_preempt: set[int] = set()
    partially_preempt: set[int] = set()
    for node_id, job_ids in node_to_job_map.items():
        if not job_ids:
            continue
        marks = [job_id in preemptable for job_id in job_ids]
        if all(marks):
            all_preempt.add(node_id)
        elif any(marks):
            partially_preempt.add(node_id)

    changed: list[int] = []
    for node in nodes:
        base = node.state.base
        if node.id in all_preempt:
            if base in (StateKind.ALLOCATED, StateKind.MIXED):
                node.state = node.state.with_base(StateKind.IDLE)
                changed.append(node.id)
        elif node.id in partially_preempt and base is StateKind.ALLOCATED:
            node.state = node.state.with_base(StateKind.MIXED)
            changed.append(node.id)
    return changed