"""Run-length grouping of series with identical dimensions."""

from __future__ import annotations

from typing import Iterable

from bfmeta.core.models import GroupingResult, SeriesGroup, SeriesRecord


def group_series(records: Iterable[SeriesRecord]) -> GroupingResult:
    """Merge runs of consecutive, structurally-equal series.

    Group bounds are series numbers: ``record.index`` when the record was
    read from a report, otherwise its position in ``records``. A new group
    starts at a record that differs from the current group's representative
    or whose number does not follow the previous one, so series separated
    by a removed thumbnail are never merged.

    Args:
        records: SeriesRecords in report order.

    Returns:
        GroupingResult; ``no_series`` is set when ``records`` is empty.
    """
    groups: list[SeriesGroup] = []
    current: SeriesRecord | None = None
    start = previous = 0
    for position, record in enumerate(records):
        number = record.index if record.index is not None else position
        if current is None:
            current, start = record, number
        elif record != current or number != previous + 1:
            groups.append(SeriesGroup(start, previous, current))
            current, start = record, number
        previous = number
    if current is None:
        return GroupingResult(no_series=True)
    groups.append(SeriesGroup(start, previous, current))
    return GroupingResult(groups=tuple(groups))


def format_group(group: SeriesGroup) -> str:
    """Render one group as a single summary line."""
    if group.start_index == group.end_index:
        span = f"Series {group.start_index}"
    else:
        span = f"Series {group.start_index}-{group.end_index}"
    r = group.record
    return f"{span}: T={r.timepoints} C={r.channels} Z={r.z_stacks} ({r.width} x {r.height})"


def format_groups(result: GroupingResult) -> list[str]:
    """Render a grouping result as summary lines."""
    if result.no_series:
        return ["No series found"]
    return [format_group(g) for g in result]
