from __future__ import annotations

from typing import Iterable, Optional, Union

from ..core.enums import AttendanceStatus
from .model import AttendanceCounts, AttendanceEntry


def aggregate(
    entries: Iterable[Union[AttendanceEntry, AttendanceStatus, None]],
    total: int,
) -> AttendanceCounts:
    """Tally marked statuses; ``total`` is the snapshot size.

    Unmarked snapshot members (None) count toward ``total`` only and show up
    as ``AttendanceCounts.unmarked``.
    """
    tally = {s: 0 for s in AttendanceStatus}
    for e in entries:
        status = e.status if isinstance(e, AttendanceEntry) else e
        if status is not None:
            tally[AttendanceStatus(status)] += 1

    return AttendanceCounts(
        present=tally[AttendanceStatus.PRESENT],
        absent=tally[AttendanceStatus.ABSENT],
        late=tally[AttendanceStatus.LATE],
        excused=tally[AttendanceStatus.EXCUSED],
        total=int(total),
    )


def combine(counts: Iterable[AttendanceCounts]) -> AttendanceCounts:
    """Sum counts across sessions."""
    present = absent = late = excused = total = 0
    for c in counts:
        present += c.present
        absent += c.absent
        late += c.late
        excused += c.excused
        total += c.total
    return AttendanceCounts(present=present, absent=absent, late=late, excused=excused, total=total)


def attendance_rate(counts: AttendanceCounts, slots: Optional[int] = None) -> float:
    """(present + late) / slots as a percentage, rounded to 2 decimals.

    ``slots`` defaults to the number of marked entries; 0 slots gives 0.0.
    """
    slots = counts.marked if slots is None else int(slots)
    if slots <= 0:
        return 0.0
    return round((counts.present + counts.late) / slots * 100, 2)
