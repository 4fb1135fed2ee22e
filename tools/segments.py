"""
Collapse raw transitions into validity segments.

A zone's segments partition time: the first starts at -inf (None), the last never ends (None)
and each segment starts where its predecessor ends. Adjacent segments always differ in
abbreviation or offset.
"""

from __future__ import annotations
from dataclasses import dataclass

from errors import TzListingError
from listing import Transition


@dataclass(frozen=True)
class Segment:
    abbr: str
    offset: int | float
    isdst: bool
    from_: int | None  # None means unbounded
    until: int | None  # None means unbounded

    def contains(self, instant: int) -> bool:
        if self.from_ is not None and instant < self.from_:
            return False
        return self.until is None or instant < self.until


def collapse_transitions(transitions: list[Transition]) -> list[Segment]:
    """
    Walk transitions newest to oldest, merging runs which share abbreviation and offset.

    Each segment ends at the time of the transition following its run; the newest is open-ended.
    A merged run keeps the DST flag of its oldest contributor.
    """
    if not transitions:
        raise TzListingError('Cannot build segments from an empty transition list')

    # [abbr, offset, isdst, until], newest first
    runs = []
    for i in range(len(transitions) - 1, -1, -1):
        tt = transitions[i]
        if runs and runs[-1][0] == tt.abbr and runs[-1][1] == tt.offset:
            runs[-1][2] = tt.isdst
            continue
        until = None if i == len(transitions) - 1 else transitions[i + 1].time
        runs.append([tt.abbr, tt.offset, tt.isdst, until])

    segments = []
    from_ = None
    for abbr, offset, isdst, until in reversed(runs):
        segments.append(Segment(abbr, offset, isdst, from_, until))
        from_ = until
    return segments


def check_partition(segments: list[Segment]) -> list[str]:
    """Return descriptions of any broken segment invariants, empty if sound"""
    problems = []
    if not segments:
        return ['no segments']
    if segments[0].from_ is not None:
        problems.append(f'first segment starts at {segments[0].from_}')
    if segments[-1].until is not None:
        problems.append(f'last segment ends at {segments[-1].until}')
    for i, (seg, next_seg) in enumerate(zip(segments, segments[1:])):
        if seg.until is None or seg.until != next_seg.from_:
            problems.append(f'gap between segments {i} and {i+1}')
        elif next_seg.until is not None and next_seg.until <= seg.until:
            problems.append(f'segment {i+1} out of order')
        if (seg.abbr, seg.offset) == (next_seg.abbr, next_seg.offset):
            problems.append(f'segments {i} and {i+1} both {seg.abbr} {seg.offset}')
    return problems
