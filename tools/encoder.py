"""
Dictionary-compress a zone's segments into packed integer codes.

Each zone carries three dictionaries (abbreviations, offsets, duration buckets) holding
distinct values in first-seen order. A segment becomes one integer:

    bits 15+    abbreviation index
    bits 10-14  offset index
    bit  9      isdst
    bits 0-8    duration bucket index

Duration buckets are in hours: the first is the end of segment 0 relative to the epoch,
the rest are the gaps between consecutive segment ends. An open-ended segment contributes
the bucket None.
"""

from __future__ import annotations
from dataclasses import dataclass

from errors import TzEncodingError
from segments import Segment
from store import DataZone

ABBR_SHIFT = 15
OFFSET_SHIFT = 10
ISDST_SHIFT = 9

OFFSET_BITS = 5
DURATION_BITS = 9
# Keeps codes below 2**21, within the Unicode code point range
ABBREVIATION_BITS = 6

OFFSET_CAPACITY = 1 << OFFSET_BITS
DURATION_CAPACITY = 1 << DURATION_BITS
ABBREVIATION_CAPACITY = 1 << ABBREVIATION_BITS

MS_PER_HOUR = 3_600_000


@dataclass(frozen=True)
class Code:
    abbr_index: int
    offset_index: int
    isdst: bool
    duration_index: int


def pack_code(abbr_index: int, offset_index: int, isdst: bool, duration_index: int) -> int:
    if not 0 <= abbr_index < ABBREVIATION_CAPACITY:
        raise TzEncodingError(f'Abbreviation index {abbr_index} out of range')
    if not 0 <= offset_index < OFFSET_CAPACITY:
        raise TzEncodingError(f'Offset index {offset_index} out of range')
    if not 0 <= duration_index < DURATION_CAPACITY:
        raise TzEncodingError(f'Duration index {duration_index} out of range')
    return (abbr_index << ABBR_SHIFT) | (offset_index << OFFSET_SHIFT) | (int(isdst) << ISDST_SHIFT) | duration_index


def unpack_code(code: int) -> Code:
    return Code(
        code >> ABBR_SHIFT,
        (code >> OFFSET_SHIFT) & (OFFSET_CAPACITY - 1),
        bool((code >> ISDST_SHIFT) & 1),
        code & (DURATION_CAPACITY - 1),
    )


def to_hours(ms: int) -> int | float:
    if ms % MS_PER_HOUR == 0:
        return ms // MS_PER_HOUR
    return ms / MS_PER_HOUR


def from_hours(hours: int | float) -> int:
    if isinstance(hours, int):
        return hours * MS_PER_HOUR
    return round(hours * MS_PER_HOUR)


def get_durations(segments: list[Segment]) -> list[int | float | None]:
    durations = []
    prev_until = None
    for i, seg in enumerate(segments):
        if seg.until is None:
            durations.append(None)
        elif i == 0:
            durations.append(to_hours(seg.until))
        else:
            durations.append(to_hours(abs(seg.until - prev_until)))
        prev_until = seg.until
    return durations


class Dictionary(list):
    """Distinct values in first-seen order, with a hard capacity"""

    def __init__(self, name: str, zone: str, capacity: int):
        super().__init__()
        self.name = name
        self.zone = zone
        self.capacity = capacity
        self._index = {}

    def add(self, value) -> int:
        # 0 and 0.0 hash alike, key on type too so the stored value stays exact
        key = (type(value), value)
        idx = self._index.get(key)
        if idx is not None:
            return idx
        if len(self) >= self.capacity:
            raise TzEncodingError(
                f'{self.zone}: more than {self.capacity} distinct {self.name}')
        idx = len(self)
        self._index[key] = idx
        self.append(value)
        return idx


def encode_zone(name: str, segments: list[Segment]) -> DataZone:
    """Build the three dictionaries for a zone and pack every segment"""
    abbrs = Dictionary('abbreviations', name, ABBREVIATION_CAPACITY)
    offsets = Dictionary('offsets', name, OFFSET_CAPACITY)
    untils = Dictionary('duration buckets', name, DURATION_CAPACITY)
    data = []
    for seg, duration in zip(segments, get_durations(segments)):
        code = pack_code(abbrs.add(seg.abbr), offsets.add(seg.offset), seg.isdst, untils.add(duration))
        data.append(code)
    return DataZone(name, list(abbrs), list(offsets), list(untils), data)
