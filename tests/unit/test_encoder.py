"""Unit tests for dictionary encoding of segments."""

from __future__ import annotations

import pytest

from encoder import (
    ABBREVIATION_CAPACITY,
    DURATION_CAPACITY,
    OFFSET_CAPACITY,
    encode_zone,
    from_hours,
    get_durations,
    pack_code,
    to_hours,
    unpack_code,
)
from errors import TzEncodingError
from segments import Segment

HOUR = 3_600_000


def make_segments(rules: list[tuple[str, int, bool]], step_hours: int = 10) -> list[Segment]:
    """Build a partition with one segment per rule, each step_hours long."""
    segments = []
    from_ = None
    for i, (abbr, offset, isdst) in enumerate(rules):
        until = None if i == len(rules) - 1 else (i + 1) * step_hours * HOUR
        segments.append(Segment(abbr, offset, isdst, from_, until))
        from_ = until
    return segments


def test_pack_code_places_fields_in_documented_bits() -> None:
    """Abbreviation from bit 15, offset bits 10-14, DST bit 9, bucket bits 0-8."""
    code = pack_code(3, 17, True, 300)

    assert code == (3 << 15) | (17 << 10) | (1 << 9) | 300
    decoded = unpack_code(code)
    assert (decoded.abbr_index, decoded.offset_index, decoded.isdst, decoded.duration_index) == (3, 17, True, 300)


def test_pack_code_refuses_out_of_range_indexes() -> None:
    """Indexes never wrap into neighbouring fields."""
    with pytest.raises(TzEncodingError):
        pack_code(0, OFFSET_CAPACITY, False, 0)
    with pytest.raises(TzEncodingError):
        pack_code(0, 0, False, DURATION_CAPACITY)
    with pytest.raises(TzEncodingError):
        pack_code(ABBREVIATION_CAPACITY, 0, False, 0)


def test_durations_are_hours_between_boundaries() -> None:
    """First bucket is hours since epoch, later buckets are gaps, open end is None."""
    segments = make_segments([("A", 0, False), ("B", 60, True), ("A", 0, False)])

    assert get_durations(segments) == [10, 10, None]


def test_to_hours_keeps_fractional_gaps_exact() -> None:
    """Non-hour boundaries survive the trip through hours."""
    ms = -3_824_495_925_000

    assert from_hours(to_hours(ms)) == ms
    assert to_hours(7 * HOUR) == 7
    assert isinstance(to_hours(7 * HOUR), int)


def test_encode_zone_builds_first_seen_dictionaries() -> None:
    """Dictionaries hold distinct values in first-seen order."""
    segments = make_segments([("STD", 0, False), ("DST", -60, True), ("STD", 0, False), ("DST", -60, True)])

    zone = encode_zone("Test/Zone", segments)

    assert zone.name == "Test/Zone"
    assert zone.abbrs == ["STD", "DST"]
    assert zone.offsets == [0, -60]
    assert zone.untils == [10, None]
    assert len(zone.data) == len(segments)
    assert unpack_code(zone.data[1]).isdst is True


def test_encode_zone_fails_when_offsets_overflow() -> None:
    """More distinct offsets than the 5-bit field holds is a compile failure."""
    rules = [(f"Z{i}", i, False) for i in range(OFFSET_CAPACITY + 1)]

    with pytest.raises(TzEncodingError, match="offsets"):
        encode_zone("Test/Offsets", make_segments(rules))


def test_encode_zone_fails_when_duration_buckets_overflow() -> None:
    """More distinct gaps than the 9-bit field holds is a compile failure."""
    segments = []
    until = 0
    for i in range(DURATION_CAPACITY + 2):
        from_ = None if i == 0 else until
        until = until + (i + 1) * HOUR
        abbr = "A" if i % 2 else "B"
        segments.append(Segment(abbr, 0 if i % 2 else 60, False, from_, until))
    segments[-1] = Segment(segments[-1].abbr, segments[-1].offset, False, segments[-1].from_, None)

    with pytest.raises(TzEncodingError, match="duration buckets"):
        encode_zone("Test/Durations", segments)


def test_encode_zone_fails_when_abbreviations_overflow() -> None:
    """Abbreviation count is bounded too."""
    rules = [(f"A{i}", i % 2, False) for i in range(ABBREVIATION_CAPACITY + 1)]

    with pytest.raises(TzEncodingError, match="abbreviations"):
        encode_zone("Test/Abbrs", make_segments(rules))
