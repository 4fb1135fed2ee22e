"""
Decode a packed store and answer zone queries.

Zone names are matched case-insensitively. Data zones are decoded on first use and the
result is shared by every later lookup, including lookups through links.
"""

from __future__ import annotations
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone

from encoder import from_hours, unpack_code
from errors import TzAliasError
from logging_config import get_logger
from segments import Segment
from store import DataZone, LinkZone, PackedStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class UnpackedZone:
    name: str
    segments: tuple[Segment, ...]


@dataclass
class UnpackedStore:
    version: str
    zones: list[UnpackedZone] = field(default_factory=list)
    index: dict[str, UnpackedZone] = field(default_factory=dict)

    def get(self, name: str) -> UnpackedZone | None:
        return self.index.get(name.lower())


def to_millis(instant: int | datetime | None) -> int:
    if instant is None:
        instant = datetime.now(timezone.utc)
    if isinstance(instant, datetime):
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        delta = instant - datetime(1970, 1, 1, tzinfo=timezone.utc)
        return (delta.days * 86400 + delta.seconds) * 1000 + delta.microseconds // 1000
    return instant


def find_segment(segments: tuple[Segment, ...], instant: int) -> Segment | None:
    """First segment ending after instant; segments are ordered by end time"""
    for seg in segments:
        if seg.until is None or instant < seg.until:
            return seg
    return None


class TzUnpacker:
    """Query engine over one loaded PackedStore"""

    def __init__(self, store: PackedStore):
        self.store = store
        self.version = store.version
        self._index = {zone.name.lower(): zone for zone in store.zones}
        self._cache: dict[str, tuple[Segment, ...]] = {}
        self._lock = threading.Lock()

    def has_zone(self, name: str) -> bool:
        return name is not None and name.lower() in self._index

    def list_zones(self) -> list[str]:
        return [zone.name for zone in self.store.zones]

    def _resolve(self, name: str) -> DataZone | None:
        record = self._index.get(name.lower())
        if record is None or isinstance(record, DataZone):
            return record
        target = self._index.get(record.link.lower())
        if target is None:
            logger.warning('link_target_missing', zone=record.name, link=record.link)
            return None
        if isinstance(target, LinkZone):
            logger.warning('link_chain', zone=record.name, link=record.link, next=target.link)
            return None
        return target

    def _segments(self, zone: DataZone) -> tuple[Segment, ...]:
        segments = self._cache.get(zone.name)
        if segments is not None:
            return segments
        with self._lock:
            segments = self._cache.get(zone.name)
            if segments is None:
                segments = self.unpack_zone(zone).segments
                self._cache[zone.name] = segments
        return segments

    def get_zone(self, name: str) -> UnpackedZone | None:
        """
        Look up a zone or link by name.

        The result carries the requested record's name, so a link reports its own name
        alongside its target's segments. Returns None for unknown names and broken links.
        """
        if name is None:
            return None
        zone = self._resolve(name)
        if zone is None:
            return None
        record = self._index[name.lower()]
        return UnpackedZone(record.name, self._segments(zone))

    def get_zone_entry(self, name: str, instant: int | datetime | None = None) -> Segment | None:
        """Segment in effect for zone at instant (milliseconds or datetime, default now)"""
        zone = self.get_zone(name)
        if zone is None:
            return None
        return find_segment(zone.segments, to_millis(instant))

    @staticmethod
    def unpack_zone(zone: DataZone) -> UnpackedZone:
        segments = []
        prev_until = None
        for i, code in enumerate(zone.data):
            c = unpack_code(code)
            bucket = zone.untils[c.duration_index]
            if bucket is None:
                until = None
            elif i == 0:
                until = from_hours(bucket)
            else:
                until = prev_until + from_hours(bucket)
            segments.append(Segment(
                zone.abbrs[c.abbr_index],
                zone.offsets[c.offset_index],
                c.isdst,
                prev_until,
                until,
            ))
            prev_until = until
        return UnpackedZone(zone.name, tuple(segments))

    @staticmethod
    def unpack_file(store: PackedStore) -> UnpackedStore:
        """
        Decode every zone up front.

        Links share their target's segment tuple. Raises TzAliasError for a link whose
        target is missing or is itself a link.
        """
        unpacked = UnpackedStore(store.version)
        data_zones = {}
        for zone in store.zones:
            if isinstance(zone, DataZone):
                obj = TzUnpacker.unpack_zone(zone)
                data_zones[zone.name.lower()] = obj
                unpacked.zones.append(obj)
                unpacked.index[zone.name.lower()] = obj
        for zone in store.zones:
            if isinstance(zone, LinkZone):
                target = data_zones.get(zone.link.lower())
                if target is None:
                    raise TzAliasError(f'{zone.name} links to {zone.link}, which is not a data zone')
                obj = UnpackedZone(zone.name, target.segments)
                unpacked.zones.append(obj)
                unpacked.index[zone.name.lower()] = obj
        return unpacked
