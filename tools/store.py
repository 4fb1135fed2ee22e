"""
Packed store document.

One JSON file per database release:

    {"version": "2024a", "zones": [
        {"name": "Europe/London", "abbrs": [...], "offsets": [...], "untils": [...], "data": [...]},
        {"name": "GB", "link": "Europe/London"}
    ]}

Records are either data zones or links. The decoder accepts exactly one of the two shapes
per record and checks every packed code against its dictionaries.
"""

from __future__ import annotations
import json
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from errors import TzStoreError
from logging_config import get_logger

logger = get_logger(__name__)

LATEST_FILENAME = 'latest.json'
DATA_FIELDS = ('abbrs', 'offsets', 'untils', 'data')


@dataclass
class DataZone:
    name: str
    abbrs: list[str]
    offsets: list[int | float]
    untils: list[int | float | None]  # duration buckets, hours
    data: list[int]

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'abbrs': self.abbrs,
            'offsets': self.offsets,
            'untils': self.untils,
            'data': self.data,
        }


@dataclass
class LinkZone:
    name: str
    link: str

    def to_dict(self) -> dict:
        return {'name': self.name, 'link': self.link}


ZoneRecord = DataZone | LinkZone


def zone_sort_key(name: str):
    return name.lower(), name


@dataclass
class PackedStore:
    version: str
    zones: list[ZoneRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'version': self.version,
            'zones': [zone.to_dict() for zone in self.zones],
        }

    @classmethod
    def from_dict(cls, doc: dict) -> PackedStore:
        if not isinstance(doc, dict):
            raise TzStoreError('Store document must be an object')
        version = doc.get('version')
        if not isinstance(version, str):
            raise TzStoreError('Store document has no version string')
        zones = doc.get('zones')
        if not isinstance(zones, list):
            raise TzStoreError('Store document has no zone list')
        return cls(version, [decode_record(rec) for rec in zones])

    def dumps(self) -> str:
        return json.dumps(self.to_dict(), separators=(',', ':'))

    @classmethod
    def loads(cls, text: str) -> PackedStore:
        try:
            doc = json.loads(text)
        except json.JSONDecodeError as e:
            raise TzStoreError(f'Invalid store JSON: {e}') from e
        return cls.from_dict(doc)


def _check_list(rec: dict, key: str, types: tuple) -> list:
    values = rec[key]
    if not isinstance(values, list):
        raise TzStoreError(f'{rec["name"]}: "{key}" must be a list')
    for v in values:
        # bool is an int subclass but never a valid value here
        if isinstance(v, bool) or not isinstance(v, types):
            raise TzStoreError(f'{rec["name"]}: bad value {v!r} in "{key}"')
    return values


def check_data_zone(zone: DataZone):
    """Verify every code indexes into the zone's dictionaries"""
    # Imported here, encoder depends on this module for DataZone
    from encoder import unpack_code

    if not zone.data:
        raise TzStoreError(f'{zone.name}: no segment data')
    last = len(zone.data) - 1
    for i, code in enumerate(zone.data):
        if code < 0:
            raise TzStoreError(f'{zone.name}: negative code {code}')
        c = unpack_code(code)
        if (c.abbr_index >= len(zone.abbrs) or c.offset_index >= len(zone.offsets)
                or c.duration_index >= len(zone.untils)):
            raise TzStoreError(f'{zone.name}: code {code} out of dictionary range')
        # Only the newest segment is open-ended
        if (zone.untils[c.duration_index] is None) != (i == last):
            raise TzStoreError(f'{zone.name}: segment {i} has a misplaced open end')


def decode_record(rec: dict) -> ZoneRecord:
    if not isinstance(rec, dict) or not isinstance(rec.get('name'), str):
        raise TzStoreError(f'Zone record without a name: {rec!r}')
    name = rec['name']
    has_link = 'link' in rec
    data_fields = [f for f in DATA_FIELDS if f in rec]
    if has_link and data_fields:
        raise TzStoreError(f'{name}: record has both link and data fields')
    if has_link:
        if not isinstance(rec['link'], str):
            raise TzStoreError(f'{name}: link must be a zone name')
        return LinkZone(name, rec['link'])
    if len(data_fields) != len(DATA_FIELDS):
        missing = [f for f in DATA_FIELDS if f not in rec]
        raise TzStoreError(f'{name}: record missing {", ".join(missing)}')
    zone = DataZone(
        name,
        _check_list(rec, 'abbrs', (str,)),
        _check_list(rec, 'offsets', (int, float)),
        _check_list(rec, 'untils', (int, float, type(None))),
        _check_list(rec, 'data', (int,)),
    )
    check_data_zone(zone)
    return zone


def load_store(path: str | os.PathLike) -> PackedStore:
    try:
        with open(path, encoding='utf-8') as f:
            text = f.read()
    except OSError as e:
        raise TzStoreError(f'Cannot read store {path}: {e}') from e
    store = PackedStore.loads(text)
    logger.info('store_loaded', path=str(path), version=store.version, zones=len(store.zones))
    return store


def write_store(store: PackedStore, build_dir: str | os.PathLike) -> Path:
    """
    Write `<version>.json` into build_dir and refresh `latest.json`.

    Output goes to a temporary file first so an existing store is only ever replaced whole.
    """
    build_dir = Path(build_dir)
    build_dir.mkdir(parents=True, exist_ok=True)
    path = build_dir / f'{store.version}.json'
    text = store.dumps()
    fd, tmpname = tempfile.mkstemp(dir=build_dir, prefix='.tmp-', suffix='.json')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(text)
        os.replace(tmpname, path)
    except BaseException:
        os.unlink(tmpname)
        raise

    fd, tmpname = tempfile.mkstemp(dir=build_dir, prefix='.tmp-', suffix='.json')
    os.close(fd)
    try:
        shutil.copyfile(path, tmpname)
        os.replace(tmpname, build_dir / LATEST_FILENAME)
    except BaseException:
        os.unlink(tmpname)
        raise

    logger.info('store_written', path=str(path), version=store.version, zones=len(store.zones))
    return path
