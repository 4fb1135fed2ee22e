"""
Compile an IANA database release into a packed store, and query packed stores.

    tzpack compile ./tzdb-2024a ./build
    tzpack zones build/latest.json europe/lon
    tzpack lookup build/latest.json Europe/London --at 2024-07-01T12:00:00
    tzpack dump build/latest.json Asia/Kolkata
"""

from __future__ import annotations
import sys
import tempfile
from argparse import ArgumentParser
from datetime import datetime, timezone, timedelta
from pathlib import Path

from aliases import find_duplicates, load_links, merge_links, resolve_aliases
from config import LOG_LEVELS, TzConfig
from encoder import encode_zone
from errors import TzError
from listing import parse_listing
from logging_config import configure_logging, get_logger
from segments import Segment, collapse_transitions
from store import DataZone, PackedStore, load_store, write_store, zone_sort_key
from tzdb import ZoneList, find_matches, get_source_files, get_tzdb_version
from unpacker import TzUnpacker, to_millis
from zdump import compile_sources, dump_zones

logger = get_logger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def get_timestr(time: int | None, unbounded: str) -> str:
    if time is None:
        return unbounded
    DATETIMEFMT = '%Y %a %b %d %H:%M:%S'
    try:
        dt = EPOCH + timedelta(milliseconds=time)
    except OverflowError:
        return str(time)
    return dt.strftime(DATETIMEFMT)


def format_segment(seg: Segment) -> str:
    dst = 'DST' if seg.isdst else 'STD'
    return (f'{get_timestr(seg.from_, "-inf"):>24}  {get_timestr(seg.until, "+inf"):>24}'
            f'  {seg.abbr:8} {seg.offset:>6} {dst}')


def compile_zone(name: str, text: str) -> DataZone:
    """Parse, collapse and encode one zone listing"""
    transitions = parse_listing(text, name)
    segments = collapse_transitions(transitions)
    zone = encode_zone(name, segments)
    logger.debug('zone_compiled', zone=name, transitions=len(transitions), segments=len(segments))
    return zone


def build_store(version: str, listings: dict[str, str], links: dict[str, str] = None,
                dedupe: bool = False) -> PackedStore:
    """
    Compile every listing, storing links as pointers to their targets.

    listings maps zone name -> zdump listing text. With dedupe, zones whose listings are
    identical are also stored as links. Any failure aborts the whole build.
    """
    links = dict(links or {})
    if dedupe:
        duplicates = find_duplicates(listings, links)
        logger.info('duplicates_found', count=len(duplicates))
        links = merge_links(links, duplicates)

    names = sorted(listings, key=zone_sort_key)
    link_zones = resolve_aliases(names, links)
    zones = []
    for name in names:
        if name in link_zones:
            zones.append(link_zones[name])
        else:
            zones.append(compile_zone(name, listings[name]))
    logger.info('store_built', version=version, zones=len(zones), links=len(link_zones))
    return PackedStore(version, zones)


def compile_database(source_dir: str, build_dir: str = None, version: str = None,
                     dedupe: bool = False, config: TzConfig = None) -> Path:
    """
    Run zic and zdump over a database source tree and write the packed store.

    Returns the path of the written store. Nothing is written unless every zone compiles.
    """
    config = config or TzConfig.from_env()
    build_dir = build_dir or config.build_dir
    version = version or get_tzdb_version(source_dir)
    source_files = get_source_files(source_dir)
    if not source_files:
        raise TzError(f'No database source files found in {source_dir}')

    with tempfile.TemporaryDirectory(prefix='tzpack-') as compiled_dir:
        compile_sources(source_files, compiled_dir, config)
        zone_list = ZoneList(compiled_dir)
        logger.info('zones_found', count=len(zone_list), version=version)
        listings = dump_zones({name: zone_list.get_path(name) for name in zone_list}, config)

    links = load_links(source_files)
    store = build_store(version, listings, links, dedupe)
    return write_store(store, build_dir)


def parse_instant_arg(s: str) -> int:
    if s.lstrip('-').isdigit():
        return int(s)
    return to_millis(datetime.fromisoformat(s))


def compile_command(args) -> int:
    path = compile_database(args.source, args.build, args.version, args.dedupe, args.config)
    print(f'Wrote {path}')
    return 0


def zones_command(args) -> int:
    unpacker = TzUnpacker(load_store(args.store))
    names = unpacker.list_zones()
    if not args.strings:
        print('\n'.join(names))
        return 0
    found = set()
    for s in args.strings:
        matches = find_matches(names, s)
        if not matches:
            raise TzError(f"{s} doesn't match any known timezone names")
        found |= set(matches)
    print('\n'.join(sorted(found, key=zone_sort_key)))
    return 0


def lookup_command(args) -> int:
    unpacker = TzUnpacker(load_store(args.store))
    seg = unpacker.get_zone_entry(args.zone, args.at)
    if seg is None:
        raise TzError(f'Zone "{args.zone}" not found')
    print(format_segment(seg))
    return 0


def dump_command(args) -> int:
    unpacker = TzUnpacker(load_store(args.store))
    zone = unpacker.get_zone(args.zone)
    if zone is None:
        raise TzError(f'Zone "{args.zone}" not found')
    print(f'{zone.name}: {len(zone.segments)} segments')
    for seg in zone.segments:
        print(format_segment(seg))
    return 0


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(prog='tzpack', description='Pack IANA timezone transitions and query packed stores')
    parser.add_argument('--log-level', type=str.upper, choices=LOG_LEVELS, help='Overrides TZPACK_LOG_LEVEL')
    parser.set_defaults(func=None)
    subparsers = parser.add_subparsers()

    sub = subparsers.add_parser('compile', help='Compile a database source tree into a packed store')
    sub.add_argument('source', help='Directory containing the database source files')
    sub.add_argument('build', nargs='?', help='Directory to write the store, overrides TZPACK_BUILD_DIR')
    sub.add_argument('--version', help='Release identifier, defaults to the source "version" file')
    sub.add_argument('--dedupe', action='store_true', help='Store zones with identical transitions as links')
    sub.set_defaults(func=compile_command)

    sub = subparsers.add_parser('zones', help='List zones in a store')
    sub.add_argument('store', help='Packed store file')
    sub.add_argument('strings', nargs='*', help='zone name(s), e.g. "Europe/London", "europe/lon" or "eur" for multiple zones')
    sub.set_defaults(func=zones_command)

    sub = subparsers.add_parser('lookup', help='Show the rule in effect for a zone')
    sub.add_argument('store', help='Packed store file')
    sub.add_argument('zone', help='Zone name, case insensitive')
    sub.add_argument('--at', type=parse_instant_arg, help='Instant as ISO-8601 (UTC unless qualified) or milliseconds, default now')
    sub.set_defaults(func=lookup_command)

    sub = subparsers.add_parser('dump', help='Show every segment for a zone')
    sub.add_argument('store', help='Packed store file')
    sub.add_argument('zone', help='Zone name, case insensitive')
    sub.set_defaults(func=dump_command)

    return parser


def main(argv: list[str] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.func:
        parser.print_help()
        return 2
    try:
        args.config = TzConfig.from_env()
        configure_logging(args.log_level or args.config.log_level)
        return args.func(args)
    except TzError as e:
        logger.error('command_failed', error=str(e))
        print(f'error: {e}', file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
