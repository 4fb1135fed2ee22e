"""
Parse transition listings produced by `zdump`.

Verbose form (`zdump -V`), one line per probe with the zone column already removed:

    Sun Mar 31 00:59:59 2024 UT = Sun Mar 31 00:59:59 2024 GMT isdst=0 gmtoff=0
    Sun Mar 31 01:00:00 2024 UT = Sun Mar 31 02:00:00 2024 BST isdst=1 gmtoff=3600

Fallback form (`zdump UTC <zone>`), used for zones without transitions:

    Fri Oct 18 13:59:00 2024 UTC
    Fri Oct 18 19:29:00 2024 +0530
    <blank>

Listings stop at the first line zdump could not represent: 32-bit overflow markers
or any line too short to carry a transition.
"""

from __future__ import annotations
import re
from dataclasses import dataclass

from errors import TzListingError
from logging_config import get_logger

logger = get_logger(__name__)

MONTH_NAMES = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']

# Lines outside the 32-bit tm_year range, or where localtime() gave up
OVERFLOW_PATTERN = re.compile(r'failed|-2147481748|2147485547')

# weekday, 4 UTC fields, 'UT', '=', weekday, 4 local fields, abbreviation, isdst=N
MIN_VERBOSE_TOKENS = 14
MIN_FALLBACK_TOKENS = 6

MS_PER_MINUTE = 60_000


@dataclass
class Transition:
    time: int | None    # UTC milliseconds, None for a zone that never changes
    abbr: str
    offset: int | float # minutes, utc - local
    isdst: bool


def days_from_civil(year: int, month: int, day: int) -> int:
    """Days since 1970-01-01 in the proleptic Gregorian calendar, for any year"""
    year -= month <= 2
    era = year // 400
    yoe = year - era * 400
    doy = (153 * (month + (-3 if month > 2 else 9)) + 2) // 5 + day - 1
    doe = yoe * 365 + yoe // 4 - yoe // 100 + doy
    return era * 146097 + doe - 719468


def parse_instant(fields: list[str]) -> int:
    """Convert ['Dec', '1', '00:01:14', '1847'] into milliseconds since the epoch"""
    if len(fields) != 4:
        raise ValueError(f'Expected 4 date fields, got {fields}')
    month, day, time, year = fields
    if month not in MONTH_NAMES:
        raise ValueError(f'Unknown month "{month}"')
    hms = [int(x) for x in time.split(':')]
    if len(hms) != 3:
        raise ValueError(f'Malformed time "{time}"')
    hour, minute, second = hms
    days = days_from_civil(int(year), MONTH_NAMES.index(month) + 1, int(day))
    seconds = ((days * 24 + hour) * 60 + minute) * 60 + second
    return seconds * 1000


def get_offset(utc: int, local: int) -> int | float:
    offset = (utc - local) / MS_PER_MINUTE
    return int(offset) if offset.is_integer() else offset


def parse_verbose_line(line: str) -> Transition | None:
    """Decode one `zdump -V` line, returning None if it marks the end of usable data"""
    if OVERFLOW_PATTERN.search(line):
        return None
    parts = line.split()
    if len(parts) < MIN_VERBOSE_TOKENS or not parts[13].startswith('isdst='):
        return None
    try:
        utc = parse_instant(parts[1:5])
        local = parse_instant(parts[8:12])
        isdst = int(parts[13][6:])
    except ValueError:
        logger.debug('listing_line_unparsed', line=line)
        return None
    return Transition(utc, parts[12], get_offset(utc, local), bool(isdst))


def parse_fallback(lines: list[str]) -> Transition | None:
    utc_parts = lines[0].split()
    local_parts = lines[1].split()
    if len(utc_parts) < MIN_FALLBACK_TOKENS or len(local_parts) < MIN_FALLBACK_TOKENS:
        return None
    try:
        utc = parse_instant(utc_parts[1:5])
        local = parse_instant(local_parts[1:5])
    except ValueError:
        return None
    return Transition(None, local_parts[5], get_offset(utc, local), False)


def parse_listing(text: str, name: str = None) -> list[Transition]:
    """
    Decode a zone's listing into transitions, oldest first.

    Raises TzListingError if nothing usable was found.
    """
    lines = text.split('\n')
    transitions = []
    for line in lines:
        transition = parse_verbose_line(line)
        if transition is None:
            break
        transitions.append(transition)

    # Two data lines plus the blank left by the trailing newline
    if not transitions and len(lines) == 3 and not lines[2] and lines[0] and lines[1]:
        transition = parse_fallback(lines)
        if transition:
            transitions.append(transition)

    if not transitions:
        raise TzListingError(f'No usable transitions in listing for {name or "zone"}')
    logger.debug('listing_parsed', zone=name, transitions=len(transitions))
    return transitions
