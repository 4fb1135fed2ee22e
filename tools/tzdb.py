"""
IANA timezone database utilities
"""

import os
import re

# Source files passed to zic, in this order
TZDATA_FILE_LIST = [
    'africa',
    'antarctica',
    'asia',
    'australasia',
    'etcetera',
    'europe',
    'northamerica',
    'southamerica',
    'backward',
]

# File containing compact textual source of IANA database, with version
TZDATA_ZI = 'tzdata.zi'

TZIF_MAGIC = b'TZif'


def get_source_files(source_path: str) -> list[str]:
    """Database source files present in source_path"""
    paths = (os.path.join(source_path, name) for name in TZDATA_FILE_LIST)
    return [p for p in paths if os.path.isfile(p)]


def get_tzdb_version(path: str) -> str:
    for name in ['version', TZDATA_ZI]:
        filename = os.path.join(path, name)
        if not os.path.exists(filename):
            continue
        with open(filename) as f:
            # Either '2024a' or '# version 2024a'
            return f.readline().strip().rpartition(' ')[2]
    return '0000x'


def is_tzif(filename: str) -> bool:
    with open(filename, 'rb') as f:
        return f.read(4) == TZIF_MAGIC


class ZoneList(list):
    """Names of all compiled zones below zoneinfo_path, sorted"""

    def __init__(self, zoneinfo_path: str):
        self.path = zoneinfo_path
        zones = set()
        for wroot, _, wnames in os.walk(zoneinfo_path):
            for name in wnames:
                if '.' in name: # tzdata package has non-TZif files here
                    continue
                path = os.path.join(wroot, name)
                if not is_tzif(path):
                    continue
                zone = os.path.relpath(path, zoneinfo_path).replace('\\', '/')
                zones.add(zone)
        self.extend(sorted(zones))

    def get_path(self, zone: str) -> str:
        return os.path.join(self.path, zone)

    def find_matches(self, name: str) -> list[str]:
        return find_matches(self, name)


def find_matches(zones: list[str], name: str) -> list[str]:
    """Zones matching name, ignoring case and punctuation; an exact match wins outright"""
    def get_cmpstr(s: str):
        return re.sub(r'[^a-zA-Z]', '', s.lower())
    matches = []
    cmp_name = get_cmpstr(name)
    for z in zones:
        cmpz = get_cmpstr(z)
        if cmpz == cmp_name:
            return [z] # Exact match
        if cmpz.startswith(cmp_name):
            matches.append(z) # Partial match
    return matches
