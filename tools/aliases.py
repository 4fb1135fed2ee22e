"""
Link (alias) handling.

Links come from `Link`/`L` lines in the zone source files:

    Link  Europe/London  GB
    L Europe/London GB

A compiled zone named as a link is stored as a pointer to its target instead of carrying
its own data. Targets must be data zones: links are never chained.
"""

from __future__ import annotations
import os

from errors import TzAliasError
from logging_config import get_logger
from store import LinkZone, zone_sort_key

logger = get_logger(__name__)


class LinkMap(dict):
    """Maps link name -> target zone name"""

    def add(self, target: str, name: str):
        if name in self:
            logger.info('link_duplicate', link=name, target=target, kept=self[name])
            return
        self[name] = target

    def load(self, filename: str | os.PathLike):
        with open(filename, encoding='utf-8') as f:
            for line in f:
                line, _, _ = line.partition('#')
                fields = line.split()
                if not fields:
                    continue
                if fields[0] in ('L', 'Link') and len(fields) >= 3:
                    self.add(fields[1], fields[2])


def load_links(filenames: list[str | os.PathLike]) -> LinkMap:
    links = LinkMap()
    for filename in filenames:
        links.load(filename)
    return links


def find_duplicates(listings: dict[str, str], links: dict[str, str] = None) -> dict[str, str]:
    """
    Group zones whose listings are identical.

    Returns a link map sending every member of a group to the group's canonical zone,
    the first by name which isn't already a declared link.
    """
    links = links or {}
    groups = {}
    for name in sorted(listings, key=zone_sort_key):
        groups.setdefault(listings[name], []).append(name)

    found = {}
    for names in groups.values():
        candidates = [n for n in names if n not in links]
        if len(candidates) < 2:
            continue
        canonical = candidates[0]
        for name in candidates[1:]:
            found[name] = canonical
    return found


def merge_links(links: dict[str, str], duplicates: dict[str, str]) -> LinkMap:
    """
    Combine declared links with detected duplicates, keeping every link one hop deep.

    A declared link whose target was itself folded into a duplicate group is redirected
    to that group's canonical zone, which has identical data.
    """
    merged = LinkMap()
    for name, target in links.items():
        merged[name] = duplicates.get(target, target)
    for name, target in duplicates.items():
        merged.add(target, name)
    return merged


def resolve_aliases(names: list[str], links: dict[str, str]) -> dict[str, LinkZone]:
    """
    Pick out the compiled zones which are links.

    Returns name -> LinkZone for each of them; the remaining names are compiled as data zones.
    Raises TzAliasError if a target was not compiled or is itself a link.
    """
    compiled = set(names)
    result = {}
    for name in names:
        target = links.get(name)
        if target is None:
            continue
        if target not in compiled:
            raise TzAliasError(f'{name} links to {target}, which was not compiled')
        if target in links:
            raise TzAliasError(f'{name} links to {target}, which links to {links[target]}')
        result[name] = LinkZone(name, target)
    return result
