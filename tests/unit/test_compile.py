"""Unit tests for the compile pipeline and CLI."""

from __future__ import annotations

from pathlib import Path

import pytest

import compile as tzcompile
from errors import TzEncodingError, TzListingError
from fixture_paths import read_fixture
from store import DataZone, LinkZone, load_store, write_store
from unpacker import TzUnpacker

LONDON = read_fixture("europe_london.txt")
KOLKATA = read_fixture("asia_kolkata_fallback.txt")


def write_source_tree(root: Path) -> Path:
    source = root / "tzdb"
    source.mkdir()
    (source / "version").write_text("2024a\n")
    (source / "europe").write_text("Link\tEurope/London\tGB\n")
    (source / "asia").write_text("Link\tAsia/Kolkata\tAsia/Calcutta\n")
    return source


def fake_compile_sources(names: list[str]):
    def compile_sources(source_files, output_dir, config=None):
        for name in names:
            path = Path(output_dir) / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(b"TZif2" + bytes(40))
    return compile_sources


def fake_dump_zones(listings: dict[str, str]):
    def dump_zones(paths, config=None):
        assert set(paths) == set(listings)
        return dict(listings)
    return dump_zones


def test_compile_zone_produces_data_zone() -> None:
    """A listing compiles to dictionaries and one code per segment."""
    zone = tzcompile.compile_zone("Europe/London", LONDON)

    assert isinstance(zone, DataZone)
    assert zone.abbrs == ["LMT", "GMT", "BST"]
    assert zone.offsets == [1.25, 0, -60]
    assert len(zone.data) == 6


def test_compile_zone_propagates_listing_errors() -> None:
    """Unusable listings fail the zone."""
    with pytest.raises(TzListingError):
        tzcompile.compile_zone("Broken/Zone", "garbage\n")


def test_build_store_sorts_zones_and_links_aliases() -> None:
    """Declared links are stored as pointers, zones sorted by name."""
    listings = {"GB": LONDON, "Europe/London": LONDON, "Asia/Kolkata": KOLKATA}

    store = tzcompile.build_store("2024a", listings, {"GB": "Europe/London"})

    assert [z.name for z in store.zones] == ["Asia/Kolkata", "Europe/London", "GB"]
    assert store.zones[2] == LinkZone("GB", "Europe/London")


def test_build_store_dedupe_links_identical_listings() -> None:
    """With dedupe, identical listings share one data zone."""
    listings = {"Europe/London": LONDON, "Europe/Jersey": LONDON, "Asia/Kolkata": KOLKATA}

    store = tzcompile.build_store("2024a", listings, dedupe=True)

    by_name = {z.name: z for z in store.zones}
    assert by_name["Europe/London"] == LinkZone("Europe/London", "Europe/Jersey")
    assert isinstance(by_name["Europe/Jersey"], DataZone)


def test_build_store_aborts_on_any_zone_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    """One failing zone fails the whole build."""
    def failing_encode(name, segments):
        raise TzEncodingError(f"{name}: more than 32 distinct offsets")

    monkeypatch.setattr(tzcompile, "encode_zone", failing_encode)

    with pytest.raises(TzEncodingError):
        tzcompile.build_store("2024a", {"Europe/London": LONDON})


def test_compile_database_writes_store(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """The full pipeline writes a versioned store readable by the unpacker."""
    source = write_source_tree(tmp_path)
    listings = {"Europe/London": LONDON, "GB": LONDON, "Asia/Kolkata": KOLKATA}
    monkeypatch.setattr(tzcompile, "compile_sources", fake_compile_sources(list(listings)))
    monkeypatch.setattr(tzcompile, "dump_zones", fake_dump_zones(listings))

    path = tzcompile.compile_database(str(source), str(tmp_path / "build"))

    assert path == tmp_path / "build" / "2024a.json"
    unpacker = TzUnpacker(load_store(path))
    assert unpacker.get_zone("gb").segments == unpacker.get_zone("Europe/London").segments


def test_compile_database_keeps_previous_store_on_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """A failed run leaves the last good artifact in place."""
    source = write_source_tree(tmp_path)
    build = tmp_path / "build"
    build.mkdir()
    (build / "2024a.json").write_text("previous")
    listings = {"Europe/London": "garbage\n"}
    monkeypatch.setattr(tzcompile, "compile_sources", fake_compile_sources(list(listings)))
    monkeypatch.setattr(tzcompile, "dump_zones", fake_dump_zones(listings))

    with pytest.raises(TzListingError):
        tzcompile.compile_database(str(source), str(build))

    assert (build / "2024a.json").read_text() == "previous"


def test_cli_lookup_prints_segment(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """The lookup command shows the rule in effect at the instant."""
    store = tzcompile.build_store("2024a", {"Europe/London": LONDON})

    path = write_store(store, tmp_path)

    assert tzcompile.main(["lookup", str(path), "europe/london", "--at", "2024-07-01T12:00:00"]) == 0
    assert "BST" in capsys.readouterr().out


def test_cli_zones_matches_partial_names(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Zone listing accepts loose name fragments."""
    path = write_store(tzcompile.build_store("2024a", {"Europe/London": LONDON, "Asia/Kolkata": KOLKATA}), tmp_path)

    assert tzcompile.main(["zones", str(path), "europe/lon"]) == 0
    assert capsys.readouterr().out.split() == ["Europe/London"]


def test_cli_reports_unknown_zone(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Unknown zones exit with status 1."""
    path = write_store(tzcompile.build_store("2024a", {"Asia/Kolkata": KOLKATA}), tmp_path)

    assert tzcompile.main(["dump", str(path), "Mars/Olympus"]) == 1
    assert "not found" in capsys.readouterr().err


def test_cli_without_command_prints_help(capsys: pytest.CaptureFixture[str]) -> None:
    """Running with no subcommand is a usage error."""
    assert tzcompile.main([]) == 2
    assert "usage" in capsys.readouterr().out
