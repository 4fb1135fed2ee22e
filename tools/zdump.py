"""
Run the external zone compiler and transition dumper.

`zic` writes compiled zones into a shared output tree so is run one source file at a time.
`zdump` invocations are independent and run on a bounded thread pool.
"""

from __future__ import annotations
import os
import subprocess
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait

from config import TzConfig
from errors import TzToolError
from logging_config import get_logger

logger = get_logger(__name__)


def run_tool(args: list[str], cwd: str = None) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(args, cwd=cwd, capture_output=True, text=True, check=False)
    except FileNotFoundError as e:
        raise TzToolError(f'{args[0]} not found') from e


def compile_sources(source_files: list[str], output_dir: str, config: TzConfig = None):
    """Compile each source file into output_dir, strictly in sequence"""
    config = config or TzConfig()
    os.makedirs(output_dir, exist_ok=True)
    for filename in source_files:
        result = run_tool([config.zic, '-d', output_dir, filename])
        if result.returncode != 0:
            raise TzToolError(f'{config.zic} failed on {filename}: {result.stderr.strip()}')
        logger.info('zic_compiled', source=filename)


def strip_zone_column(output: str) -> str:
    """zdump prefixes each line with the zone argument and two spaces"""
    return '\n'.join(line.partition('  ')[2] for line in output.split('\n'))


def dump_zone(path: str, config: TzConfig = None) -> str:
    """
    Transition listing for one compiled zone, zone column removed.

    Falls back to a single-instant dump when the verbose listing fails or is empty,
    as it is for zones that never change.
    """
    config = config or TzConfig()
    result = run_tool([config.zdump, '-V', path])
    if result.returncode == 0 and result.stdout:
        return strip_zone_column(result.stdout)

    logger.debug('dump_retry', zone=path, returncode=result.returncode)
    result = run_tool([config.zdump, 'UTC', path])
    if result.returncode != 0 or not result.stdout:
        raise TzToolError(f'{config.zdump} failed on {path}: {result.stderr.strip()}')
    return strip_zone_column(result.stdout)


def dump_zones(paths: dict[str, str], config: TzConfig = None) -> dict[str, str]:
    """
    Dump many zones concurrently, at most config.max_dumps at a time.

    paths maps zone name -> compiled file. The first failure cancels pending dumps and is raised.
    """
    config = config or TzConfig()
    listings = {}
    with ThreadPoolExecutor(max_workers=config.max_dumps) as executor:
        futures = {executor.submit(dump_zone, path, config): name for name, path in paths.items()}
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        for future in pending:
            future.cancel()
        for future in done:
            error = future.exception()
            if error is not None:
                raise error
        for future, name in futures.items():
            listings[name] = future.result()
    logger.info('zones_dumped', count=len(listings))
    return listings
