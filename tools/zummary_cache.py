"""
Directory scanning and the per-directory 'zummary' cache file.

Every benchmark run in a directory leaves '<base>.err' (runlim report) and
'<base>.log' (solver output).  The parsed results are cached in
'<dir>/zummary', one line per run:

     result time real space tlim rlim slim bound
    instance.cnf 10 12.34 12.50 210.3 1000 1000 8000 17

The cache is reused as long as no '.err' or '.log' file is newer than it.

Usage:
    from zummary_cache import zummarize_one

    zummary = zummarize_one(ctx, 'runs/solver-a')
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional, Tuple

from entry_classifier import FixMode, fix_zummary
from runlim_parser import parse_err_file
from solver_log_parser import parse_log_file
from zummary_model import (CACHED_OUTCOMES, Outcome, ZummarizeContext,
                           ZummarizeError, Zummary)
from zummary_tokens import LineTokenizer, atof, atoi

logger = logging.getLogger(__name__)

CACHE_NAME = 'zummary'
HEADER = ['result', 'time', 'real', 'space', 'tlim', 'rlim', 'slim']

# Failure flags restored from the outcome code of a cached line.
CACHED_FLAGS = {
    Outcome.TIMEOUT: 'timeout',
    Outcome.MEMOUT: 'memout',
    Outcome.UNKNOWN: 'unknown',
    Outcome.SIGNAL11: 'signal11',
    Outcome.SIGNAL6: 'signal6',
}


def scan_directory(path) -> List[Tuple[str, bool]]:
    """Sorted (base, has_log) pairs for all '<base>.err' files in 'path'."""
    path = Path(path)
    try:
        names = os.listdir(path)
    except OSError as e:
        raise ZummarizeError(f"can not open directory '{path}': {e}") from e
    pairs = []
    for name in sorted(names):
        if not name.endswith('.err'):
            logger.debug("skipping '%s'", name)
            continue
        base = name[:-len('.err')]
        pairs.append((base, (path / f'{base}.log').is_file()))
    return pairs


def get_mtime(path) -> Optional[float]:
    try:
        mtime = os.stat(path).st_mtime
    except OSError:
        logger.info("can not get modification time of '%s'", path)
        return None
    logger.debug("modification time %.0f of '%s'", mtime, path)
    return mtime


def zummary_needs_update(zummary: Zummary, cache_path) -> bool:
    """True if any report or log with a partner is newer than the cache."""
    ztime = get_mtime(cache_path)
    if ztime is None:
        return True
    directory = Path(zummary.path)
    for base, has_log in scan_directory(directory):
        log_path = directory / f'{base}.log'
        if not has_log:
            logger.info("missing '%s'", log_path)
            continue
        err_path = directory / f'{base}.err'
        etime = get_mtime(err_path)
        if etime is None:
            return True
        if etime > ztime:
            logger.info("error file '%s' more recently modified", err_path)
            return True
        ltime = get_mtime(log_path)
        if ltime is None:
            return True
        if ltime > ztime:
            logger.info("log file '%s' more recently modified", log_path)
            return True
    return False


def check_header(tokens, cache_path):
    if tokens[:7] != HEADER or len(tokens) > 8 or (len(tokens) == 8 and tokens[7] != 'bound'):
        raise ZummarizeError(f"invalid header in '{cache_path}'")


def load_limit(ctx: ZummarizeContext, zummary: Zummary, attr: str, what: str,
               token: str, cache_path):
    value = atof(token)
    if value <= 0:
        raise ZummarizeError(f"invalid {what} {value:.0f} in '{cache_path}'")
    current = getattr(zummary, attr)
    if current < 0:
        logger.info("setting %s of '%s' to %.0f", what, zummary.path, value)
        setattr(zummary, attr, value)
    elif current != value and not ctx.config.ignore:
        logger.warning("different %s %.0f in '%s'", what, value, cache_path)


def load_zummary(ctx: ZummarizeContext, zummary: Zummary, cache_path):
    """Read the entries of a directory back from its cache file."""
    assert not zummary.entries
    logger.info("trying to load zummary '%s'", cache_path)
    try:
        f = open(cache_path, 'r', encoding='utf-8', errors='ignore', newline='\n')
    except OSError as e:
        raise ZummarizeError(f"can not read '{cache_path}': {e}") from e

    with f:
        tokenizer = LineTokenizer(f)
        header = tokenizer.next_line()
        if header is None:
            raise ZummarizeError(f"invalid header in '{cache_path}'")
        check_header(header, cache_path)
        for tokens in tokenizer:
            if not tokens:
                continue
            if len(tokens) < 8 or len(tokens) > 9:
                raise ZummarizeError(f"invalid line {tokenizer.lineno} in '{cache_path}'")
            code = atoi(tokens[1])
            if code not in CACHED_OUTCOMES:
                raise ZummarizeError(
                    f"invalid result code '{tokens[1]}' in line {tokenizer.lineno} of '{cache_path}'")
            e = ctx.new_entry(zummary, tokens[0])
            e.result = Outcome(code)
            e.time = atof(tokens[2])
            e.real = atof(tokens[3])
            e.space = atof(tokens[4])
            load_limit(ctx, zummary, 'tlim', 'time limit', tokens[5], cache_path)
            load_limit(ctx, zummary, 'rlim', 'real time limit', tokens[6], cache_path)
            load_limit(ctx, zummary, 'slim', 'space limit', tokens[7], cache_path)
            if len(tokens) == 9 and atoi(tokens[8]) >= 0:
                e.bound = atoi(tokens[8])
            if e.result in CACHED_FLAGS:
                setattr(e, CACHED_FLAGS[e.result], True)
            logger.debug("loaded %s %d %.2f %.2f %.1f %d", e.name, e.result,
                         e.time, e.real, e.space, e.bound)

    logger.info("loaded %d entries from '%s'", len(zummary.entries), cache_path)
    zummary.sort_entries()
    ctx.loaded += 1


def warn_inconsistent_status(entry):
    if not entry.result:
        return
    for flag, what in (('timeout', 'time-out'), ('memout', 'memory-out'),
                       ('signal11', "'segmentation fault' (s11)"),
                       ('signal6', "'abort signal' (s6)"), ('unknown', 'unknown status')):
        if getattr(entry, flag):
            logger.warning("result %d with %s in '%s'", entry.result, what, entry.label())


def update_zummary(ctx: ZummarizeContext, zummary: Zummary):
    """Parse all report/log pairs of a directory from scratch."""
    config = ctx.config
    logger.info("updating zummary for directory '%s'", zummary.path)
    directory = Path(zummary.path)
    for base, has_log in scan_directory(directory):
        if not has_log:
            logger.info("missing '%s'", directory / f'{base}.log')
            continue
        e = ctx.new_entry(zummary, base)
        if parse_err_file(e, directory / f'{base}.err', config):
            parse_log_file(e, directory / f'{base}.log', config)
        warn_inconsistent_status(e)

    logger.info("found %d entries in '%s'", len(zummary.entries), zummary.path)
    if zummary.entries:
        for attr, what in (('tlim', 'time limit'), ('rlim', 'real time limit'), ('slim', 'space limit')):
            if getattr(zummary, attr) < 0:
                raise ZummarizeError(f"no {what} in '{zummary.path}'")
        first = next(z for z in ctx.zummaries if z.entries)
        if first is not zummary and not config.ignore:
            for attr, what in (('tlim', 'time limit'), ('rlim', 'real time limit'), ('slim', 'space limit')):
                if getattr(zummary, attr) != getattr(first, attr):
                    logger.warning("different %s '%.0f' in '%s'", what, getattr(zummary, attr), zummary.path)
    zummary.sort_entries()
    ctx.updated += 1


def write_zummary(ctx: ZummarizeContext, zummary: Zummary, cache_path):
    assert not zummary.report_only
    print_bounds = not ctx.config.no_bounds and zummary.bnd > 0
    try:
        with open(cache_path, 'w', encoding='utf-8') as f:
            f.write(' ' + ' '.join(HEADER))
            if print_bounds:
                f.write(' bound')
            f.write('\n')
            for e in zummary.entries:
                f.write('%s %d %.2f %.2f %.1f %.0f %.0f %.0f' % (
                    e.name, e.result, e.time, e.real, e.space,
                    zummary.tlim, zummary.rlim, zummary.slim))
                if print_bounds:
                    f.write(' %d' % e.bound)
                f.write('\n')
    except OSError as e:
        raise ZummarizeError(f"can not write '{cache_path}': {e}") from e
    logger.info("written %d entries to zummary '%s'", len(zummary.entries), cache_path)
    ctx.written += 1


def zummarize_one(ctx: ZummarizeContext, path) -> Zummary:
    """Load or rebuild the zummary of one directory and settle its entries."""
    config = ctx.config
    zummary = ctx.new_zummary(path)
    logger.info("zummarizing directory %s", zummary.path)
    cache_path = Path(zummary.path) / CACHE_NAME

    if not cache_path.is_file():
        logger.info("zummary file '%s' not found", cache_path)
        update = True
    elif config.force:
        logger.info("forcing update of '%s' (through '-f' option)", cache_path)
        update = True
    elif zummary_needs_update(zummary, cache_path):
        logger.info("zummary '%s' needs update", cache_path)
        update = True
    else:
        update = False

    if update:
        update_zummary(ctx, zummary)
    else:
        load_zummary(ctx, zummary, cache_path)
    fix_zummary(zummary, FixMode.LOCAL, ctx)
    if update and not config.no_write and zummary.cnt:
        write_zummary(ctx, zummary, cache_path)
    return zummary
