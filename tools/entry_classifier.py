"""
Entry classification and zummary rollups.

fix_zummary() settles the final outcome of every entry of a directory and
recomputes all counters and sums from scratch.  It runs up to three times:

- LOCAL: right after scanning or loading, from the directory's own files;
  only a zummary fixed this way may be written back to its cache file
- GLOBAL_WITHOUT_BEST: after cross-directory reconciliation flagged
  disagreements or broken unsat bounds
- GLOBAL_WITH_BEST: after best results were selected, additionally counting
  best and unique results and projecting onto sat/unsat/deep reports

Running it again on unchanged entries gives the same numbers.
"""

from __future__ import annotations

import logging
from enum import IntEnum

from reconciliation import compare_entries
from zummary_model import (Entry, Outcome, UnsatBoundTracking, ZummarizeConfig,
                           ZummarizeContext, Zummary)

logger = logging.getLogger(__name__)


class FixMode(IntEnum):
    LOCAL = 0
    GLOBAL_WITHOUT_BEST = 1
    GLOBAL_WITH_BEST = 2


def exceeded_limit(entry: Entry, zummary: Zummary):
    """Name of the first nominal limit the entry's usage exceeds, or None."""
    if zummary.tlim > 0 and entry.time > zummary.tlim:
        return 'time limit'
    if zummary.rlim > 0 and entry.real > zummary.rlim:
        return 'real time limit'
    if zummary.slim > 0 and entry.space > zummary.slim:
        return 'space limit'
    return None


def enforce_limits(zummary: Zummary):
    """Demote verdicts of runs which actually used more than allowed.

    The harness might report 'ok' for a run that went over its limit.  Such
    a verdict is dropped and the run counts as time-out or memory-out.
    """
    for e in zummary.entries:
        if not e.solved or e.signal11 or e.signal6:
            continue
        limit = exceeded_limit(e, zummary)
        if limit is None:
            continue
        logger.info("error file '%s/%s.err' actually exceeds %s", zummary.path, e.name, limit)
        if not (e.timeout or e.memout):
            if limit == 'space limit':
                e.memout = True
            else:
                e.timeout = True
        if e.result == Outcome.SAT:
            e.bound = -1
        e.result = Outcome.UNCLASSIFIED


def projected_out(entry: Entry, config: ZummarizeConfig) -> bool:
    best = entry.best
    if config.sat_only and (best is None or best.result != Outcome.SAT):
        return True
    if config.unsat_only and (best is None or best.result != Outcome.UNSAT):
        return True
    if config.deep_only and best is not None and best.solved:
        return True
    return False


def classify(entry: Entry) -> int:
    """Final outcome by priority: disagreement, crashes, verdict, failures."""
    if entry.disagreement:
        entry.result = Outcome.DISAGREEMENT
    elif entry.signal11:
        entry.result = Outcome.SIGNAL11
    elif entry.signal6:
        entry.result = Outcome.SIGNAL6
    elif entry.result in (Outcome.SAT, Outcome.UNSAT):
        pass
    elif entry.timeout:
        entry.result = Outcome.TIMEOUT
    elif entry.memout:
        entry.result = Outcome.MEMOUT
    else:
        entry.unknown = True
        entry.result = Outcome.UNKNOWN
    return entry.result


COUNTERS = {
    Outcome.DISAGREEMENT: 'dis',
    Outcome.SIGNAL11: 's11',
    Outcome.SIGNAL6: 'si6',
    Outcome.SAT: 'sat',
    Outcome.UNSAT: 'uns',
    Outcome.TIMEOUT: 'tio',
    Outcome.MEMOUT: 'meo',
    Outcome.UNKNOWN: 'unk',
}


def reset_rollups(zummary: Zummary):
    for attr in ('cnt', 'sol', 'fld', 'bnd', 'bst', 'unq') + tuple(COUNTERS.values()):
        setattr(zummary, attr, 0)
    zummary.time = zummary.real = zummary.space = zummary.max = 0.0
    zummary.par = 0.0


def fix_zummary(zummary: Zummary, mode: FixMode, ctx: ZummarizeContext):
    config = ctx.config
    reset_rollups(zummary)
    enforce_limits(zummary)

    for e in zummary.entries:
        if mode == FixMode.GLOBAL_WITH_BEST:
            if projected_out(e, config):
                continue
            if e.best is not None and (e.best is e or compare_entries(e, e.best, ctx.use_real) == 0):
                zummary.bst += 1
                if ((e.result == Outcome.SAT and e.symbol.sat == 1)
                        or (e.result == Outcome.UNSAT and e.symbol.uns == 1)):
                    logger.debug("unique (SOTA) '%s'", e.label())
                    zummary.unq += 1

        zummary.cnt += 1
        outcome = classify(e)
        counter = COUNTERS[outcome]
        setattr(zummary, counter, getattr(zummary, counter) + 1)

        if e.solved:
            zummary.time += e.time
            zummary.real += e.real
            zummary.space += e.space
        if e.space > zummary.max:
            zummary.max = e.space

        if (zummary.unsat_bounds == UnsatBoundTracking.GLOBALLY_BROKEN
                and e.bound >= 0 and e.result != Outcome.SAT):
            e.bound = -1
        if e.bound >= 0 and e.result != Outcome.DISAGREEMENT:
            zummary.bnd += 1

    zummary.sol = zummary.sat + zummary.uns
    zummary.fld = zummary.tio + zummary.meo + zummary.s11 + zummary.si6 + zummary.unk

    if config.par:
        if ctx.use_real:
            zummary.par = zummary.real + config.par * zummary.rlim * zummary.fld
        else:
            zummary.par = zummary.time + config.par * zummary.tlim * zummary.fld

    if mode != FixMode.LOCAL:
        zummary.report_only = True


def fix_zummaries(ctx: ZummarizeContext, mode: FixMode):
    for zummary in ctx.zummaries:
        fix_zummary(zummary, mode, ctx)
