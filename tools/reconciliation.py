"""
Cross-directory reconciliation of benchmark results.

Works on the symbol table after all directories were scanned or loaded:

- check_discrepancies: sat versus unsat on the same instance, majority vote
- check_bounds: unsat bounds reaching a proven witness length
- check_objectives: different optimum values for the same instance
- check_limits: limits across directories, real or process time ranking
- find_best: best result per instance under a total order
- compute_deep: score of unsat bounds on instances nobody solved
- sort_zummaries: ranking of the directories for the report
"""

from __future__ import annotations

import functools
import logging
from typing import Optional

from zummary_model import (Entry, Outcome, UnsatBoundTracking, ZummarizeContext,
                           ZummarizeError, Zummary, mark_unsat_bounds_broken)

logger = logging.getLogger(__name__)


def check_discrepancies(ctx: ZummarizeContext) -> int:
    """Flag entries contradicting the majority verdict of their instance.

    On a tie there is no expected verdict and every sat and unsat entry of
    the instance is flagged.

    Returns:
        number of instances with contradicting verdicts
    """
    count = 0
    for symbol in ctx.sorted_symbols():
        sat = sum(1 for e in symbol.entries if e.result == Outcome.SAT)
        unsat = sum(1 for e in symbol.entries if e.result == Outcome.UNSAT)
        if not sat or not unsat:
            continue
        if sat > unsat:
            expected, cmp = Outcome.SAT, '>'
        elif sat < unsat:
            expected, cmp = Outcome.UNSAT, '<'
        else:
            expected, cmp = None, '='
        logger.warning("DISCREPANCY on '%s' with %d SAT %s %d UNSAT", symbol.name, sat, cmp, unsat)
        for e in symbol.entries:
            if not e.solved:
                continue
            if expected is None:
                suffix = ' (tie so assumed wrong)'
            elif e.result != expected:
                suffix = ' (overvoted so probably wrong)'
            else:
                suffix = ''
            logger.warning("%s %s %s%s", ' ' if e.result == expected else '!',
                           e.label(), 'SAT' if e.result == Outcome.SAT else 'UNSAT', suffix)
            if e.result != expected:
                e.disagreement = True
        count += 1
    if count:
        logger.info("found %d result discrepancies", count)
    else:
        logger.info("no result discrepancies found")
    return count


def shortest_witness(entries) -> Optional[Entry]:
    witness = None
    for e in entries:
        if e.disagreement or e.result != Outcome.SAT or e.bound < 0:
            continue
        if witness is None or e.bound < witness.bound:
            witness = e
    return witness


def check_bounds(ctx: ZummarizeContext):
    """An unsat bound at or beyond a proven witness length is impossible.

    The directory reporting it can not be trusted with its unsat bounds at
    all, which marks them as globally broken.
    """
    for symbol in ctx.sorted_symbols():
        witness = shortest_witness(symbol.entries)
        if witness is None:
            continue
        for e in symbol.entries:
            if e.disagreement or e.result == Outcome.SAT:
                continue
            if e.bound < witness.bound:
                continue
            logger.warning("unsat-bound %d in '%s' >= witness length %d in '%s'",
                           e.bound, e.label(), witness.bound, witness.label())
            mark_unsat_bounds_broken(e.zummary, UnsatBoundTracking.GLOBALLY_BROKEN)


def check_objectives(ctx: ZummarizeContext):
    """Two different optimum values make every sat entry of the instance suspect."""
    for symbol in ctx.sorted_symbols():
        first = second = None
        for e in symbol.entries:
            if e.disagreement or e.result != Outcome.SAT or e.objective < 0:
                continue
            if first is None:
                first = e
            elif second is None and e.objective != first.objective:
                second = e
        if second is None:
            continue
        logger.warning("optimum %d in '%s' does not match %d in '%s'",
                       first.objective, first.label(), second.objective, second.label())
        for e in symbol.entries:
            if not e.disagreement and e.result == Outcome.SAT:
                e.disagreement = True


def reconcile(ctx: ZummarizeContext) -> int:
    count = check_discrepancies(ctx)
    check_bounds(ctx)
    check_objectives(ctx)
    return count


def check_limits(ctx: ZummarizeContext):
    """Compare limits against the first non-empty directory and pick the
    timing metric used for ranking (real time if its limit is binding)."""
    config = ctx.config
    nonempty = [z for z in ctx.zummaries if z.cnt]
    if not nonempty:
        return
    first = nonempty[0]
    for z in nonempty[1:]:
        for attr, what in (('tlim', 'time limit'), ('rlim', 'real time limit'), ('slim', 'space limit')):
            if getattr(first, attr) == getattr(z, attr):
                continue
            message = f"different {what} in '{first.path}' and '{z.path}'"
            if config.strict_limits:
                raise ZummarizeError(message)
            if not config.ignore:
                logger.warning(message)

    if config.timing == 'real':
        ctx.use_real = True
    elif config.timing == 'process':
        ctx.use_real = False
    else:
        ctx.use_real = first.tlim >= first.rlim
    if ctx.use_real:
        logger.info("zummarizing over real time (not process time)")
    else:
        logger.info("zummarizing over process time (not real time)")


def cmp_float(a: float, b: float) -> int:
    return (a > b) - (a < b)


def compare_resources(a: Entry, b: Entry, use_real: bool) -> int:
    if use_real:
        order = (('real', 'time', 'space'))
    else:
        order = (('time', 'real', 'space'))
    for attr in order:
        res = cmp_float(getattr(a, attr), getattr(b, attr))
        if res:
            return res
    return 0


def compare_bounds(a: Entry, b: Entry) -> int:
    """Known bounds first, then smaller bounds first."""
    if a.bound < 0 and b.bound < 0:
        return 0
    if b.bound < 0:
        return -1
    if a.bound < 0:
        return 1
    return cmp_float(a.bound, b.bound)


def comparable(entry: Optional[Entry]) -> Optional[Entry]:
    if entry is None or entry.disagreement:
        return None
    if not entry.solved and entry.bound < 0:
        return None
    return entry


def compare_entries(a: Optional[Entry], b: Optional[Entry], use_real: bool) -> int:
    """Total order on the results of one instance, negative if 'a' is better.

    Sat before unsat before unsolved entries with an unsat bound; entries
    that disagree or carry no information at all compare as missing and
    come last.  Solved entries are ordered by resources, sat entries then
    by shorter witnesses, unsolved entries by deeper unsat bounds.
    """
    a, b = comparable(a), comparable(b)
    if a is None and b is None:
        return 0
    if a is None:
        return 1
    if b is None:
        return -1

    rank_a, rank_b = result_rank(a), result_rank(b)
    if rank_a != rank_b:
        return cmp_float(rank_a, rank_b)
    if a.result == Outcome.SAT:
        return compare_resources(a, b, use_real) or compare_bounds(a, b)
    if a.result == Outcome.UNSAT:
        return compare_resources(a, b, use_real)
    return compare_bounds(b, a)


def result_rank(entry: Entry) -> int:
    if entry.result == Outcome.SAT:
        return 0
    if entry.result == Outcome.UNSAT:
        return 1
    return 2


def find_best(ctx: ZummarizeContext):
    """Tag every entry with the best entry of its instance and count how
    many directories solved each instance."""
    for symbol in ctx.sorted_symbols():
        best = None
        symbol.sat = symbol.uns = 0
        for e in symbol.entries:
            if e.disagreement:
                continue
            if compare_entries(e, best, ctx.use_real) < 0:
                best = e
            if e.result == Outcome.SAT:
                symbol.sat += 1
            elif e.result == Outcome.UNSAT:
                symbol.uns += 1
        if best is None:
            logger.debug("no result for '%s'", symbol.name)
        else:
            logger.debug("best result '%s.log'", best.label())
        for e in symbol.entries:
            e.best = best


def unsolved_symbols(ctx: ZummarizeContext):
    return [s for s in ctx.sorted_symbols() if not s.sat and not s.uns]


def compute_deep(ctx: ZummarizeContext):
    """Average capped unsat-bound score over the instances nobody solved.

    A bound b contributes 1e5 - 1e5 / (min(b, capped) + 2), so deeper bounds
    count more with diminishing returns.  Directories with broken unsat
    bounds get no score.
    """
    capped = ctx.config.capped
    unsolved = unsolved_symbols(ctx)
    for s in unsolved:
        logger.info("unsolved instance '%s'", s.name)
    if unsolved:
        logger.info("found %d unsolved instances out of %d", len(unsolved), len(ctx.symbols))
    else:
        logger.info("all instances solved")

    for z in ctx.zummaries:
        z.deep = 0.0
        if z.unsat_bounds != UnsatBoundTracking.OK:
            continue
        for e in z.entries:
            if e.disagreement or e.bound < 0:
                continue
            if e.symbol.sat or e.symbol.uns:
                continue
            bound = min(e.bound, capped)
            inc = 1e5 - 1e5 / (bound + 2.0)
            z.deep += inc
            logger.debug("unsat-bound %d capped to %d in '%s' contributes %.0f",
                         e.bound, bound, e.label(), inc)
        if unsolved:
            z.deep /= len(unsolved)
        logger.info("deep score %.0f of '%s'", z.deep, z.path)


def compare_zummaries(y: Zummary, z: Zummary, ctx: ZummarizeContext) -> int:
    config = ctx.config
    if config.par:
        res = cmp_float(y.par, z.par)
        if res:
            return res
    if config.sat_only:
        res = z.sat - y.sat
    elif config.unsat_only:
        res = z.uns - y.uns
    elif config.deep_only:
        res = cmp_float(z.deep, y.deep)
    else:
        res = (z.sat + z.uns) - (y.sat + y.uns)
    if res:
        return res
    order = ('real', 'time') if ctx.use_real else ('time', 'real')
    for attr in order + ('max', 'space'):
        res = cmp_float(getattr(y, attr), getattr(z, attr))
        if res:
            return res
    return (y.path > z.path) - (y.path < z.path)


def sort_zummaries(ctx: ZummarizeContext):
    ctx.zummaries.sort(key=functools.cmp_to_key(lambda y, z: compare_zummaries(y, z, ctx)))
    logger.debug("sorted all zummaries")
