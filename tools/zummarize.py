#!/usr/bin/env python3
"""
Zummarize: summarize solver benchmark runs.

Each directory argument holds the runs of one solver configuration, i.e.
pairs of '<instance>.err' (runlim report) and '<instance>.log' (solver
output).  Results are cached per directory in '<dir>/zummary', checked for
disagreeing verdicts across directories and reported as a table, a merged
per-instance listing, a ranking, a two-directory comparison or a plot.

Usage: zummarize [options] <dir> [<dir> ...]

Examples:
    zummarize runs/kissat runs/cadical
    zummarize --par 2 -v runs/*
    zummarize --cdf -o cdf.pdf --title "SAT Competition" runs/*
    zummarize --cmp runs/kissat runs/cadical --filter
    zummarize --merge runs/* > merged.csv
"""

import argparse
import logging
import os
import sys

from entry_classifier import FixMode, fix_zummaries
from plot_zummaries import load_order, plot_zummaries
from reconciliation import (check_limits, compute_deep, find_best, reconcile,
                            sort_zummaries)
from zummary_cache import zummarize_one
from zummary_model import ZummarizeConfig, ZummarizeContext, ZummarizeError
from zummary_report import (compare_runs, print_deep, print_merged,
                            print_ranked, print_zummaries)

logger = logging.getLogger('zummarize')

LOG_FORMAT = '[zummarize] %(levelname)s: %(message)s'


def setup_logging(verbose: int, no_warnings: bool):
    if no_warnings:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr, force=True)
    # Per token tracing only with '-vvv'.
    tokens_logger = logging.getLogger('zummary_tokens')
    if verbose < 3:
        tokens_logger.setLevel(max(level, logging.INFO))
    else:
        tokens_logger.setLevel(logging.NOTSET)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog='zummarize',
        description='Summarize, reconcile and compare solver benchmark runs.')
    ap.add_argument('dirs', nargs='*', metavar='dir', help='Directory with <instance>.err/.log pairs')
    ap.add_argument('-v', '--verbose', action='count', default=0, help='Increase verbosity (repeatable)')
    ap.add_argument('-f', '--force', action='store_true', help='Ignore cached zummaries and rescan')
    ap.add_argument('-i', '--ignore', action='store_true', help='Do not warn about differing limits')
    ap.add_argument('-j', '--just', action='store_true', help='Treat runs without result line as UNSAT')
    ap.add_argument('-n', '--no-warnings', action='store_true', help='Suppress warnings')
    ap.add_argument('-a', '--all', dest='print_all', action='store_true', help='Print all columns and rows')
    ap.add_argument('-s', '--sat', dest='sat_only', action='store_true', help='Restrict to satisfiable instances')
    ap.add_argument('-u', '--unsat', dest='unsat_only', action='store_true', help='Restrict to unsatisfiable instances')
    ap.add_argument('-d', '--deep', dest='deep_only', action='store_true',
                    help='Restrict to unsolved instances and score unsat bounds')
    ap.add_argument('-c', '--plot', '--cdf', dest='chart', action='store_const', const='cdf', help='Plot a CDF')
    ap.add_argument('--cactus', dest='chart', action='store_const', const='cactus', help='Plot a cactus plot')
    ap.add_argument('--center', action='store_true', help='Center the plot legend vertically')
    ap.add_argument('-l', '--log', dest='log_y', action='store_true', help='Logarithmic y axis')
    ap.add_argument('-o', dest='output', default=None, help='PDF file to write the plot to')
    ap.add_argument('-t', '--title', default=None, help='Plot title')
    ap.add_argument('--order', default=None, help='File with directory names fixing colors and markers')
    ap.add_argument('--xmin', type=int, default=None)
    ap.add_argument('--xmax', type=int, default=None)
    ap.add_argument('--ymin', type=int, default=None)
    ap.add_argument('--ymax', type=int, default=None)
    ap.add_argument('--limit', type=int, default=None, help='Horizontal line in the CDF plot')
    ap.add_argument('-m', '--merge', action='store_true', help='Print a merged per instance table')
    ap.add_argument('-r', '--rank', action='store_true', help='Print how often each instance was solved')
    ap.add_argument('--solved', action='store_true', help='Rank only solved instances')
    ap.add_argument('--unsolved', action='store_true', help='Rank only unsolved instances')
    ap.add_argument('--cmp', action='store_true', help='Compare the times of exactly two directories')
    ap.add_argument('--filter', action='store_true', help='Compare only instances solved by one side')
    ap.add_argument('--no-unknown', action='store_true', help='Compare only instances without unknown status')
    ap.add_argument('--par', type=int, default=0, help='Compute the PAR-N score (e.g. --par 2)')
    ap.add_argument('--capped', type=int, default=1000, help='Cap on unsat bounds in the deep score')
    ap.add_argument('--no-write', action='store_true', help='Do not write zummary files')
    ap.add_argument('--no-bounds', action='store_true', help='Do not write bounds to zummary files')
    ap.add_argument('--strict-limits', action='store_true', help='Differing limits are errors')
    timing = ap.add_mutually_exclusive_group()
    timing.add_argument('--real', dest='timing', action='store_const', const='real',
                        help='Rank by real (wall clock) time')
    timing.add_argument('--process', dest='timing', action='store_const', const='process',
                        help='Rank by process time')
    return ap


def validate(ap: argparse.ArgumentParser, args, dirs):
    for name in ('xmin', 'xmax', 'ymin', 'ymax', 'limit'):
        value = getattr(args, name)
        if value is not None and value < 0:
            ap.error(f"invalid '--{name} {value}'")
    if not 0 <= args.par <= 99:
        ap.error("expected one or two digits after '--par'")
    if args.capped <= 0:
        ap.error(f"invalid '--capped {args.capped}'")
    if not dirs:
        ap.error('no directory specified')
    if args.cmp and len(dirs) != 2:
        ap.error("'--cmp' requires two directories")
    if args.sat_only and args.unsat_only:
        ap.error("can not combine '--sat' and '--unsat'")
    if args.solved and args.unsolved:
        ap.error("can not combine '--solved' and '--unsolved'")
    plotting = args.chart is not None
    if args.title and not plotting:
        ap.error('title defined without plotting')
    if args.output and not plotting:
        ap.error('output file specified without plotting')
    if plotting and args.merge:
        ap.error('can not plot and merge data')


def config_from_args(args) -> ZummarizeConfig:
    return ZummarizeConfig(
        verbose=args.verbose, force=args.force, ignore=args.ignore, just=args.just,
        no_warnings=args.no_warnings, print_all=args.print_all, no_write=args.no_write,
        no_bounds=args.no_bounds, strict_limits=args.strict_limits,
        sat_only=args.sat_only, unsat_only=args.unsat_only, deep_only=args.deep_only,
        solved=args.solved, unsolved=args.unsolved, rank=args.rank, merge=args.merge,
        cmp=args.cmp, filter=args.filter, no_unknown=args.no_unknown,
        plotting=args.chart is not None, cactus=args.chart == 'cactus',
        log_y=args.log_y, center=args.center, timing=args.timing or 'auto',
        par=args.par, capped=args.capped, xmin=args.xmin, xmax=args.xmax,
        ymin=args.ymin, ymax=args.ymax, limit=args.limit,
        title=args.title, output=args.output, order=args.order)


def zummarize_all(ctx: ZummarizeContext, order=None):
    """Cross-directory passes and the requested report."""
    config = ctx.config
    logger.debug("%d benchmarks", len(ctx.symbols))
    reconcile(ctx)
    check_limits(ctx)
    if config.merge:
        print_merged(ctx)
        return
    fix_zummaries(ctx, FixMode.GLOBAL_WITHOUT_BEST)
    find_best(ctx)
    fix_zummaries(ctx, FixMode.GLOBAL_WITH_BEST)
    compute_deep(ctx)
    if config.solved or config.unsolved or config.rank:
        print_ranked(ctx)
    elif config.plotting:
        sort_zummaries(ctx)
        plot_zummaries(ctx, order)
    elif config.cmp:
        # First and second directory in command line order.
        compare_runs(ctx)
    else:
        sort_zummaries(ctx)
        print_zummaries(ctx)
        if config.deep_only:
            print_deep(ctx)


def main(argv=None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    setup_logging(args.verbose, args.no_warnings)

    dirs = []
    for arg in args.dirs:
        if os.path.isdir(arg):
            dirs.append(arg)
        else:
            logger.warning("argument '%s' not a directory (try '-h')", arg)
    validate(ap, args, dirs)
    config = config_from_args(args)

    logger.info("will not write zummaries" if config.no_write
                else "will generate or update existing zummaries")
    logger.info("will not write bounds" if config.no_bounds else "will write bounds if found")
    if config.sat_only:
        logger.info("will restrict report to satisfiable instances")
    if config.unsat_only:
        logger.info("will restrict report to unsatisfiable instances")
    if config.par:
        logger.info("using par%d score", config.par)

    ctx = ZummarizeContext(config)
    try:
        order = load_order(config.order) if config.order and config.plotting else None
        for path in dirs:
            zummarize_one(ctx, path)
        zummarize_all(ctx, order)
    except ZummarizeError as e:
        logger.error("%s", e)
        return 1
    logger.info("%d loaded, %d updated, %d written", ctx.loaded, ctx.updated, ctx.written)
    return 0


if __name__ == "__main__":
    sys.exit(main())
