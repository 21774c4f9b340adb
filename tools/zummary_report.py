"""
Text reports over reconciled zummaries, printed to stdout.

- print_zummaries: one aligned row of counters and sums per directory
- print_deep:      instances no directory solved
- print_merged:    ';' separated table of all runs per instance
- print_ranked:    how many directories solved each instance
- compare_runs:    per instance time ratio between exactly two directories
"""

from __future__ import annotations

import csv
import os
import sys
import textwrap

import numpy as np
import pandas as pd

from zummary_model import Outcome, ZummarizeContext

STATUS_NAMES = {
    Outcome.TIMEOUT: 'time',
    Outcome.MEMOUT: 'mem',
    Outcome.UNKNOWN: 'unk',
    Outcome.DISAGREEMENT: 'dis',
    Outcome.SIGNAL11: 's11',
    Outcome.SIGNAL6: 's6',
    Outcome.SAT: 'sat',
    Outcome.UNSAT: 'uns',
}


def skip_prefix_length(paths) -> int:
    """Length of the directory prefix shared by all paths."""
    if not paths:
        return 0
    res = len(os.path.commonprefix(list(paths)))
    first = paths[0]
    while res > 0 and first[res - 1] != '/':
        res -= 1
    return res


def report_columns(par: int):
    # (attribute, header, integer column)
    return [
        ('cnt', 'cnt', True),
        ('sol', 'ok', True),
        ('sat', 'sat', True),
        ('uns', 'uns', True),
        ('dis', 'dis', True),
        ('fld', 'fld', True),
        ('tio', 'to', True),
        ('meo', 'mo', True),
        ('s11', 's11', True),
        ('si6', 's6', True),
        ('unk', 'unk', True),
        ('real', 'real', False),
        ('time', 'time', False),
        ('par', f'par{par}', False),
        ('space', 'space', False),
        ('max', 'max', False),
        ('bst', 'best', True),
        ('unq', 'uniq', True),
        ('deep', 'deep', False),
    ]


def format_value(value, integer: bool) -> str:
    return '%d' % value if integer else '%.0f' % value


def shown_zummaries(ctx: ZummarizeContext):
    config = ctx.config
    for z in ctx.zummaries:
        if not config.print_all:
            if config.sat_only and not z.sat:
                continue
            if config.unsat_only and not z.uns:
                continue
            if config.deep_only and not z.deep:
                continue
        yield z


def print_zummaries(ctx: ZummarizeContext):
    """Print the summary table, hiding all-zero columns unless '--all'."""
    config = ctx.config
    skip = skip_prefix_length([z.path for z in ctx.zummaries])
    columns = []
    for attr, header, integer in report_columns(config.par):
        width = 0
        for z in ctx.zummaries:
            value = getattr(z, attr)
            if int(value):
                width = max(width, len(format_value(value, integer)))
        if not width and not config.print_all:
            continue
        columns.append((attr, max(width, len(header)), header, integer))

    name_width = max((len(z.path[skip:]) for z in ctx.zummaries), default=0)
    line = ' ' * name_width
    for attr, width, header, integer in columns:
        line += ' ' + header.rjust(width)
    print(line)

    for z in shown_zummaries(ctx):
        line = z.path[skip:].rjust(name_width)
        for attr, width, header, integer in columns:
            line += ' ' + format_value(getattr(z, attr), integer).rjust(width)
        print(line)


def print_deep(ctx: ZummarizeContext):
    names = [s.name for s in ctx.sorted_symbols() if not s.sat and not s.uns]
    print(f"\nused the following {len(names)} unsolved instances:\n")
    if names:
        print(textwrap.fill(' '.join(names), width=75, break_long_words=False,
                            break_on_hyphens=False))


def print_merged(ctx: ZummarizeContext, out=None):
    """One row per instance with solver, status, bound, real, time and mem
    of every directory, directories in command line order."""
    out = out if out is not None else sys.stdout
    skip = skip_prefix_length([z.path for z in ctx.zummaries])
    writer = csv.writer(out, delimiter=';', lineterminator='\n')
    header = ['benchmark']
    for _ in ctx.zummaries:
        header += ['solver', 'status', 'bound', 'real', 'time', 'mem']
    writer.writerow(header)
    for symbol in ctx.sorted_symbols():
        by_zummary = {id(e.zummary): e for e in symbol.entries}
        row = [symbol.name]
        for z in ctx.zummaries:
            e = by_zummary.get(id(z))
            if e is None:
                row += [z.path[skip:], '', '', '', '', '']
                continue
            row += [z.path[skip:], STATUS_NAMES.get(e.result, 'unk'), '%d' % e.bound,
                    '%.2f' % e.real, '%.2f' % e.time, '%.1f' % e.space]
        writer.writerow(row)


def print_ranked(ctx: ZummarizeContext):
    config = ctx.config
    for s in ctx.sorted_symbols():
        count = s.sat + s.uns
        if config.solved and not count:
            continue
        if config.unsolved and count:
            continue
        print(f"{count} {s.name}")


def run_frame(ctx: ZummarizeContext, zummary) -> pd.DataFrame:
    limit = zummary.rlim if ctx.use_real else zummary.tlim
    rows = []
    for e in zummary.entries:
        used = e.real if ctx.use_real else e.time
        rows.append({
            'name': e.name,
            'result': int(e.result),
            'solved': e.solved,
            'unknown': e.unknown,
            't': used if e.solved else limit,
        })
    return pd.DataFrame(rows, columns=['name', 'result', 'solved', 'unknown', 't'])


def ratio_column(t1: pd.Series, t2: pd.Series) -> np.ndarray:
    """t1 / t2 with 0/0 = 1, 0/x = 0 and x/0 = 1e9."""
    with np.errstate(divide='ignore', invalid='ignore'):
        quotient = t1.to_numpy(dtype=float) / t2.to_numpy(dtype=float)
    return np.select([(t1 == 0) & (t2 == 0), t1 == 0, t2 == 0],
                     [1.0, 0.0, 1e9], default=quotient)


def compare_runs(ctx: ZummarizeContext) -> pd.DataFrame:
    """Print '<ratio> <instance> <t1> <t2>' for instances run in both
    directories, largest ratio first.  Unsolved runs count with the limit."""
    config = ctx.config
    first, second = ctx.zummaries[0], ctx.zummaries[1]
    merged = pd.merge(run_frame(ctx, first), run_frame(ctx, second), on='name', suffixes=('_1', '_2'))

    keep = pd.Series(True, index=merged.index)
    if config.sat_only:
        keep &= (merged['result_1'] != Outcome.UNSAT) & (merged['result_2'] != Outcome.UNSAT)
    if config.unsat_only:
        keep &= (merged['result_1'] != Outcome.SAT) & (merged['result_2'] != Outcome.SAT)
    if config.no_unknown:
        keep &= ~merged['unknown_1'] & ~merged['unknown_2']
    solved = merged['solved_1'].astype(int) + merged['solved_2'].astype(int)
    if config.filter:
        keep &= solved == 1
    else:
        keep &= solved > 0
    merged = merged[keep].copy()

    merged['ratio'] = ratio_column(merged['t_1'], merged['t_2'])
    merged = merged.sort_values(by=['ratio', 't_1', 'name'], ascending=[False, False, True])
    for row in merged.itertuples(index=False):
        print(f"{row.ratio:.2f} {row.name} {row.t_1:.2f} {row.t_2:.2f}")
    return merged
