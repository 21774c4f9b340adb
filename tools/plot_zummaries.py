"""
Plots over reconciled zummaries.

Three kinds of charts, one line per directory, written to a single PDF page:
  - cdf:    x = solving time, y = number of instances solved within it
  - cactus: x = number of solved instances, y = time needed for the n-th
  - deep:   capped unsat-bound score of instances nobody solved (with -d)

An optional order file lists directory names (one per line, with the
common prefix removed) to keep colours and markers stable across plots.

Usage:
    from plot_zummaries import load_order, plot_zummaries

    plot_zummaries(ctx, load_order('order.txt'))
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

import matplotlib.backends.backend_pdf
import matplotlib.pyplot as plt
import numpy as np

from zummary_model import Outcome, ZummarizeContext, ZummarizeError, Zummary
from zummary_report import skip_prefix_length

FIG_SIZE = (8, 5)
DEFAULT_OUTPUT = 'zummarize.pdf'
MARKERS = ['o', 's', '^', 'v', 'D', 'x', '+', '*', 'p', 'h', '<', '>']


def load_order(path) -> Dict[str, int]:
    """Map directory names to plot slots in order of first appearance."""
    order: Dict[str, int] = {}
    try:
        with open(path, 'r', encoding='utf-8') as f:
            for line in f:
                name = line.rstrip('\n')
                if name not in order:
                    order[name] = len(order) + 1
    except OSError as e:
        raise ZummarizeError(f"can not read order file '{path}': {e}") from e
    return order


def plotted_zummaries(ctx: ZummarizeContext) -> List[Zummary]:
    config = ctx.config
    res = []
    for z in ctx.zummaries:
        if not z.cnt:
            continue
        if config.sat_only and not z.sat:
            continue
        if config.unsat_only and not z.uns:
            continue
        if config.deep_only and not z.deep:
            continue
        res.append(z)
    return res


def plot_values(ctx: ZummarizeContext, z: Zummary) -> np.ndarray:
    """Sorted per entry values of one line: times, or deep scores with -d."""
    config = ctx.config
    values = []
    for e in z.entries:
        if config.deep_only:
            if e.bound < 0:
                continue
            if e.best is not None and e.best.solved:
                continue
            b = min(e.bound, config.capped)
            values.append(config.capped - config.capped / (b + 2.0))
            continue
        if not e.solved:
            continue
        if config.sat_only and e.result != Outcome.SAT:
            continue
        if config.unsat_only and e.result != Outcome.UNSAT:
            continue
        values.append(e.real if ctx.use_real else e.time)
    return np.sort(np.array(values, dtype=float))


def slot_of(name: str, order: Optional[Dict[str, int]], position: int, order_path) -> int:
    if not order:
        return position
    if name not in order:
        raise ZummarizeError(f"order file '{order_path}' does not contain '{name}'")
    return order[name]


def setup_axes(ax, ctx: ZummarizeContext, first: Zummary, maxbnd: int):
    config = ctx.config
    lim = first.rlim if ctx.use_real else first.tlim
    if config.log_y:
        ax.set_yscale('log')
    if config.deep_only:
        ax.set_xlim(0, maxbnd + 10)
        ax.set_ylim(top=config.capped * 1.02)
        ax.axhline(config.capped, linestyle=':', color='black', linewidth=0.8)
    elif config.cactus:
        ax.set_xlim(0, first.sol + 10)
        ax.set_ylim(top=lim * 1.02)
        ax.axhline(lim, linestyle=':', color='black', linewidth=0.8)
    else:
        xmin = config.xmin if config.xmin is not None else 0
        xmax = config.xmax if config.xmax is not None else lim * 1.02
        ymax = config.ymax if config.ymax is not None else first.sol + 10
        ax.set_xlim(xmin, xmax)
        ax.set_ylim(top=ymax)
        if config.ymin is not None:
            ax.set_ylim(bottom=config.ymin)
        if config.limit is not None:
            ax.axhline(config.limit, color='blue')
    if not config.log_y and (config.deep_only or config.cactus or config.ymin is None):
        ax.set_ylim(bottom=0)


def legend_location(ctx: ZummarizeContext) -> str:
    cdf = not ctx.config.cactus and not ctx.config.deep_only
    if ctx.config.center:
        return 'center right' if cdf else 'center left'
    return 'lower right' if cdf else 'upper left'


def plot_zummaries(ctx: ZummarizeContext, order: Optional[Dict[str, int]] = None) -> Path:
    """Draw the cdf, cactus or deep plot and return the path of the PDF."""
    config = ctx.config
    pdf_path = Path(config.output or DEFAULT_OUTPUT)
    skip = skip_prefix_length([z.path for z in ctx.zummaries])
    zummaries = plotted_zummaries(ctx)
    maxbnd = max((z.bnd for z in zummaries), default=0)

    with matplotlib.backends.backend_pdf.PdfPages(pdf_path) as pdf:
        fig, ax = plt.subplots(figsize=FIG_SIZE)
        color_cycle = plt.cm.tab20.colors
        for position, z in enumerate(zummaries, start=1):
            name = z.path[skip:]
            slot = slot_of(name, order, position, config.order)
            if position == 1:
                setup_axes(ax, ctx, z, maxbnd)
            values = plot_values(ctx, z)
            counts = np.arange(1, len(values) + 1)
            if config.cactus or config.deep_only:
                x_vals, y_vals = counts, values
            else:
                x_vals, y_vals = values, counts
            ax.plot(x_vals, y_vals, linestyle='-', linewidth=0.8,
                    marker=MARKERS[(slot - 1) % len(MARKERS)], markersize=4,
                    color=color_cycle[(slot - 1) % len(color_cycle)], label=name)

        if config.title:
            ax.set_title(config.title)
        ax.grid(alpha=0.3, linestyle='--')
        if zummaries:
            ax.legend(loc=legend_location(ctx), fontsize=8, frameon=True)

        plt.tight_layout()
        pdf.savefig(fig, bbox_inches='tight')
        plt.close(fig)

    print(f"Plot saved to: {pdf_path}")
    return pdf_path
