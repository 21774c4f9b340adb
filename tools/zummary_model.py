"""
Zummary data model

Entries, symbols and zummaries shared by the parsers, the classifier and the
reconciliation passes, plus the run context that replaces process-wide state:

- Entry:   one benchmark instance result inside one directory
- Symbol:  one instance name, chaining the entries of all directories
- Zummary: one directory with its entries, limits and rollups

Usage:
    from zummary_model import ZummarizeConfig, ZummarizeContext

    ctx = ZummarizeContext(ZummarizeConfig())
    z = ctx.new_zummary('runs/solver-a')
    e = ctx.new_entry(z, 'instance.cnf')
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class ZummarizeError(Exception):
    """Unrecoverable condition that aborts the whole run."""


class Outcome(IntEnum):
    UNCLASSIFIED = 0
    TIMEOUT = 1
    MEMOUT = 2
    UNKNOWN = 3
    DISAGREEMENT = 4
    SIGNAL11 = 5
    SIGNAL6 = 6
    SAT = 10
    UNSAT = 20


# Codes that may appear in a cache file (disagreement is never written).
CACHED_OUTCOMES = {
    Outcome.TIMEOUT, Outcome.MEMOUT, Outcome.UNKNOWN,
    Outcome.SIGNAL11, Outcome.SIGNAL6, Outcome.SAT, Outcome.UNSAT,
}


class UnsatBoundTracking(IntEnum):
    OK = 0
    LOCALLY_BROKEN = 1
    GLOBALLY_BROKEN = 2


@dataclass
class ZummarizeConfig:
    """All switches of one invocation (see the CLI in zummarize.py)."""
    verbose: int = 0
    force: bool = False
    ignore: bool = False
    just: bool = False
    no_warnings: bool = False
    print_all: bool = False
    no_write: bool = False
    no_bounds: bool = False
    strict_limits: bool = False
    sat_only: bool = False
    unsat_only: bool = False
    deep_only: bool = False
    solved: bool = False
    unsolved: bool = False
    rank: bool = False
    merge: bool = False
    cmp: bool = False
    filter: bool = False
    no_unknown: bool = False
    plotting: bool = False
    cactus: bool = False
    log_y: bool = False
    center: bool = False
    timing: str = 'auto'
    par: int = 0
    capped: int = 1000
    xmin: Optional[int] = None
    xmax: Optional[int] = None
    ymin: Optional[int] = None
    ymax: Optional[int] = None
    limit: Optional[int] = None
    title: Optional[str] = None
    output: Optional[str] = None
    order: Optional[str] = None


@dataclass(eq=False)
class Symbol:
    name: str
    entries: List['Entry'] = field(default_factory=list, repr=False)
    sat: int = 0
    uns: int = 0


@dataclass(eq=False)
class Entry:
    symbol: Symbol = field(repr=False)
    zummary: 'Zummary' = field(repr=False)
    result: int = Outcome.UNCLASSIFIED
    time: float = 0.0
    real: float = 0.0
    space: float = 0.0
    bound: int = -1
    max_unsat_bound: int = -1
    min_sat_bound: int = -1
    objective: int = -1
    timeout: bool = False
    memout: bool = False
    unknown: bool = False
    disagreement: bool = False
    signal11: bool = False
    signal6: bool = False
    best: Optional['Entry'] = field(default=None, repr=False)

    @property
    def name(self) -> str:
        return self.symbol.name

    @property
    def solved(self) -> bool:
        return self.result in (Outcome.SAT, Outcome.UNSAT)

    def label(self) -> str:
        return f"{self.zummary.path}/{self.name}"


@dataclass(eq=False)
class Zummary:
    path: str
    entries: List[Entry] = field(default_factory=list, repr=False)
    tlim: float = -1
    rlim: float = -1
    slim: float = -1
    cnt: int = 0
    sol: int = 0
    sat: int = 0
    uns: int = 0
    dis: int = 0
    fld: int = 0
    tio: int = 0
    meo: int = 0
    s11: int = 0
    si6: int = 0
    unk: int = 0
    bnd: int = 0
    bst: int = 0
    unq: int = 0
    time: float = 0.0
    real: float = 0.0
    par: float = 0.0
    space: float = 0.0
    max: float = 0.0
    deep: float = 0.0
    unsat_bounds: int = UnsatBoundTracking.OK
    report_only: bool = False

    def __post_init__(self):
        stripped = self.path.rstrip('/')
        self.path = stripped if stripped else self.path

    def sort_entries(self):
        self.entries.sort(key=lambda e: e.name)

    def outcome_total(self) -> int:
        return (self.sat + self.uns + self.dis + self.tio + self.meo
                + self.s11 + self.si6 + self.unk)


def mark_unsat_bounds_broken(zummary: Zummary, level: int):
    """Raise the unsat-bound tracking state of a directory, never lower it."""
    if zummary.unsat_bounds >= level:
        return
    degree = 'globally' if level == UnsatBoundTracking.GLOBALLY_BROKEN else 'locally'
    logger.warning("assuming 'u...' lines are %s broken in '%s'", degree, zummary.path)
    zummary.unsat_bounds = level


class SymbolTable:
    """Interned instance names in first-seen order."""

    def __init__(self):
        self._symbols: Dict[str, Symbol] = {}

    def __len__(self):
        return len(self._symbols)

    def __iter__(self):
        return iter(self._symbols.values())

    def get(self, name: str) -> Optional[Symbol]:
        return self._symbols.get(name)

    def intern(self, name: str) -> Symbol:
        symbol = self._symbols.get(name)
        if symbol is None:
            symbol = Symbol(sys.intern(name))
            self._symbols[symbol.name] = symbol
        return symbol

    def sorted_symbols(self) -> List[Symbol]:
        return sorted(self._symbols.values(), key=lambda s: s.name)


class ZummarizeContext:
    """State of one invocation: configuration, symbols and directories."""

    def __init__(self, config: Optional[ZummarizeConfig] = None):
        self.config = config if config is not None else ZummarizeConfig()
        self.symbols = SymbolTable()
        self.zummaries: List[Zummary] = []
        self.use_real = False
        self.loaded = 0
        self.updated = 0
        self.written = 0

    def new_zummary(self, path: str) -> Zummary:
        zummary = Zummary(str(path))
        self.zummaries.append(zummary)
        return zummary

    def new_entry(self, zummary: Zummary, name: str) -> Entry:
        symbol = self.symbols.intern(name)
        entry = Entry(symbol=symbol, zummary=zummary)
        symbol.entries.append(entry)
        zummary.entries.append(entry)
        zummary.cnt += 1
        return entry

    def sorted_symbols(self) -> List[Symbol]:
        return self.symbols.sorted_symbols()
