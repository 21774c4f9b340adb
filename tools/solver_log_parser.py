"""
Solver Log Parser

Scans the '<base>.log' output of a solver for the result lines used by the
SAT, SMT and HWMCC competitions over the years.  A marker is only accepted
if it makes up a whole line:

    sat / unsat
    s SATISFIABLE / s UNSATISFIABLE / s OPTIMUM FOUND
    SATISFIABLE / UNSATISFIABLE
    1 / 0                   (HWMCC style; '1' may start an AIGER witness)
    s<N>                    satisfiable with a witness of length N
    u<N>                    no witness up to depth N
    o <N>                   objective value

Logs can be huge, so the scanner is a single pass character state machine
with one character of pushback, reading the file in chunks.

Usage:
    from solver_log_parser import parse_log_file

    parse_log_file(entry, 'runs/solver-a/instance.log', config)
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, TextIO

from zummary_model import (Entry, Outcome, UnsatBoundTracking, ZummarizeConfig,
                           ZummarizeError, mark_unsat_bounds_broken)

logger = logging.getLogger(__name__)

EOF = ''
CHUNK_SIZE = 1 << 16

INT_MAX = 2 ** 31 - 1
LONG_MAX = 2 ** 63 - 1

MARKERS = {
    '0': Outcome.UNSAT,
    '1': Outcome.SAT,
    'sat': Outcome.SAT,
    'unsat': Outcome.UNSAT,
    's SATISFIABLE': Outcome.SAT,
    's UNSATISFIABLE': Outcome.UNSAT,
    's OPTIMUM FOUND': Outcome.SAT,
    's OPTIMIUM FOUND': Outcome.SAT,
    'SATISFIABLE': Outcome.SAT,
    'UNSATISFIABLE': Outcome.UNSAT,
}

# Line prefixes followed by a decimal number: (attribute, largest value).
NUMBERED = {
    's': ('min_sat_bound', INT_MAX),
    'u': ('max_unsat_bound', INT_MAX),
    'o ': ('objective', LONG_MAX),
}

PREFIXES = frozenset(
    marker[:i] for marker in list(MARKERS) + list(NUMBERED)
    for i in range(1, len(marker) + 1))

TRACE_CHARS = '01x'


class State(Enum):
    AWAIT_LINE_START = 'await-line-start'
    MATCHING_LITERAL = 'matching-literal'
    AWAIT_NEWLINE = 'await-newline'
    WITNESS_HEADER = 'witness-header'
    WITNESS_TRACE_LINE = 'witness-trace-line'
    WITNESS_TRACE_CHAR = 'witness-trace-char'
    DONE = 'done'


class SolverLogScanner:
    """Character level scanner over one solver log.

    After scan() the attributes hold what was found:
        result: Outcome.SAT, Outcome.UNSAT or Outcome.UNCLASSIFIED
        marker: text of the result line, None if there was none
        min_sat_bound, max_unsat_bound, objective: -1 if not seen
    """

    def __init__(self, stream: TextIO, path='<log>'):
        self.stream = stream
        self.path = path
        self.result = Outcome.UNCLASSIFIED
        self.marker: Optional[str] = None
        self.min_sat_bound = -1
        self.max_unsat_bound = -1
        self.objective = -1
        self._buffer = ''
        self._pos = 0
        self._saved = EOF
        self._saved_valid = False
        self._prefix = ''
        self._digits = ''
        self._header = 0
        self._trace_lines = 0
        self._transitions = {
            State.AWAIT_LINE_START: self._await_line_start,
            State.MATCHING_LITERAL: self._matching_literal,
            State.AWAIT_NEWLINE: self._await_newline,
            State.WITNESS_HEADER: self._witness_header,
            State.WITNESS_TRACE_LINE: self._witness_trace_line,
            State.WITNESS_TRACE_CHAR: self._witness_trace_char,
        }

    def _next(self) -> str:
        if self._saved_valid:
            self._saved_valid = False
            return self._saved
        if self._pos == len(self._buffer):
            self._buffer = self.stream.read(CHUNK_SIZE)
            self._pos = 0
            if not self._buffer:
                return EOF
        ch = self._buffer[self._pos]
        self._pos += 1
        return ch

    def _save(self, ch: str):
        assert not self._saved_valid
        self._saved = ch
        self._saved_valid = True

    def scan(self) -> 'SolverLogScanner':
        state = State.AWAIT_LINE_START
        while state is not State.DONE:
            state = self._transitions[state](self._next())
        return self

    def _await_line_start(self, ch: str) -> State:
        if ch == EOF:
            return State.DONE
        if ch in '\n\r':
            return State.AWAIT_LINE_START
        if ch in PREFIXES:
            self._prefix = ch
            self._digits = ''
            return State.MATCHING_LITERAL
        return State.AWAIT_NEWLINE

    def _await_newline(self, ch: str) -> State:
        if ch == EOF:
            return State.DONE
        if ch == '\n':
            return State.AWAIT_LINE_START
        return State.AWAIT_NEWLINE

    def _matching_literal(self, ch: str) -> State:
        if ch == EOF:
            return State.DONE
        if ch == '\n':
            if self._digits:
                return self._numbered_line()
            if self._prefix in MARKERS:
                return self._marker_line()
            return State.AWAIT_LINE_START
        if self._prefix in NUMBERED and ch.isdigit() and ch.isascii():
            self._digits += ch
            return State.MATCHING_LITERAL
        if self._digits:
            return State.AWAIT_NEWLINE
        self._prefix += ch
        if self._prefix in PREFIXES:
            return State.MATCHING_LITERAL
        return State.AWAIT_NEWLINE

    def _numbered_line(self) -> State:
        attr, largest = NUMBERED[self._prefix]
        value = int(self._digits)
        if value > largest:
            return State.AWAIT_LINE_START
        if attr == 'min_sat_bound':
            logger.debug("found 's%d' line in '%s'", value, self.path)
            if self.min_sat_bound < 0 or self.min_sat_bound > value:
                self.min_sat_bound = value
        elif attr == 'max_unsat_bound':
            logger.debug("found 'u%d' line in '%s'", value, self.path)
            if self.max_unsat_bound < value:
                self.max_unsat_bound = value
        else:
            logger.debug("found 'o %d' line in '%s'", value, self.path)
            self.objective = value
        return State.AWAIT_LINE_START

    def _marker_line(self) -> State:
        if self._prefix == '1':
            self._header = 0
            return State.WITNESS_HEADER
        self._record(self._prefix)
        return State.AWAIT_LINE_START

    def _record(self, marker: str):
        logger.debug("found '%s' line in '%s'", marker, self.path)
        if self.marker is not None:
            if self.marker != marker:
                raise ZummarizeError(
                    f"two different results '{self.marker}' and '{marker}' in '{self.path}'")
            logger.warning("two (identical) results '%s' and '%s' in '%s'",
                           self.marker, marker, self.path)
        self.marker = marker
        self.result = MARKERS[marker]

    # AIGER witness: comment lines, 'b0' or 'j0', trace lines, '.'

    def _witness_header(self, ch: str) -> State:
        if self._header == 0:
            if ch == 'c':
                self._header = -1
                return State.WITNESS_HEADER
            if ch in ('b', 'j'):
                self._header = 1
                return State.WITNESS_HEADER
            return self._invalid_witness(ch)
        if self._header < 0:
            if ch == EOF:
                return self._invalid_witness(ch)
            if ch == '\n':
                self._header = 0
            return State.WITNESS_HEADER
        if self._header == 1:
            if ch != '0':
                return self._invalid_witness(ch)
            self._header = 2
            return State.WITNESS_HEADER
        if ch != '\n':
            return self._invalid_witness(ch)
        self._trace_lines = 0
        return State.WITNESS_TRACE_LINE

    def _witness_trace_line(self, ch: str) -> State:
        if ch == '.':
            return self._end_of_witness()
        if ch == EOF or (ch not in TRACE_CHARS and ch != '\n'):
            return self._invalid_witness(ch)
        self._trace_lines += 1
        if ch == '\n':
            return State.WITNESS_TRACE_LINE
        return State.WITNESS_TRACE_CHAR

    def _witness_trace_char(self, ch: str) -> State:
        if ch == '\n':
            return State.WITNESS_TRACE_LINE
        if ch == EOF or ch not in TRACE_CHARS:
            return self._invalid_witness(ch)
        return State.WITNESS_TRACE_CHAR

    def _end_of_witness(self) -> State:
        if self._next() != '\n':
            logger.warning("no new line after '.' at end of AIGER witness in '%s'", self.path)
            return self._invalid_witness(None)
        # The first trace line is the initial state, lengths are zero based.
        length = self._trace_lines - 2
        if length < 0:
            return self._invalid_witness(None)
        logger.debug("found AIGER witness of length '%d' in '%s'", length, self.path)
        if self.min_sat_bound < 0 or self.min_sat_bound > length:
            self.min_sat_bound = length
        self._record('1')
        return State.AWAIT_LINE_START

    def _invalid_witness(self, ch: Optional[str]) -> State:
        """Give up on the witness; 'ch' (if any) starts the next line."""
        if ch is not None:
            self._save(ch)
        logger.warning("invalid AIGER witness in '%s'", self.path)
        self._record('1')
        return State.AWAIT_LINE_START


def scan_log(stream: TextIO, path='<log>') -> SolverLogScanner:
    return SolverLogScanner(stream, path).scan()


def parse_log_file(entry: Entry, log_path, config: ZummarizeConfig):
    """Scan a solver log and settle the verdict and bound of the entry.

    - a sat bound next to an explicit unsat line aborts the run
    - a sat bound without any result line forces sat ('--just' forces unsat)
    - a sat bound not above the unsat bound drops the unsat bound and marks
      the directory's unsat bounds as locally broken
    """
    logger.debug("parsing log file '%s'", log_path)
    try:
        f = open(log_path, 'r', encoding='utf-8', errors='ignore', newline='\n')
    except OSError as e:
        raise ZummarizeError(f"failed to open '{log_path}': {e}") from e
    with f:
        scan = scan_log(f, log_path)

    entry.result = scan.result
    entry.min_sat_bound = scan.min_sat_bound
    entry.max_unsat_bound = scan.max_unsat_bound
    entry.objective = scan.objective

    if scan.marker is None:
        logger.debug("no proper sat/unsat line found in '%s'", log_path)
    if entry.min_sat_bound >= 0:
        logger.debug("found minimum sat-bound 's%d' in '%s'", entry.min_sat_bound, log_path)
    if entry.max_unsat_bound >= 0:
        logger.debug("found maximum unsat-bound 'u%d' in '%s'", entry.max_unsat_bound, log_path)

    if 0 <= entry.min_sat_bound <= entry.max_unsat_bound:
        logger.warning("minimum sat-bound %d <= maximum unsat-bound %d in '%s'",
                       entry.min_sat_bound, entry.max_unsat_bound, log_path)
        logger.warning("ignoring maximum unsat-bound %d in '%s'", entry.max_unsat_bound, log_path)
        entry.max_unsat_bound = -1
        mark_unsat_bounds_broken(entry.zummary, UnsatBoundTracking.LOCALLY_BROKEN)

    if entry.min_sat_bound >= 0 and entry.result == Outcome.UNSAT:
        raise ZummarizeError(
            f"minimum sat-bound {entry.min_sat_bound} and with unsat result line in '{log_path}'")

    if entry.min_sat_bound >= 0 and entry.result != Outcome.SAT:
        if config.just:
            logger.warning("minimum sat-bound %d and no result line found in '%s' (forcing unsat)",
                           entry.min_sat_bound, log_path)
            entry.result = Outcome.UNSAT
        else:
            logger.warning("minimum sat-bound %d and no result line found in '%s' (forcing sat)",
                           entry.min_sat_bound, log_path)
            entry.result = Outcome.SAT
    elif scan.marker is None and config.just:
        logger.debug("'--just' option forces UNSAT result in '%s'", log_path)
        entry.result = Outcome.UNSAT

    if entry.result == Outcome.SAT and entry.min_sat_bound >= 0:
        entry.bound = entry.min_sat_bound
    elif entry.max_unsat_bound >= 0 and entry.result in (Outcome.UNSAT, Outcome.UNCLASSIFIED):
        entry.bound = entry.max_unsat_bound
