"""
Line tokenizer for runlim reports and zummary cache files.

A line is split into maximal runs of non-separator characters, where space,
tab and carriage return separate tokens and newline ends the line.  With a
limit only the first tokens of each line are kept; the rest of the line is
still consumed so that line numbers stay right.
"""

from __future__ import annotations

import logging
import re
from typing import Iterator, List, Optional, TextIO

logger = logging.getLogger(__name__)

SEPARATORS = re.compile(r'[ \t\r]+')

# Tokens kept per runlim report line.
RUNLIM_TOKENS = 5


FLOAT_PREFIX = re.compile(r'\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)')
INT_PREFIX = re.compile(r'\s*([+-]?\d+)')


def atof(token: str) -> float:
    """Leading number of a token, 0.0 if it does not start with one."""
    m = FLOAT_PREFIX.match(token)
    return float(m.group(1)) if m else 0.0


def atoi(token: str) -> int:
    m = INT_PREFIX.match(token)
    return int(m.group(1)) if m else 0


def tokenize_line(line: str, limit: Optional[int] = None) -> List[str]:
    tokens = [t for t in SEPARATORS.split(line.rstrip('\n')) if t]
    if limit is not None:
        del tokens[limit:]
    return tokens


class LineTokenizer:
    """Iterate over the token lists of the lines of a text stream.

    Args:
        stream: text stream opened with newline='\n' so CR stays inside lines
        limit: maximum number of tokens kept per line (None = unbounded)
    """

    def __init__(self, stream: TextIO, limit: Optional[int] = None):
        self.stream = stream
        self.limit = limit
        self.lineno = 0

    def next_line(self) -> Optional[List[str]]:
        """Return the tokens of the next line or None at end of input."""
        line = self.stream.readline()
        if not line:
            return None
        self.lineno += 1
        tokens = tokenize_line(line, self.limit)
        if logger.isEnabledFor(logging.DEBUG):
            for i, token in enumerate(tokens):
                logger.debug("token[%d,%d] %s", self.lineno, i, token)
        return tokens

    def __iter__(self) -> Iterator[List[str]]:
        while True:
            tokens = self.next_line()
            if tokens is None:
                return
            yield tokens
