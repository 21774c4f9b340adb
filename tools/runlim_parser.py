"""
Runlim Report Parser

Parses the '<base>.err' resource report written by the 'runlim' harness for
one benchmark run.  Only lines tagged '[run]' or '[runlim]' are considered
(the periodic 'sample:' lines are skipped as well) and these fields are
required exactly once:

    [runlim] time limit:        <seconds>
    [runlim] real time limit:   <seconds>
    [runlim] space limit:       <MB>
    [runlim] status:            ok | segmentation fault | signal(11) | signal(6)
                                | out of time | out of memory | ...
    [runlim] result:            <exit code>
    [runlim] time:              <seconds>
    [runlim] real:              <seconds>
    [runlim] space:             <MB>

Usage:
    from runlim_parser import parse_err_file

    ok = parse_err_file(entry, 'runs/solver-a/instance.err', config)
"""

from __future__ import annotations

import logging

from zummary_model import Entry, ZummarizeConfig, ZummarizeError, Zummary
from zummary_tokens import RUNLIM_TOKENS, LineTokenizer, atof, atoi

logger = logging.getLogger(__name__)

HARNESS_TAGS = ('[run]', '[runlim]')

# Field name, tokens after the harness tag that introduce it.
FIELDS = [
    ('time limit:', ('time', 'limit:')),
    ('real time limit:', ('real', 'time', 'limit:')),
    ('space limit:', ('space', 'limit:')),
    ('status:', ('status:',)),
    ('result:', ('result:',)),
    ('time:', ('time:',)),
    ('real:', ('real:',)),
    ('space:', ('space:',)),
]

LIMITS = {
    'time limit:': ('tlim', 'time limit'),
    'real time limit:': ('rlim', 'real time limit'),
    'space limit:': ('slim', 'space limit'),
}

USAGE = {
    'time:': ('time', 'time', '%.2f'),
    'real:': ('real', 'real time', '%.2f'),
    'space:': ('space', 'space', '%.1f'),
}


def match_field(tokens):
    """Return (field, value tokens) of a tagged report line or (None, None)."""
    for name, key in FIELDS:
        n = len(key)
        if len(tokens) > n + 1 and tuple(tokens[1:n + 1]) == key:
            return name, tokens[n + 1:]
    return None, None


def unify_limit(zummary: Zummary, attr: str, what: str, value: float,
                err_path, config: ZummarizeConfig) -> bool:
    """Merge one limit of a report into its directory.

    The first report sets the limit, later ones have to agree.  A larger
    space limit raises the directory limit instead of failing.
    """
    current = getattr(zummary, attr)
    if current < 0:
        logger.info("assuming %s '%.0f'", what, value)
        setattr(zummary, attr, value)
        return True
    if current == value:
        return True
    message = f"error file '{err_path}' with different {what} '{value:.0f}'"
    if config.strict_limits:
        raise ZummarizeError(message)
    if attr != 'slim':
        if not config.ignore:
            logger.warning(message)
        return False
    logger.info(message)
    if current < value:
        logger.info("increasing space limit to '%.0f'", value)
        zummary.slim = value
    return True


def parse_status(entry: Entry, words, err_path):
    status = ' '.join(words)
    if words[0] == 'ok':
        logger.debug("found 'ok' status in '%s'", err_path)
    elif words[0] == 'signal(11)' or words[:2] == ['segmentation', 'fault']:
        logger.debug("found 'segmentation fault' status in '%s'", err_path)
        entry.signal11 = True
    elif words[0] == 'signal(6)':
        logger.debug("found 'signal(6)' status in '%s'", err_path)
        entry.signal6 = True
    elif words[:3] == ['out', 'of', 'time']:
        logger.debug("found 'out of time' status in '%s'", err_path)
        entry.timeout = True
    elif words[:3] == ['out', 'of', 'memory']:
        logger.debug("found 'out of memory' status in '%s'", err_path)
        entry.memout = True
    else:
        logger.info("invalid status line '%s' in '%s'", status, err_path)


def parse_err_file(entry: Entry, err_path, config: ZummarizeConfig) -> bool:
    """Parse one runlim report into its entry and the entry's directory.

    Every missing, duplicated or out-of-range field is reported on its own
    and makes the parse fail.  A failed parse leaves the entry 'unknown'
    unless a more specific failure was already seen in the status line.

    Returns:
        True if all eight fields were found and valid
    """
    zummary = entry.zummary
    found = set()
    ok = True
    logger.debug("parsing error file '%s'", err_path)
    try:
        f = open(err_path, 'r', encoding='utf-8', errors='ignore', newline='\n')
    except OSError as e:
        raise ZummarizeError(f"failed to open '{err_path}': {e}") from e

    with f:
        for tokens in LineTokenizer(f, RUNLIM_TOKENS):
            if not tokens:
                continue
            if tokens[0] not in HARNESS_TAGS:
                logger.debug("skipping line starting with '%s'", tokens[0])
                continue
            if len(tokens) > 1 and tokens[1] == 'sample:':
                continue
            name, words = match_field(tokens)
            if name is None:
                continue
            if name in found:
                logger.info("error file '%s' contains two '%s' lines", err_path, name)
                ok = False
                continue
            found.add(name)

            if name in LIMITS:
                attr, what = LIMITS[name]
                value = atof(words[0])
                logger.debug("found %s '%.0f' in '%s'", what, value, err_path)
                if value <= 0:
                    logger.info("error file '%s' with invalid %s '%.0f'", err_path, what, value)
                    ok = False
                elif not unify_limit(zummary, attr, what, value, err_path, config):
                    ok = False
            elif name == 'status:':
                parse_status(entry, words, err_path)
            elif name == 'result:':
                result = atoi(words[0])
                if result in (0, 10, 20):
                    logger.debug("found '%d' result in '%s'", result, err_path)
                else:
                    logger.debug("found invalid '%d' result in '%s'", result, err_path)
            else:
                attr, what, fmt = USAGE[name]
                value = atof(words[0])
                logger.debug("found %s " + fmt + " in '%s'", what, value, err_path)
                if value < 0:
                    logger.info("invalid %s " + fmt + " in '%s'", what, value, err_path)
                    ok = False
                else:
                    setattr(entry, attr, value)

    for name, _ in FIELDS:
        if name not in found:
            logger.info("error file '%s' is missing '%s' line", err_path, name)
            ok = False

    if not ok and not (entry.timeout or entry.memout or entry.unknown
                       or entry.signal11 or entry.signal6):
        entry.unknown = True
    return ok
