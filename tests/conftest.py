"""Shared fixtures and helpers building benchmark run directories."""

import logging
import os

os.environ.setdefault('MPLBACKEND', 'Agg')

import pytest

from zummary_model import Outcome, ZummarizeConfig, ZummarizeContext

ERR_TEMPLATE = """\
[runlim] version:\t\t2.0.0rc3
[runlim] time limit:\t\t{tlim} seconds
[runlim] real time limit:\t{rlim} seconds
[runlim] space limit:\t\t{slim} MB
[runlim] argv[0]:\t\t./solver
[runlim] start:\t\tFri Jan  1 00:00:00 2021
[runlim] main pid:\t\t4242
[runlim] sample:\t\t0.1 time, 0.1 real, 3.0 MB, 0.9 load
[runlim] end:\t\tFri Jan  1 00:00:50 2021
[runlim] status:\t\t{status}
[runlim] result:\t\t{result}
[runlim] children:\t\t0
[runlim] real:\t\t\t{real} seconds
[runlim] time:\t\t\t{time} seconds
[runlim] space:\t\t\t{space} MB
[runlim] samples:\t\t100
"""


def err_text(status='ok', result=10, time=1.0, real=None, space=10.0,
             tlim=100, rlim=None, slim=1000):
    return ERR_TEMPLATE.format(
        status=status, result=result, time=time,
        real=time if real is None else real, space=space,
        tlim=tlim, rlim=tlim if rlim is None else rlim, slim=slim)


def write_run(directory, name, log='', **err):
    """Write '<name>.err' and '<name>.log' into 'directory'."""
    directory.mkdir(parents=True, exist_ok=True)
    (directory / f'{name}.err').write_text(err_text(**err))
    (directory / f'{name}.log').write_text(log)
    return directory


def add_entry(ctx, zummary, name, result=Outcome.UNCLASSIFIED, time=1.0, real=None,
              space=10.0, bound=-1, **flags):
    """Add an in-memory entry with the given outcome and usage."""
    e = ctx.new_entry(zummary, name)
    e.result = result
    e.time = time
    e.real = time if real is None else real
    e.space = space
    e.bound = bound
    for flag, value in flags.items():
        setattr(e, flag, value)
    return e


def new_zummary(ctx, path, tlim=100, rlim=100, slim=1000):
    z = ctx.new_zummary(path)
    z.tlim, z.rlim, z.slim = tlim, rlim, slim
    return z


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo the logging setup of CLI runs so later tests see defaults."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in root.handlers[:]:
        if type(handler) is logging.StreamHandler:
            root.removeHandler(handler)
    root.setLevel(level)
    logging.getLogger('zummary_tokens').setLevel(logging.NOTSET)


@pytest.fixture
def config():
    return ZummarizeConfig()


@pytest.fixture
def ctx(config):
    return ZummarizeContext(config)
