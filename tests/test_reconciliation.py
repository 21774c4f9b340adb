"""Tests for cross-directory reconciliation and best result selection."""

import itertools
import logging

import pytest

from conftest import add_entry, new_zummary
from entry_classifier import FixMode, fix_zummaries
from reconciliation import (check_bounds, check_discrepancies, check_limits,
                            check_objectives, compare_entries, compute_deep,
                            find_best, reconcile, sort_zummaries)
from zummary_model import Outcome, UnsatBoundTracking, ZummarizeError


def settle(ctx):
    """Run the passes the CLI runs before printing the table."""
    reconcile(ctx)
    check_limits(ctx)
    fix_zummaries(ctx, FixMode.GLOBAL_WITHOUT_BEST)
    find_best(ctx)
    fix_zummaries(ctx, FixMode.GLOBAL_WITH_BEST)
    compute_deep(ctx)


class TestDiscrepancies:

    def test_tie_flags_both(self, ctx, caplog):
        a = add_entry(ctx, new_zummary(ctx, 'runs/a'), 'inst', Outcome.SAT)
        b = add_entry(ctx, new_zummary(ctx, 'runs/b'), 'inst', Outcome.UNSAT)
        assert check_discrepancies(ctx) == 1
        assert a.disagreement and b.disagreement
        assert "DISCREPANCY on 'inst' with 1 SAT = 1 UNSAT" in caplog.text
        assert 'tie so assumed wrong' in caplog.text

    def test_majority_flags_minority(self, ctx, caplog):
        a = add_entry(ctx, new_zummary(ctx, 'runs/a'), 'inst', Outcome.SAT)
        b = add_entry(ctx, new_zummary(ctx, 'runs/b'), 'inst', Outcome.SAT)
        c = add_entry(ctx, new_zummary(ctx, 'runs/c'), 'inst', Outcome.UNSAT)
        assert check_discrepancies(ctx) == 1
        assert not a.disagreement and not b.disagreement
        assert c.disagreement
        assert "! runs/c/inst UNSAT (overvoted so probably wrong)" in caplog.text

    def test_flagged_entries_counted_as_disagreement(self, ctx):
        za, zb = new_zummary(ctx, 'runs/a'), new_zummary(ctx, 'runs/b')
        add_entry(ctx, za, 'inst', Outcome.SAT)
        add_entry(ctx, zb, 'inst', Outcome.UNSAT)
        add_entry(ctx, zb, 'other', Outcome.UNSAT)
        settle(ctx)
        assert (za.dis, za.sat) == (1, 0)
        assert (zb.dis, zb.uns) == (1, 1)
        for z in ctx.zummaries:
            assert z.outcome_total() == z.cnt

    def test_agreement_is_silent(self, ctx, caplog):
        add_entry(ctx, new_zummary(ctx, 'runs/a'), 'inst', Outcome.SAT)
        add_entry(ctx, new_zummary(ctx, 'runs/b'), 'inst', Outcome.SAT, timeout=True)
        assert check_discrepancies(ctx) == 0
        assert 'DISCREPANCY' not in caplog.text


class TestBoundsAndObjectives:

    def test_unsat_bound_beyond_witness_breaks_directory(self, ctx, caplog):
        za, zb = new_zummary(ctx, 'runs/a'), new_zummary(ctx, 'runs/b')
        add_entry(ctx, za, 'inst', Outcome.SAT, bound=5)
        add_entry(ctx, zb, 'inst', Outcome.TIMEOUT, timeout=True, bound=7)
        other = add_entry(ctx, zb, 'other', Outcome.TIMEOUT, timeout=True, bound=3)
        check_bounds(ctx)
        assert zb.unsat_bounds == UnsatBoundTracking.GLOBALLY_BROKEN
        assert za.unsat_bounds == UnsatBoundTracking.OK
        assert 'unsat-bound 7' in caplog.text
        fix_zummaries(ctx, FixMode.GLOBAL_WITHOUT_BEST)
        assert other.bound == -1
        assert zb.bnd == 0

    def test_unsat_bound_below_witness_is_fine(self, ctx):
        za, zb = new_zummary(ctx, 'runs/a'), new_zummary(ctx, 'runs/b')
        add_entry(ctx, za, 'inst', Outcome.SAT, bound=5)
        add_entry(ctx, za, 'inst2', Outcome.SAT, bound=9)
        add_entry(ctx, zb, 'inst', Outcome.TIMEOUT, timeout=True, bound=4)
        check_bounds(ctx)
        assert zb.unsat_bounds == UnsatBoundTracking.OK

    def test_shortest_witness_is_used(self, ctx):
        za, zb, zc = (new_zummary(ctx, f'runs/{n}') for n in 'abc')
        add_entry(ctx, za, 'inst', Outcome.SAT, bound=9)
        add_entry(ctx, zb, 'inst', Outcome.SAT, bound=5)
        add_entry(ctx, zc, 'inst', Outcome.TIMEOUT, timeout=True, bound=6)
        check_bounds(ctx)
        assert zc.unsat_bounds == UnsatBoundTracking.GLOBALLY_BROKEN

    def test_differing_objectives_flag_sat_entries(self, ctx, caplog):
        a = add_entry(ctx, new_zummary(ctx, 'runs/a'), 'inst', Outcome.SAT, objective=3)
        b = add_entry(ctx, new_zummary(ctx, 'runs/b'), 'inst', Outcome.SAT, objective=4)
        c = add_entry(ctx, new_zummary(ctx, 'runs/c'), 'inst', Outcome.SAT)
        check_objectives(ctx)
        assert a.disagreement and b.disagreement and c.disagreement
        assert 'optimum 3' in caplog.text

    def test_equal_objectives(self, ctx):
        a = add_entry(ctx, new_zummary(ctx, 'runs/a'), 'inst', Outcome.SAT, objective=3)
        b = add_entry(ctx, new_zummary(ctx, 'runs/b'), 'inst', Outcome.SAT, objective=3)
        check_objectives(ctx)
        assert not a.disagreement and not b.disagreement


class TestLimits:

    def test_differing_limits_warn(self, ctx, caplog):
        add_entry(ctx, new_zummary(ctx, 'runs/a', tlim=100), 'x')
        add_entry(ctx, new_zummary(ctx, 'runs/b', tlim=200), 'x')
        check_limits(ctx)
        assert "different time limit in 'runs/a' and 'runs/b'" in caplog.text

    def test_ignore_silences_warning(self, ctx, caplog):
        ctx.config.ignore = True
        add_entry(ctx, new_zummary(ctx, 'runs/a', tlim=100), 'x')
        add_entry(ctx, new_zummary(ctx, 'runs/b', tlim=200), 'x')
        check_limits(ctx)
        assert 'different' not in caplog.text

    def test_strict_limits(self, ctx):
        ctx.config.strict_limits = True
        add_entry(ctx, new_zummary(ctx, 'runs/a', slim=1000), 'x')
        add_entry(ctx, new_zummary(ctx, 'runs/b', slim=2000), 'x')
        with pytest.raises(ZummarizeError, match='different space limit'):
            check_limits(ctx)

    def test_empty_directories_are_skipped(self, ctx, caplog):
        new_zummary(ctx, 'runs/empty', tlim=-1)
        add_entry(ctx, new_zummary(ctx, 'runs/a', tlim=100), 'x')
        check_limits(ctx)
        assert 'different' not in caplog.text

    @pytest.mark.parametrize('tlim, rlim, timing, use_real', [
        (100, 100, 'auto', True),
        (100, 200, 'auto', False),
        (200, 100, 'auto', True),
        (100, 200, 'real', True),
        (100, 100, 'process', False),
    ])
    def test_timing_metric(self, ctx, tlim, rlim, timing, use_real):
        ctx.config.timing = timing
        add_entry(ctx, new_zummary(ctx, 'runs/a', tlim=tlim, rlim=rlim), 'x')
        check_limits(ctx)
        assert ctx.use_real is use_real


class TestCompareEntries:

    def entries(self, ctx):
        z = new_zummary(ctx, 'runs/a')
        return [
            add_entry(ctx, z, 'sat-fast', Outcome.SAT, time=1, real=2),
            add_entry(ctx, z, 'sat-slow', Outcome.SAT, time=5, real=1),
            add_entry(ctx, z, 'sat-short', Outcome.SAT, time=1, real=2, bound=3),
            add_entry(ctx, z, 'sat-long', Outcome.SAT, time=1, real=2, bound=8),
            add_entry(ctx, z, 'unsat', Outcome.UNSAT, time=0.5),
            add_entry(ctx, z, 'unsat-big', Outcome.UNSAT, time=0.5, space=99),
            add_entry(ctx, z, 'deep', Outcome.TIMEOUT, time=100, bound=20),
            add_entry(ctx, z, 'shallow', Outcome.TIMEOUT, time=100, bound=2),
            add_entry(ctx, z, 'nothing', Outcome.TIMEOUT, time=100),
            add_entry(ctx, z, 'dis', Outcome.SAT, time=0.1, disagreement=True),
            None,
        ]

    @pytest.mark.parametrize('use_real', [False, True])
    def test_antisymmetric(self, ctx, use_real):
        entries = self.entries(ctx)
        for a, b in itertools.product(entries, repeat=2):
            assert compare_entries(a, b, use_real) == -compare_entries(b, a, use_real)

    def test_order(self, ctx):
        e = {x.name: x for x in self.entries(ctx) if x is not None}
        assert compare_entries(e['sat-slow'], e['unsat'], False) < 0
        assert compare_entries(e['sat-fast'], e['sat-slow'], False) < 0
        assert compare_entries(e['sat-slow'], e['sat-fast'], True) < 0
        assert compare_entries(e['sat-short'], e['sat-long'], False) < 0
        assert compare_entries(e['sat-short'], e['sat-fast'], False) < 0
        assert compare_entries(e['unsat'], e['unsat-big'], False) < 0
        assert compare_entries(e['unsat'], e['deep'], False) < 0
        assert compare_entries(e['deep'], e['shallow'], False) < 0

    def test_uninformative_entries_compare_as_missing(self, ctx):
        e = {x.name: x for x in self.entries(ctx) if x is not None}
        assert compare_entries(e['nothing'], None, False) == 0
        assert compare_entries(e['dis'], None, False) == 0
        assert compare_entries(e['shallow'], e['nothing'], False) < 0


class TestBestAndDeep:

    def test_best_and_unique(self, ctx):
        za, zb = new_zummary(ctx, 'runs/a'), new_zummary(ctx, 'runs/b')
        fast = add_entry(ctx, za, 'both', Outcome.SAT, time=1)
        slow = add_entry(ctx, zb, 'both', Outcome.SAT, time=9)
        only = add_entry(ctx, zb, 'only-b', Outcome.UNSAT, time=3)
        add_entry(ctx, za, 'only-b', Outcome.TIMEOUT, timeout=True, time=100)
        settle(ctx)
        assert fast.best is fast and slow.best is fast
        assert only.best is only
        assert ctx.symbols.get('both').sat == 2
        assert (za.bst, za.unq) == (1, 0)
        assert (zb.bst, zb.unq) == (1, 1)

    def test_tied_entries_are_both_best(self, ctx):
        za, zb = new_zummary(ctx, 'runs/a'), new_zummary(ctx, 'runs/b')
        add_entry(ctx, za, 'inst', Outcome.UNSAT, time=2)
        add_entry(ctx, zb, 'inst', Outcome.UNSAT, time=2)
        settle(ctx)
        assert za.bst == 1 and zb.bst == 1
        assert za.unq == 0 and zb.unq == 0

    def test_deep_score(self, ctx):
        za, zb = new_zummary(ctx, 'runs/a'), new_zummary(ctx, 'runs/b')
        add_entry(ctx, za, 'hard', Outcome.TIMEOUT, timeout=True, bound=8)
        add_entry(ctx, zb, 'hard', Outcome.TIMEOUT, timeout=True, bound=2000)
        add_entry(ctx, za, 'easy', Outcome.SAT, bound=1)
        add_entry(ctx, za, 'harder', Outcome.TIMEOUT, timeout=True)
        settle(ctx)
        assert za.deep == pytest.approx((1e5 - 1e5 / 10) / 2)
        assert zb.deep == pytest.approx((1e5 - 1e5 / 1002) / 2)

    def test_deep_score_skipped_for_broken_bounds(self, ctx):
        za = new_zummary(ctx, 'runs/a')
        add_entry(ctx, za, 'hard', Outcome.TIMEOUT, timeout=True, bound=8)
        za.unsat_bounds = UnsatBoundTracking.LOCALLY_BROKEN
        settle(ctx)
        assert za.deep == 0

    def test_sat_projection(self, ctx):
        ctx.config.sat_only = True
        za = new_zummary(ctx, 'runs/a')
        add_entry(ctx, za, 's', Outcome.SAT)
        add_entry(ctx, za, 'u', Outcome.UNSAT)
        add_entry(ctx, za, 't', Outcome.TIMEOUT, timeout=True)
        settle(ctx)
        assert (za.cnt, za.sat, za.uns) == (1, 1, 0)

    def test_unsat_projection(self, ctx):
        ctx.config.unsat_only = True
        za = new_zummary(ctx, 'runs/a')
        add_entry(ctx, za, 's', Outcome.SAT)
        add_entry(ctx, za, 'u', Outcome.UNSAT)
        add_entry(ctx, za, 't', Outcome.TIMEOUT, timeout=True)
        settle(ctx)
        assert (za.cnt, za.sat, za.uns) == (1, 0, 1)

    def test_deep_projection_keeps_unsolved_instances(self, ctx):
        ctx.config.deep_only = True
        za, zb = new_zummary(ctx, 'runs/a'), new_zummary(ctx, 'runs/b')
        add_entry(ctx, za, 'solved', Outcome.SAT, time=3)
        add_entry(ctx, zb, 'solved', Outcome.TIMEOUT, timeout=True, time=100)
        add_entry(ctx, za, 'open', Outcome.TIMEOUT, timeout=True, time=100, bound=4)
        add_entry(ctx, zb, 'open', Outcome.MEMOUT, memout=True, time=40)
        settle(ctx)
        assert (za.cnt, za.sat, za.tio) == (1, 0, 1)
        assert (zb.cnt, zb.tio, zb.meo) == (1, 0, 1)


class TestSortZummaries:

    def test_more_solved_first_then_faster(self, ctx):
        slow = new_zummary(ctx, 'runs/slow')
        weak = new_zummary(ctx, 'runs/weak')
        fast = new_zummary(ctx, 'runs/fast')
        for name in ('x', 'y'):
            add_entry(ctx, slow, name, Outcome.SAT, time=50)
            add_entry(ctx, fast, name, Outcome.SAT, time=5)
        add_entry(ctx, weak, 'x', Outcome.SAT, time=1)
        add_entry(ctx, weak, 'y', Outcome.TIMEOUT, timeout=True, time=100)
        settle(ctx)
        sort_zummaries(ctx)
        assert [z.path for z in ctx.zummaries] == ['runs/fast', 'runs/slow', 'runs/weak']

    def test_par_score_ranks_first(self, ctx):
        ctx.config.par = 2
        a = new_zummary(ctx, 'runs/a')
        b = new_zummary(ctx, 'runs/b')
        add_entry(ctx, a, 'x', Outcome.SAT, time=90)
        add_entry(ctx, a, 'y', Outcome.SAT, time=90)
        add_entry(ctx, b, 'x', Outcome.SAT, time=1)
        add_entry(ctx, b, 'y', Outcome.TIMEOUT, timeout=True)
        settle(ctx)
        sort_zummaries(ctx)
        assert [z.path for z in ctx.zummaries] == ['runs/a', 'runs/b']

    def test_deep_score_ranks_deep_view(self, ctx):
        ctx.config.deep_only = True
        shallow = new_zummary(ctx, 'runs/a')
        deep = new_zummary(ctx, 'runs/b')
        add_entry(ctx, shallow, 'open', Outcome.TIMEOUT, timeout=True, time=100, bound=2)
        add_entry(ctx, deep, 'open', Outcome.TIMEOUT, timeout=True, time=100, bound=50)
        settle(ctx)
        assert deep.deep > shallow.deep > 0
        sort_zummaries(ctx)
        assert [z.path for z in ctx.zummaries] == ['runs/b', 'runs/a']

    def test_logs_sorted(self, ctx, caplog):
        caplog.set_level(logging.DEBUG, logger='reconciliation')
        new_zummary(ctx, 'runs/a')
        sort_zummaries(ctx)
        assert 'sorted all zummaries' in caplog.text
