"""Tests for parsing runlim '.err' reports."""

import logging

import pytest

from conftest import err_text
from runlim_parser import match_field, parse_err_file
from zummary_model import ZummarizeError


def parse(ctx, tmp_path, text, name='inst', zummary=None):
    zummary = zummary if zummary is not None else ctx.new_zummary(str(tmp_path))
    entry = ctx.new_entry(zummary, name)
    path = tmp_path / f'{name}.err'
    path.write_text(text)
    return entry, parse_err_file(entry, path, ctx.config)


class TestMatchField:

    def test_longest_keys_do_not_shadow_short_ones(self):
        assert match_field(['[runlim]', 'time', 'limit:', '100', 'seconds'])[0] == 'time limit:'
        assert match_field(['[runlim]', 'time:', '1.5', 'seconds'])[0] == 'time:'
        assert match_field(['[runlim]', 'real', 'time', 'limit:', '100'])[0] == 'real time limit:'
        assert match_field(['[runlim]', 'space:', '3.0', 'MB'])[0] == 'space:'

    def test_unrelated_lines(self):
        assert match_field(['[runlim]', 'children:', '0']) == (None, None)
        assert match_field(['[runlim]', 'time:']) == (None, None)


class TestParseErrFile:

    def test_complete_report(self, ctx, tmp_path):
        entry, ok = parse(ctx, tmp_path, err_text(time=12.5, real=13.25, space=42.5,
                                                  tlim=100, rlim=200, slim=8000))
        assert ok
        assert (entry.time, entry.real, entry.space) == (12.5, 13.25, 42.5)
        z = entry.zummary
        assert (z.tlim, z.rlim, z.slim) == (100, 200, 8000)
        assert not (entry.timeout or entry.memout or entry.unknown
                    or entry.signal11 or entry.signal6)

    def test_run_tag_is_accepted(self, ctx, tmp_path):
        entry, ok = parse(ctx, tmp_path, err_text().replace('[runlim]', '[run]'))
        assert ok

    @pytest.mark.parametrize('status, flag', [
        ('out of time', 'timeout'),
        ('out of memory', 'memout'),
        ('segmentation fault', 'signal11'),
        ('signal(11)', 'signal11'),
        ('signal(6)', 'signal6'),
    ])
    def test_status_flags(self, ctx, tmp_path, status, flag):
        entry, ok = parse(ctx, tmp_path, err_text(status=status))
        assert ok
        assert getattr(entry, flag)

    def test_invalid_status_sets_no_flag(self, ctx, tmp_path, caplog):
        caplog.set_level(logging.INFO)
        entry, ok = parse(ctx, tmp_path, err_text(status='killed'))
        assert ok
        assert "invalid status line 'killed'" in caplog.text
        assert not entry.unknown

    def test_missing_field_fails_and_defaults_to_unknown(self, ctx, tmp_path, caplog):
        caplog.set_level(logging.INFO)
        text = '\n'.join(line for line in err_text().splitlines() if 'space:' not in line)
        entry, ok = parse(ctx, tmp_path, text + '\n')
        assert not ok
        assert entry.unknown
        assert "missing 'space:' line" in caplog.text

    def test_every_missing_field_is_reported(self, ctx, tmp_path, caplog):
        caplog.set_level(logging.INFO)
        entry, ok = parse(ctx, tmp_path, 'no runlim output at all\n')
        assert not ok
        assert caplog.text.count('is missing') == 8

    def test_failure_keeps_more_specific_flag(self, ctx, tmp_path):
        text = err_text(status='out of time').replace('[runlim] real:', '[runlim] ignored:')
        entry, ok = parse(ctx, tmp_path, text)
        assert not ok
        assert entry.timeout
        assert not entry.unknown

    def test_duplicate_space_line_fails(self, ctx, tmp_path, caplog):
        caplog.set_level(logging.INFO)
        entry, ok = parse(ctx, tmp_path, err_text() + '[runlim] space:\t\t\t99.0 MB\n')
        assert not ok
        assert "two 'space:' lines" in caplog.text
        assert entry.space == 10.0

    def test_negative_usage_fails(self, ctx, tmp_path):
        entry, ok = parse(ctx, tmp_path, err_text(time=-1))
        assert not ok
        assert entry.unknown

    def test_zero_limit_fails(self, ctx, tmp_path):
        entry, ok = parse(ctx, tmp_path, err_text(tlim=0))
        assert not ok
        assert entry.zummary.tlim == -1

    def test_time_limit_mismatch_fails_field(self, ctx, tmp_path):
        first, ok = parse(ctx, tmp_path, err_text(tlim=100), name='a')
        assert ok
        second, ok = parse(ctx, tmp_path, err_text(tlim=200), name='b', zummary=first.zummary)
        assert not ok
        assert first.zummary.tlim == 100

    def test_limit_mismatch_warns(self, ctx, tmp_path, caplog):
        first, _ = parse(ctx, tmp_path, err_text(rlim=100), name='a')
        parse(ctx, tmp_path, err_text(rlim=300), name='b', zummary=first.zummary)
        warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "different real time limit '300'" in warnings[0]

    def test_ignore_silences_limit_mismatch(self, ctx, tmp_path, caplog):
        ctx.config.ignore = True
        first, _ = parse(ctx, tmp_path, err_text(tlim=100), name='a')
        second, ok = parse(ctx, tmp_path, err_text(tlim=200), name='b', zummary=first.zummary)
        assert not ok
        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]

    def test_larger_space_limit_raises_directory_limit(self, ctx, tmp_path):
        first, ok = parse(ctx, tmp_path, err_text(slim=1000), name='a')
        second, ok = parse(ctx, tmp_path, err_text(slim=2000), name='b', zummary=first.zummary)
        assert ok
        assert first.zummary.slim == 2000
        third, ok = parse(ctx, tmp_path, err_text(slim=500), name='c', zummary=first.zummary)
        assert ok
        assert first.zummary.slim == 2000

    def test_strict_limits_make_mismatch_fatal(self, ctx, tmp_path):
        ctx.config.strict_limits = True
        first, _ = parse(ctx, tmp_path, err_text(tlim=100), name='a')
        with pytest.raises(ZummarizeError, match='different time limit'):
            parse(ctx, tmp_path, err_text(tlim=50), name='b', zummary=first.zummary)

    def test_unreadable_file_is_fatal(self, ctx, tmp_path):
        entry = ctx.new_entry(ctx.new_zummary(str(tmp_path)), 'gone')
        with pytest.raises(ZummarizeError, match='failed to open'):
            parse_err_file(entry, tmp_path / 'gone.err', ctx.config)
