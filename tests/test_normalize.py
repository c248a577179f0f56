"""Tests for ocrmatch.normalize module."""

import pytest

from ocrmatch.normalize import CONFUSABLES, collapse_repeats, normalize_token


SAMPLES = [
    'Shadow', 'SHAD0W', 'sh@d0w', 'K1LLS 4', 'Titan 88', 'Phoenix',
    'aa-a', 'aaa-aaa', 'x--x--x', 'Ünïcødé', 'İstanbul', '', '   ',
    'B1aze!!!', 'vortex_77', 'Mr. 5pectre', '\n\n\nabc\t\t\t', 'ooo0OO',
]


class TestNormalizeToken:
    """Tests for the normalization steps."""

    def test_lowercases(self):
        assert normalize_token('BLAZE') == 'blaze'

    def test_folds_confusables(self):
        assert normalize_token('sh@d0w') == 'shaqow'
        assert normalize_token('Shadow') == 'shaqow'

    def test_ones_and_sevens_become_l(self):
        assert normalize_token('k1ll') == 'kl'
        assert normalize_token('1i7l') == 'l'

    def test_five_becomes_s(self):
        assert normalize_token('5pectre') == 'spectre'

    def test_collapses_long_runs(self):
        assert normalize_token('shaaadow') == 'shaqow'

    def test_keeps_double_letters(self):
        assert normalize_token('moon') == 'moon'

    def test_strips_non_alphanumeric(self):
        assert normalize_token('Titan 88') == 'tltan88'

    def test_strip_cannot_leave_long_run(self):
        assert normalize_token('aa-a') == 'a'

    def test_none_is_empty(self):
        assert normalize_token(None) == ''

    def test_non_string_is_converted(self):
        assert normalize_token(808) == '8o8'

    def test_only_symbols_is_empty(self):
        assert normalize_token('---') == ''

    def test_confusable_targets_are_fixed_points(self):
        for target in set(CONFUSABLES.values()):
            assert normalize_token(target) == target


class TestNormalizeProperties:
    """Properties that must hold for arbitrary input."""

    @pytest.mark.parametrize('text', SAMPLES)
    def test_idempotent(self, text):
        once = normalize_token(text)
        assert normalize_token(once) == once

    @pytest.mark.parametrize('text', SAMPLES)
    def test_output_alphabet(self, text):
        assert all(ch in 'abcdefghijklmnopqrstuvwxyz0123456789' for ch in normalize_token(text))


class TestCollapseRepeats:
    """Tests for run collapsing."""

    def test_three_collapse(self):
        assert collapse_repeats('aaab') == 'ab'

    def test_two_stay(self):
        assert collapse_repeats('aab') == 'aab'
