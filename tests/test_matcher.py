"""Tests for matcher construction and line predicates"""

import pytest

from grepverse.errors import InvalidPatternError
from grepverse.matcher import InvertedMatcher, LiteralMatcher, RegexMatcher, build_matcher
from grepverse.models import MatchConfig, MatchMode


def make(pattern, **kwargs):
    return build_matcher(MatchConfig(pattern=pattern, **kwargs))


class TestLiteralMatching:
    """Substring matching in literal mode"""

    def test_literal_is_default(self):
        matcher = make('error')
        assert isinstance(matcher, LiteralMatcher)
        assert matcher('an error occurred')
        assert not matcher('all good')

    def test_regex_metacharacters_are_literal(self):
        matcher = make('a.c')
        assert matcher('xa.cx')
        assert not matcher('abc')

    def test_case_sensitive_by_default(self):
        assert not make('Error')('an error occurred')

    def test_case_insensitive(self):
        matcher = make('ERROR', case_insensitive=True)
        assert matcher('an error occurred')
        assert matcher('An ErRoR occurred')

    def test_empty_pattern_matches_every_line(self):
        matcher = make('')
        assert matcher('')
        assert matcher('anything')

    def test_spans(self):
        matcher = make('ab')
        assert matcher.spans('ab-ab-a') == [(0, 2), (3, 5)]

    def test_case_insensitive_spans_point_at_original_text(self):
        matcher = make('ab', case_insensitive=True)
        assert matcher.spans('xAByab') == [(1, 3), (4, 6)]


class TestRegexMatching:
    """Regular expression mode"""

    def test_search_anywhere_in_line(self):
        matcher = make(r'err(or)?\s\d+', mode=MatchMode.REGEX)
        assert isinstance(matcher, RegexMatcher)
        assert matcher('got err 42 here')
        assert matcher('error 7')
        assert not matcher('error seven')

    def test_case_insensitive_regex(self):
        matcher = make('^warn', mode=MatchMode.REGEX, case_insensitive=True)
        assert matcher('WARNING: disk')
        assert not matcher('a WARNING')

    def test_invalid_regex_raises(self):
        with pytest.raises(InvalidPatternError) as exc_info:
            make('(unclosed', mode=MatchMode.REGEX)
        assert exc_info.value.pattern == '(unclosed'
        assert isinstance(exc_info.value, ValueError)

    def test_invalid_literal_never_raises(self):
        assert make('(unclosed')('x(unclosedx')

    def test_spans_skip_empty_matches(self):
        matcher = make('a*', mode=MatchMode.REGEX)
        assert matcher.spans('baab') == [(1, 3)]


class TestWholeWord:
    """Whole-word matching is enforced for literal and regex patterns"""

    def test_literal_whole_word(self):
        matcher = make('cat', whole_word=True)
        assert matcher('the cat sat')
        assert matcher('cat')
        assert matcher('(cat)')
        assert not matcher('concatenate')
        assert not matcher('cats')

    def test_literal_whole_word_escapes_pattern(self):
        matcher = make('a.b', whole_word=True)
        assert matcher('x a.b y')
        assert not matcher('x axb y')

    def test_regex_whole_word(self):
        matcher = make('fo+', mode=MatchMode.REGEX, whole_word=True)
        assert matcher('say fooo now')
        assert not matcher('foobar')

    def test_whole_word_wraps_alternation(self):
        matcher = make('cat|dog', mode=MatchMode.REGEX, whole_word=True)
        assert matcher('hot dog')
        assert not matcher('catalog')
        assert not matcher('dogma')

    def test_pattern_ending_with_non_word_character(self):
        matcher = make('-v', whole_word=True)
        assert matcher('run -v now')
        assert not matcher('run -vv now')

    def test_whole_word_case_insensitive(self):
        matcher = make('Cat', whole_word=True, case_insensitive=True)
        assert matcher('CAT!')
        assert not matcher('CATS')

    def test_leading_inline_flags_stay_at_start(self):
        matcher = make('(?i)cat', mode=MatchMode.REGEX, whole_word=True)
        assert matcher('a CAT sat')
        assert not matcher('concatenate')

    def test_several_leading_inline_flag_groups(self):
        matcher = make('(?i)(?s)c.t', mode=MatchMode.REGEX, whole_word=True)
        assert matcher('C\nT')
        assert not matcher('xC\nT')

    def test_scoped_flag_group_is_wrapped(self):
        matcher = make('(?i:cat)s?', mode=MatchMode.REGEX, whole_word=True)
        assert matcher('CATS here')
        assert not matcher('CATSS')


class TestInvert:
    """Inverted matchers select the complement"""

    def test_invert_literal(self):
        matcher = make('error', invert=True)
        assert isinstance(matcher, InvertedMatcher)
        assert not matcher('an error')
        assert matcher('fine')

    def test_invert_has_no_spans(self):
        assert make('x', invert=True).spans('abc') == []

    def test_invert_whole_word(self):
        matcher = make('cat', whole_word=True, invert=True)
        assert matcher('concatenate')
        assert not matcher('a cat')

    def test_invalid_regex_is_reported_before_inversion(self):
        with pytest.raises(InvalidPatternError):
            make('[', mode=MatchMode.REGEX, invert=True)
