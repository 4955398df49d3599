"""Line predicates built from a MatchConfig

A matcher is created once per scan and shared by reference with every chunk
worker, so none of the variants below keep mutable state after __init__.
"""

import logging
import re

from grepverse.errors import InvalidPatternError
from grepverse.models import MatchConfig, MatchMode

logger = logging.getLogger(__name__)

# Explicit boundaries instead of \b so that patterns starting or ending with a
# non-word character (e.g. "-v" or "foo(") still require a word edge outside.
WHOLE_WORD_TEMPLATE = r'(?<!\w)(?:{})(?!\w)'

# Global inline flags such as (?i) must stay at the very start of the expression
LEADING_FLAGS = re.compile(r'^(?:\(\?[aiLmsux]+\))+')


class Matcher:
    """Base class: decides whether a single decoded line is selected."""

    def matches(self, text: str) -> bool:
        raise NotImplementedError

    def spans(self, text: str) -> list[tuple[int, int]]:
        """Character ranges of the pattern inside text, used for highlighting."""
        raise NotImplementedError

    def __call__(self, text: str) -> bool:
        return self.matches(text)


class LiteralMatcher(Matcher):
    """Plain substring containment"""

    def __init__(self, pattern: str, case_insensitive: bool = False):
        self._case_insensitive = case_insensitive
        self._pattern = pattern.lower() if case_insensitive else pattern

    def matches(self, text: str) -> bool:
        if self._case_insensitive:
            text = text.lower()
        return self._pattern in text

    def spans(self, text: str) -> list[tuple[int, int]]:
        if not self._pattern:
            return []
        haystack = text.lower() if self._case_insensitive else text
        # lower() can change the length of some characters; highlighting is
        # best effort in that case
        if len(haystack) != len(text):
            return []
        result = []
        start = haystack.find(self._pattern)
        while start != -1:
            end = start + len(self._pattern)
            result.append((start, end))
            start = haystack.find(self._pattern, end)
        return result

    def __repr__(self) -> str:
        return f'LiteralMatcher({self._pattern!r}, case_insensitive={self._case_insensitive})'


class RegexMatcher(Matcher):
    """Compiled regular expression, matched anywhere in the line"""

    def __init__(self, regex: re.Pattern):
        self._regex = regex

    def matches(self, text: str) -> bool:
        return self._regex.search(text) is not None

    def spans(self, text: str) -> list[tuple[int, int]]:
        return [m.span() for m in self._regex.finditer(text) if m.end() > m.start()]

    def __repr__(self) -> str:
        return f'RegexMatcher({self._regex.pattern!r})'


class InvertedMatcher(Matcher):
    """Selects exactly the lines the wrapped matcher rejects"""

    def __init__(self, inner: Matcher):
        self._inner = inner

    def matches(self, text: str) -> bool:
        return not self._inner.matches(text)

    def spans(self, text: str) -> list[tuple[int, int]]:
        # a selected line is one where the pattern is absent
        return []

    def __repr__(self) -> str:
        return f'InvertedMatcher({self._inner!r})'


def compile_pattern(pattern: str, case_insensitive: bool = False) -> re.Pattern:
    flags = re.IGNORECASE if case_insensitive else 0
    try:
        return re.compile(pattern, flags)
    except re.error as e:
        raise InvalidPatternError(pattern, str(e)) from e


def wrap_whole_word(source: str) -> str:
    flags = LEADING_FLAGS.match(source)
    prefix = flags.group(0) if flags else ''
    return prefix + WHOLE_WORD_TEMPLATE.format(source[len(prefix) :])


def build_matcher(config: MatchConfig) -> Matcher:
    """
    Compile a MatchConfig into a matcher.

    Literal patterns use substring containment unless whole-word matching is
    requested, in which case they are escaped and compiled like a regex with
    explicit word boundaries around them.

    Args:
        config: Matching policy

    Returns:
        Matcher instance, wrapped in InvertedMatcher when config.invert is set

    Raises:
        InvalidPatternError: If a regex pattern does not compile
    """
    if config.mode == MatchMode.REGEX:
        source = config.pattern
    elif config.whole_word:
        source = re.escape(config.pattern)
    else:
        source = None

    if source is None:
        matcher: Matcher = LiteralMatcher(config.pattern, case_insensitive=config.case_insensitive)
    else:
        # compile the bare pattern first so errors point at what the user wrote
        regex = compile_pattern(source, config.case_insensitive)
        if config.whole_word:
            regex = compile_pattern(wrap_whole_word(source), config.case_insensitive)
        matcher = RegexMatcher(regex)

    if config.invert:
        matcher = InvertedMatcher(matcher)

    logger.debug(f"[MATCHER] Built {matcher!r} from mode={config.mode.value} whole_word={config.whole_word}")
    return matcher
