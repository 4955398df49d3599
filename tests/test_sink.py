"""Tests for result sinks"""

import json

from grepverse.errors import SourceAccessError
from grepverse.matcher import build_matcher
from grepverse.models import LineRecord, MatchConfig, OutputBlock, SearchResponse
from grepverse.sink import CollectSink, CountSink, TextSink


def block(*records):
    return OutputBlock(tuple(LineRecord(n, text, matched) for n, text, matched in records))


BLOCKS = [
    block((1, 'a', False), (2, 'hit one', True), (3, 'b', False)),
    block((7, 'c', False), (8, 'hit two', True), (9, 'hit three', True)),
]


class TestTextSink:
    """grep-style output"""

    def test_plain_lines(self, capsys):
        sink = TextSink(show_names=False)
        sink.write('f.log', [block((2, 'hit', True))])
        assert capsys.readouterr().out == 'hit\n'

    def test_names_and_line_numbers(self, capsys):
        sink = TextSink(show_names=True, line_numbers=True, context=1)
        matched = sink.write('f.log', BLOCKS)
        out = capsys.readouterr().out.splitlines()
        assert matched == 3
        assert out == [
            'f.log-1-a',
            'f.log:2:hit one',
            'f.log-3-b',
            '--',
            'f.log-7-c',
            'f.log:8:hit two',
            'f.log:9:hit three',
        ]

    def test_contiguous_blocks_have_no_separator(self, capsys):
        sink = TextSink(show_names=False, context=1)
        sink.write('f', [block((1, 'x', True), (2, 'y', False)), block((3, 'z', False), (4, 'w', True))])
        assert '--' not in capsys.readouterr().out

    def test_no_separator_without_context(self, capsys):
        sink = TextSink(show_names=False, context=0)
        sink.write('f', [block((1, 'x', True)), block((5, 'y', True))])
        assert capsys.readouterr().out == 'x\ny\n'

    def test_separator_between_sources(self, capsys):
        sink = TextSink(show_names=True, context=1)
        sink.write('a', [block((1, 'x', True))])
        sink.write('b', [block((2, 'y', True))])
        assert capsys.readouterr().out.splitlines() == ['a:x', '--', 'b:y']

    def test_stdin_label(self, capsys):
        TextSink(show_names=True).write('-', [block((1, 'x', True))])
        assert capsys.readouterr().out == '(standard input):x\n'

    def test_highlight(self):
        sink = TextSink(matcher=build_matcher(MatchConfig(pattern='hit')), colorize=True)
        highlighted = sink.highlight('a hit b')
        assert '\x1b[' in highlighted
        assert highlighted.startswith('a ')
        assert highlighted.endswith(' b')

    def test_no_highlight_without_color(self):
        sink = TextSink(matcher=build_matcher(MatchConfig(pattern='hit')), colorize=False)
        assert sink.highlight('a hit b') == 'a hit b'

    def test_report_error_goes_to_stderr(self, capsys):
        TextSink().report_error('x.log', SourceAccessError('x.log', 'No such file or directory'))
        captured = capsys.readouterr()
        assert captured.out == ''
        assert 'Cannot read x.log: No such file or directory' in captured.err


class TestCountSink:
    """Only matched records are counted"""

    def test_counts_matches_not_context(self, capsys):
        sink = CountSink()
        sink.write('f', BLOCKS)
        sink.write('g', [block((1, 'x', True))])
        sink.close()
        assert capsys.readouterr().out == '4\n'

    def test_zero(self, capsys):
        sink = CountSink()
        sink.write('f', [])
        sink.close()
        assert capsys.readouterr().out == '0\n'


class TestCollectSink:
    """JSON collection"""

    def test_collects_results_and_errors(self, capsys):
        sink = CollectSink(SearchResponse(pattern='hit', context=1))
        sink.write('f.log', BLOCKS)
        sink.report_error('missing.log', SourceAccessError('missing.log', 'No such file or directory'))
        sink.close()

        data = json.loads(capsys.readouterr().out)
        assert data['pattern'] == 'hit'
        assert data['total_matches'] == 3
        assert [f['path'] for f in data['files']] == ['f.log', 'missing.log']
        assert data['files'][0]['match_count'] == 3
        assert data['files'][0]['blocks'][1]['records'][0]['line_number'] == 7
        assert data['files'][1]['error'].startswith('Cannot read missing.log')

    def test_emit_false_prints_nothing(self, capsys):
        sink = CollectSink(SearchResponse(pattern='x'), emit=False)
        sink.write('f', [block((1, 'x', True))])
        sink.close()
        assert capsys.readouterr().out == ''
        assert sink.response.total_matches == 1
