"""Tests for source discovery: walking, glob filtering and text detection"""

import os
import tempfile

from grepverse.file_utils import collect_sources, is_text_file, should_process_file, walk_files


def write(path, content='content\n', mode='w'):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, mode) as f:
        f.write(content)


class TestIsTextFile:
    """Binary detection by null bytes"""

    def test_text_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'a.txt')
            write(path)
            assert is_text_file(path)

    def test_binary_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'a.bin')
            write(path, bytes([0, 1, 2, 255]), mode='wb')
            assert not is_text_file(path)

    def test_missing_file(self):
        assert not is_text_file('/nonexistent/file.txt')


class TestShouldProcessFile:
    """Include and exclude globs apply to the file name"""

    def test_no_patterns(self):
        assert should_process_file('/a/b/c.log')

    def test_include(self):
        assert should_process_file('/a/b/c.log', include=['*.log'])
        assert not should_process_file('/a/b/c.txt', include=['*.log'])

    def test_any_include_is_enough(self):
        assert should_process_file('c.txt', include=['*.log', '*.txt'])

    def test_exclude_wins(self):
        assert not should_process_file('debug.log', include=['*.log'], exclude=['debug*'])

    def test_glob_does_not_see_directory(self):
        assert not should_process_file('/logs/app.txt', include=['logs*'])


class TestWalkFiles:
    """Iterative directory walking"""

    def test_walk_sorted_depth_first(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            write(os.path.join(tmpdir, 'b.txt'))
            write(os.path.join(tmpdir, 'a', 'z.txt'))
            write(os.path.join(tmpdir, 'a', 'y.txt'))
            write(os.path.join(tmpdir, 'c', 'x.txt'))

            found = [os.path.relpath(p, tmpdir) for p in walk_files(tmpdir)]
            assert found == ['b.txt', os.path.join('a', 'y.txt'), os.path.join('a', 'z.txt'), os.path.join('c', 'x.txt')]

    def test_walk_skips_binary_files(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            write(os.path.join(tmpdir, 'text.txt'))
            write(os.path.join(tmpdir, 'binary.bin'), bytes([0, 1, 2]), mode='wb')

            found = list(walk_files(tmpdir))
            assert len(found) == 1
            assert found[0].endswith('text.txt')
            assert len(list(walk_files(tmpdir, text_only=False))) == 2

    def test_walk_applies_globs(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            write(os.path.join(tmpdir, 'app.log'))
            write(os.path.join(tmpdir, 'sub', 'other.log'))
            write(os.path.join(tmpdir, 'sub', 'notes.txt'))
            write(os.path.join(tmpdir, 'sub', 'debug.log'))

            found = sorted(os.path.basename(p) for p in walk_files(tmpdir, include=['*.log'], exclude=['debug*']))
            assert found == ['app.log', 'other.log']

    def test_walk_deep_tree(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = tmpdir
            for i in range(60):
                path = os.path.join(path, f'd{i}')
            write(os.path.join(path, 'deep.txt'))

            found = list(walk_files(tmpdir))
            assert len(found) == 1
            assert found[0].endswith('deep.txt')

    def test_walk_max_files(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            for i in range(5):
                write(os.path.join(tmpdir, f'{i}.txt'))
            assert len(list(walk_files(tmpdir, max_files=3))) == 3

    def test_walk_max_files_from_env(self, monkeypatch):
        monkeypatch.setenv('GREPVERSE_MAX_FILES', '2')
        with tempfile.TemporaryDirectory() as tmpdir:
            for i in range(5):
                write(os.path.join(tmpdir, f'{i}.txt'))
            assert len(list(walk_files(tmpdir))) == 2

    def test_symlinked_directory_not_followed(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            write(os.path.join(tmpdir, 'real', 'file.txt'))
            os.symlink(os.path.join(tmpdir, 'real'), os.path.join(tmpdir, 'link'))

            found = [os.path.relpath(p, tmpdir) for p in walk_files(tmpdir)]
            assert found == [os.path.join('real', 'file.txt')]


class TestCollectSources:
    """Expanding command-line paths"""

    def test_stdin_and_missing_paths_pass_through(self):
        assert list(collect_sources(['-', '/nonexistent/x.log'])) == ['-', '/nonexistent/x.log']

    def test_directory_requires_recursive(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            write(os.path.join(tmpdir, 'a.txt'))
            assert list(collect_sources([tmpdir])) == []
            assert len(list(collect_sources([tmpdir], recursive=True))) == 1

    def test_explicit_files_are_filtered(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            log = os.path.join(tmpdir, 'a.log')
            txt = os.path.join(tmpdir, 'a.txt')
            write(log)
            write(txt)
            assert list(collect_sources([log, txt], include=['*.log'])) == [log]

    def test_order_is_preserved(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            first = os.path.join(tmpdir, 'z.txt')
            second = os.path.join(tmpdir, 'a.txt')
            write(first)
            write(second)
            assert list(collect_sources([first, '-', second])) == [first, '-', second]
