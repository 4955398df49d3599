"""Exceptions raised by the scanning core"""


class GrepverseError(Exception):
    """Base class for all grepverse errors."""


class InvalidPatternError(GrepverseError, ValueError):
    """Pattern could not be compiled into a matcher."""

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid regex pattern {pattern!r}: {reason}")


class SourceAccessError(GrepverseError, OSError):
    """A source could not be opened, mapped or read.

    Fatal for that source only. Callers scanning many files report it per
    file and carry on with the rest.
    """

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read {path}: {reason}")

    def __str__(self) -> str:
        return f"Cannot read {self.path}: {self.reason}"


class WorkerFailure(GrepverseError, RuntimeError):
    """A parallel chunk task failed; the whole scan of the source is abandoned."""

    def __init__(self, chunk_index: int, reason: str):
        self.chunk_index = chunk_index
        self.reason = reason
        super().__init__(f"Chunk {chunk_index} failed: {reason}")


class LineDecodeError(GrepverseError, ValueError):
    """A line could not be decoded under the strict decode policy."""

    def __init__(self, line_number: int, reason: str):
        self.line_number = line_number
        self.reason = reason
        super().__init__(f"Line {line_number} is not valid text: {reason}")
