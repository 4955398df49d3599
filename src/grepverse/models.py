"""Configuration, line records and response models"""

import codecs
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from grepverse.utils import get_max_workers, get_min_chunk_bytes, get_mmap_threshold_bytes, human_readable_size


class MatchMode(str, Enum):
    LITERAL = 'literal'
    REGEX = 'regex'


class DecodePolicy(str, Enum):
    """What to do with a line that is not valid text in the scan encoding.

    SKIP drops the line silently (it still consumes a line number), REPLACE
    decodes it with replacement characters, STRICT raises LineDecodeError.
    """

    SKIP = 'skip'
    REPLACE = 'replace'
    STRICT = 'strict'


class MatchConfig(BaseModel):
    """How a single line is tested against the pattern"""

    model_config = ConfigDict(frozen=True)

    pattern: str = Field(..., description='Literal text or regular expression')
    mode: MatchMode = Field(default=MatchMode.LITERAL, description='literal or regex')
    case_insensitive: bool = Field(default=False, description='Ignore case distinctions')
    whole_word: bool = Field(default=False, description='Only match at word boundaries')
    invert: bool = Field(default=False, description='Select lines that do NOT match')


class ScanConfig(BaseModel):
    """Everything a scanner needs besides the source itself"""

    model_config = ConfigDict(frozen=True)

    match: MatchConfig
    context: int = Field(default=0, ge=0, description='Lines of context before and after each match')
    decode_errors: DecodePolicy = Field(default=DecodePolicy.SKIP, description='Undecodable line policy')
    encoding: str = Field(default='utf-8', description='Text encoding of the scanned content')
    mmap_threshold_bytes: int = Field(
        default_factory=get_mmap_threshold_bytes, ge=0, description='Files above this size are streamed'
    )
    max_workers: int = Field(default_factory=get_max_workers, ge=1, description='Chunk worker pool size')
    min_chunk_bytes: int = Field(
        default_factory=get_min_chunk_bytes, ge=1, description='Smallest automatically planned chunk'
    )

    @field_validator('encoding')
    @classmethod
    def encoding_must_be_line_compatible(cls, v: str) -> str:
        try:
            codecs.lookup(v)
            terminators = ("\n".encode(v), "\r".encode(v))
        except LookupError:
            raise ValueError(f"unknown encoding {v!r}") from None
        # lines are split on raw b"\n" (and b"\r" is stripped) before decoding
        if terminators != (b"\n", b"\r"):
            raise ValueError(f"encoding {v!r} is not line-compatible: newline must be the single byte 0x0A")
        return v


@dataclass(frozen=True)
class LineRecord:
    """One decoded line and whether the matcher selected it.

    offset is the byte position of the line start in its source and is
    informational only: two records with the same number, text and flag are
    equal regardless of where they were read from.
    """

    line_number: int
    text: str
    matched: bool
    offset: int = field(default=-1, compare=False)


@dataclass(frozen=True)
class OutputBlock:
    """A contiguous run of matched and context records emitted as a unit"""

    records: tuple[LineRecord, ...]

    @property
    def first_line(self) -> int:
        return self.records[0].line_number

    @property
    def last_line(self) -> int:
        return self.records[-1].line_number

    @property
    def match_count(self) -> int:
        return sum(1 for record in self.records if record.matched)

    def __iter__(self):
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class Chunk:
    """A line-aligned byte range of a mapped buffer, processed by one worker"""

    index: int
    start: int  # inclusive, first byte of a line
    end: int  # exclusive, just after a newline or at end of buffer
    first_line: int = 1
    line_count: int = 0

    @property
    def size(self) -> int:
        return self.end - self.start

    @property
    def last_line(self) -> int:
        return self.first_line + self.line_count - 1


class FileScanResult(BaseModel):
    """Blocks found in one source, or the error that stopped its scan"""

    path: str = Field(..., description='File path, or "-" for standard input')
    blocks: list[OutputBlock] = Field(default_factory=list, description='Ordered output blocks')
    error: str | None = Field(default=None, description='Error message if the source could not be scanned')

    @computed_field
    @property
    def match_count(self) -> int:
        return sum(block.match_count for block in self.blocks)


class SearchResponse(BaseModel):
    """Result of a search over one or more sources"""

    pattern: str = Field(..., description='Pattern as given by the user')
    mode: MatchMode = Field(default=MatchMode.LITERAL)
    context: int = Field(default=0)
    time: float = Field(default=0.0, description='Search duration in seconds')
    files: list[FileScanResult] = Field(default_factory=list)

    @computed_field
    @property
    def total_matches(self) -> int:
        return sum(result.match_count for result in self.files)


class ChunkPlanResponse(BaseModel):
    """Line-aligned chunk layout a parallel scan would use for a file"""

    path: str
    size_bytes: int
    workers: int
    parallel: bool = Field(..., description='False when the file is above the mapping threshold')
    chunks: list[Chunk] = Field(default_factory=list)

    def to_cli(self, colorize: bool = False) -> str:
        """Format the plan for CLI output"""
        CYAN = '\033[36m'
        GREY = '\033[90m'
        YELLOW = '\033[33m'
        RESET = '\033[0m'

        lines = []
        if colorize:
            lines.append(f'{GREY}Path:{RESET} {CYAN}{self.path}{RESET}')
        else:
            lines.append(f'Path: {self.path}')
        lines.append(f'Size: {human_readable_size(self.size_bytes)} ({self.size_bytes:,} bytes)')
        lines.append(f'Workers: {self.workers}')

        if not self.parallel:
            lines.append('Mode: sequential (file is above the mapping threshold)')
            return '\n'.join(lines)

        lines.append(f'Mode: parallel, {len(self.chunks)} chunk(s)')
        for chunk in self.chunks:
            label = f'#{chunk.index}'
            if colorize:
                label = f'{YELLOW}{label}{RESET}'
            lines.append(
                f'  {label} bytes {chunk.start}-{chunk.end} '
                f'lines {chunk.first_line}-{chunk.last_line} ({chunk.line_count} lines)'
            )
        return '\n'.join(lines)
