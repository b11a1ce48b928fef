"""
End-to-end ZSM dictionary compression.

    ZSM bytes -> lines -> deduplicated, banked dictionary -> output bytes

Nothing is written until the whole output has been built.
"""

from dataclasses import dataclass
from typing import List

from .banking import DEFAULT_BANK, DEFAULT_BASE_ADDRESS, DEFAULT_WINDOW_SIZE, BankAllocator, BankWindow
from .dictionary import DictionaryStats, LineDictionary, build_dictionary
from .errors import ZsmConfigError
from .expand import expand_dictionary
from .parser import DEFAULT_MIN_PAUSE_TICKS, ZsmHeader, ZsmLine, ZsmParser
from .serializer import serialize_dictionary, write_dictionary


@dataclass(frozen=True)
class CompressOptions:
    """
    Compressor settings.

    start_bank, base_address and window_size must match the player build;
    a mismatch is not detectable here and just plays back garbage.
    """
    start_bank: int = DEFAULT_BANK
    base_address: int = DEFAULT_BASE_ADDRESS
    window_size: int = DEFAULT_WINDOW_SIZE
    min_pause_ticks: int = DEFAULT_MIN_PAUSE_TICKS
    include_ext_cmds: bool = True

    def __post_init__(self):
        if self.min_pause_ticks < 1:
            raise ZsmConfigError(f"min_pause_ticks must be >= 1 (got {self.min_pause_ticks})")
        # Validates the bank/address settings
        self.window()

    def window(self) -> BankWindow:
        return BankWindow(self.start_bank, self.base_address, self.window_size)

    def parser(self) -> ZsmParser:
        return ZsmParser(self.min_pause_ticks, self.include_ext_cmds)


@dataclass
class CompressResult:
    """Everything produced by one compression run."""
    header: ZsmHeader
    lines: List[ZsmLine]
    dictionary: LineDictionary
    data: bytes
    options: CompressOptions

    @property
    def stats(self) -> DictionaryStats:
        return self.dictionary.stats()

    def verify(self) -> bool:
        """
        Expand the output again and compare it with the parsed lines.

        Lines are cut to their parsed lengths rather than scanned, so
        zero-length lines are checked too.
        """
        expanded = expand_dictionary(
            self.data,
            window=self.options.window(),
            line_count=len(self.lines),
            min_pause_ticks=self.options.min_pause_ticks,
            lengths=[line.length for line in self.lines],
        )
        return expanded == [line.data for line in self.lines]


def compress_bytes(data: bytes, options: CompressOptions = None) -> CompressResult:
    """Compress an in-memory ZSM file image."""
    if options is None:
        options = CompressOptions()

    header, lines = options.parser().parse_bytes(data)
    return compress_lines(header, lines, options)


def compress_lines(header: ZsmHeader, lines: List[ZsmLine], options: CompressOptions = None) -> CompressResult:
    """Deduplicate and serialize already parsed lines."""
    if options is None:
        options = CompressOptions()

    dictionary = build_dictionary(lines, BankAllocator(options.window()))
    output = serialize_dictionary(dictionary)

    return CompressResult(header, lines, dictionary, output, options)


def compress_file(input_path, output_path, options: CompressOptions = None) -> CompressResult:
    """Compress a ZSM file and write the dictionary to `output_path`."""
    if options is None:
        options = CompressOptions()

    header, lines = options.parser().parse_file(input_path)
    result = compress_lines(header, lines, options)
    write_dictionary(output_path, result.data)
    return result
