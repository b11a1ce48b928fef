"""
ZSM line-dictionary compressor.

Deduplicates the pause-terminated lines of a ZSM music stream and lays the
unique lines out in banked memory behind a pointer table, for players that
replay music straight out of paged RAM.

Usage:
    from zsmpack import CompressOptions, compress_file

    result = compress_file("song.zsm", "AUDCOMP.BIN", CompressOptions(start_bank=1))
    print(result.stats.output_size)
"""

from .banking import BankAddress, BankAllocator, BankWindow
from .compress import CompressOptions, CompressResult, compress_bytes, compress_file, compress_lines
from .dictionary import DedupEntry, DictionaryStats, LineDictionary, build_dictionary
from .errors import (
    BankOverflowError,
    DictionaryDecodeError,
    DictionaryInvariantError,
    TruncatedStreamError,
    ZsmConfigError,
    ZsmError,
    ZsmFormatError,
)
from .expand import expand_dictionary
from .parser import ZsmHeader, ZsmLine, ZsmParser
from .serializer import encode_pointer_table, serialize_dictionary, write_dictionary

__version__ = "0.1.0"
__all__ = [
    # Pipeline
    "CompressOptions",
    "CompressResult",
    "compress_bytes",
    "compress_file",
    "compress_lines",
    # Parsing
    "ZsmHeader",
    "ZsmLine",
    "ZsmParser",
    # Dictionary
    "BankAddress",
    "BankAllocator",
    "BankWindow",
    "DedupEntry",
    "DictionaryStats",
    "LineDictionary",
    "build_dictionary",
    "encode_pointer_table",
    "serialize_dictionary",
    "write_dictionary",
    "expand_dictionary",
    # Errors
    "ZsmError",
    "ZsmFormatError",
    "TruncatedStreamError",
    "DictionaryDecodeError",
    "ZsmConfigError",
    "BankOverflowError",
    "DictionaryInvariantError",
]
