"""
Exception types raised by the ZSM dictionary compressor.

Input problems derive from ValueError (like the VGM tools' "Invalid VGM
magic" errors), internal consistency problems from RuntimeError.
"""

from typing import Optional


class ZsmError(Exception):
    """Base class for all zsmpack errors."""


class ZsmFormatError(ZsmError, ValueError):
    """The input is not a well-formed ZSM music stream."""


class TruncatedStreamError(ZsmFormatError):
    """A command declared more bytes than the input holds."""

    def __init__(self, offset: int, message: Optional[str] = None):
        self.offset = offset
        if message is None:
            message = "Unexpected end of stream"
        super().__init__(f"{message} at offset 0x{offset:06X}")


class DictionaryDecodeError(ZsmFormatError):
    """A compressed dictionary could not be expanded."""


class ZsmConfigError(ZsmError, ValueError):
    """Invalid compressor configuration."""


class BankOverflowError(ZsmError):
    """Allocation ran past the last bank a 3-byte pointer can address."""


class DictionaryInvariantError(ZsmError, RuntimeError):
    """Dedup entries, addresses and lines disagree with each other."""
