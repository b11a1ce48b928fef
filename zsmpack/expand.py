"""
Expands a compressed dictionary back into its line sequence.

This walks the pointer table the way the player does: follow each pointer
(+1 for the read bias), map the banked address back to a position in the
file and read commands until the line's closing pause.
"""

from typing import List, Optional

from .banking import BankAddress, BankWindow
from .dictionary import POINTER_SIZE
from .errors import DictionaryDecodeError, TruncatedStreamError
from .parser import DEFAULT_MIN_PAUSE_TICKS, read_le24, scan_line


def read_pointers(blob: bytes, line_count: int) -> List[BankAddress]:
    """Decode `line_count` biased pointers from the start of `blob`."""
    table_size = line_count * POINTER_SIZE
    if table_size > len(blob):
        raise DictionaryDecodeError(
            f"Pointer table for {line_count} lines needs {table_size} bytes, have {len(blob)}")

    return [BankAddress.from_packed(read_le24(blob, pos) + 1)
            for pos in range(0, table_size, POINTER_SIZE)]


def infer_line_count(blob: bytes, window: BankWindow) -> int:
    """
    Derive the pointer count from the first pointer.

    The first line is always the first stored payload, which starts
    directly after the pointer table.
    """
    if len(blob) < POINTER_SIZE:
        raise DictionaryDecodeError("Dictionary too small to hold a pointer")

    first = read_pointers(blob, 1)[0]
    table_size = window.linear(first)
    if table_size <= 0 or table_size % POINTER_SIZE:
        raise DictionaryDecodeError(f"First pointer {first} does not follow a pointer table")
    return table_size // POINTER_SIZE


def expand_dictionary(blob: bytes, window: BankWindow = None, line_count: Optional[int] = None,
                      min_pause_ticks: int = DEFAULT_MIN_PAUSE_TICKS,
                      lengths: Optional[List[int]] = None) -> List[bytes]:
    """
    Return the payload of every original line, in playback order.

    Without `lengths` each line is read up to its closing pause, the way
    the player reads it. A zero-length line shares its address with the
    line stored after it, so scanning returns that line's bytes instead;
    pass the known line lengths to recover such lines exactly.
    """
    if window is None:
        window = BankWindow()
    if line_count is None:
        line_count = infer_line_count(blob, window)

    if lengths is not None and len(lengths) != line_count:
        raise DictionaryDecodeError(f"{len(lengths)} lengths given for {line_count} lines")

    payload_start = line_count * POINTER_SIZE
    lines = []

    for i, address in enumerate(read_pointers(blob, line_count)):
        start = window.linear(address)
        if not payload_start <= start <= len(blob):
            raise DictionaryDecodeError(
                f"Pointer {i} ({address}) lies outside the payload area")

        if lengths is not None:
            end = start + lengths[i]
            if end > len(blob):
                raise DictionaryDecodeError(
                    f"Line {i} at {address} runs {end - len(blob)} bytes past the end")
            lines.append(bytes(blob[start:end]))
            continue

        try:
            end = scan_line(blob, start, min_pause_ticks)
        except TruncatedStreamError as e:
            raise DictionaryDecodeError(f"Line {i} at {address}: {e}") from e
        lines.append(bytes(blob[start:end]))

    return lines
