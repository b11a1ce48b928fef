"""
Writes the compressed dictionary binary.

Layout (no header):
    [ptr lo] [ptr hi] [bank]   x line_count    pointer table
    unique line payloads                       in first-seen order

Each pointer is stored as (address - 1): the player increments its read
cursor before fetching, so the stored value points one byte early.
"""

import os
import tempfile
from pathlib import Path
from typing import Dict, List, Tuple

import numpy as np

from .banking import BankAddress
from .dictionary import POINTER_SIZE, DedupEntry, LineDictionary
from .errors import DictionaryInvariantError
from .parser import ZsmLine


def encode_pointer_table(pointers: List[BankAddress]) -> bytes:
    """Pack addresses as biased 24-bit little-endian pointers."""
    if not pointers:
        return b''

    values = np.fromiter((p.packed for p in pointers), dtype=np.int64, count=len(pointers))
    values -= 1
    if values.min() < 0 or values.max() > 0xFFFFFF:
        raise DictionaryInvariantError("Pointer out of 24-bit range")

    # Little-endian u32, keep the low three bytes of each
    packed = values.astype('<u4').view(np.uint8).reshape(-1, 4)
    return packed[:, :POINTER_SIZE].tobytes()


def _index_lines(lines: List[ZsmLine]) -> Dict[Tuple[BankAddress, bytes], ZsmLine]:
    # Only first occurrences carry an address
    placed = {}
    for line in lines:
        if line.address is not None:
            placed.setdefault((line.address, line.fingerprint), line)
    return placed


def _resolve_line(entry: DedupEntry, placed: Dict[Tuple[BankAddress, bytes], ZsmLine]) -> ZsmLine:
    line = placed.get((entry.address, entry.fingerprint))
    if line is None:
        raise DictionaryInvariantError(
            f"Dictionary entry {entry.index} at {entry.address} has no matching line")
    return line


def serialize_dictionary(dictionary: LineDictionary) -> bytes:
    """Build the complete output image: pointer table followed by payloads."""
    if len(dictionary.pointers) != len(dictionary.lines):
        raise DictionaryInvariantError(
            f"{len(dictionary.pointers)} pointers for {len(dictionary.lines)} lines")

    output = bytearray(encode_pointer_table(dictionary.pointers))

    placed = _index_lines(dictionary.lines)
    for expected_index, entry in enumerate(dictionary.entries):
        if entry.index != expected_index:
            raise DictionaryInvariantError(
                f"Dictionary entry order broken: index {entry.index} at position {expected_index}")
        line = _resolve_line(entry, placed)
        output.extend(line.data)

    return bytes(output)


def write_dictionary(path, data: bytes) -> Path:
    """
    Write `data` to `path` atomically.

    The bytes go to a temporary file next to the target which is renamed
    over it only once fully written; on failure the target is untouched.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=path.name + '.', suffix='.tmp', dir=path.parent)
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise

    return path
