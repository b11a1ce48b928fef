"""
ZSM music stream parser.

Splits the music stream of a ZSM file into "lines": runs of commands that
end in a pause (a delay of at least min_pause_ticks) or in the end-of-stream
marker. Lines are the unit the dictionary compressor deduplicates.

ZSM header (16 bytes):
    0x00  'zm' magic
    0x02  version
    0x03  loop point (24-bit LE)
    0x06  PCM offset (24-bit LE, 0 = no PCM)
    0x09  FM channel mask
    0x0A  PSG channel mask (16-bit LE)
    0x0C  tick rate (16-bit LE)
    0x0E  reserved

Music stream commands:
    0x00-0x3F  PSG write      [reg] [val]
    0x40       EXTCMD         [ccnnnnnn] + n bytes
    0x41-0x7F  FM write       n = low 6 bits, n x [reg] [val]
    0x80       end of stream  (PCM header/data may follow, not parsed)
    0x81-0xFF  delay          ticks = low 7 bits
"""

import hashlib
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path
from typing import List, Optional, Tuple

from .banking import BankAddress
from .errors import TruncatedStreamError, ZsmConfigError, ZsmFormatError

# =============================================================================
# ZSM Constants
# =============================================================================

ZSM_MAGIC = b'zm'
HEADER_SIZE = 16

# Header offsets
OFF_VERSION = 0x02
OFF_LOOP_POINT = 0x03
OFF_PCM_OFFSET = 0x06
OFF_FM_MASK = 0x09
OFF_PSG_MASK = 0x0A
OFF_TICK_RATE = 0x0C

# Commands
CMD_PSG_MAX = 0x3F
CMD_EXT = 0x40
CMD_FM_MAX = 0x7F
CMD_EOF = 0x80

# Line terminated by the end-of-stream marker rather than a delay
PAUSE_EOF = -1

DEFAULT_MIN_PAUSE_TICKS = 1


def read_le24(data: bytes, offset: int) -> int:
    """Read little-endian 24-bit value."""
    return data[offset] | (data[offset + 1] << 8) | (data[offset + 2] << 16)


def read_le16(data: bytes, offset: int) -> int:
    """Read little-endian 16-bit value."""
    return data[offset] | (data[offset + 1] << 8)


@dataclass(frozen=True)
class ZsmHeader:
    """Parsed 16-byte ZSM header."""
    version: int
    loop_point: int
    pcm_offset: int
    fm_channel_mask: int
    psg_channel_mask: int
    tick_rate: int

    @property
    def has_pcm(self) -> bool:
        return self.pcm_offset != 0

    @property
    def has_loop(self) -> bool:
        return self.loop_point != 0

    @property
    def fm_channels(self) -> int:
        return bin(self.fm_channel_mask & 0xFF).count('1')

    @property
    def psg_channels(self) -> int:
        return bin(self.psg_channel_mask & 0xFFFF).count('1')


@dataclass
class ZsmLine:
    """
    A pause-terminated run of music stream commands.

    `data` holds the command bytes exactly as the player replays them,
    including the terminating delay or end-of-stream byte. `address` is
    only set on the first occurrence of each distinct payload.
    """
    offset: int
    length: int
    data: bytes
    ends_with_pause: bool
    pause_ticks: int
    address: Optional[BankAddress] = field(default=None, compare=False)

    @cached_property
    def fingerprint(self) -> bytes:
        """SHA-256 of the payload; empty payloads map to b''."""
        if not self.data:
            return b''
        return hashlib.sha256(self.data).digest()

    @property
    def fingerprint_hex(self) -> str:
        return self.fingerprint.hex()


def parse_header(data: bytes) -> ZsmHeader:
    """Parse and validate the ZSM header."""
    if len(data) < HEADER_SIZE:
        raise ZsmFormatError(f"File too small to be a valid ZSM ({len(data)} bytes)")

    if data[:2] != ZSM_MAGIC:
        raise ZsmFormatError(f"Not a ZSM file (missing 'zm' magic, got {bytes(data[:2])!r})")

    return ZsmHeader(
        version=data[OFF_VERSION],
        loop_point=read_le24(data, OFF_LOOP_POINT),
        pcm_offset=read_le24(data, OFF_PCM_OFFSET),
        fm_channel_mask=data[OFF_FM_MASK],
        psg_channel_mask=read_le16(data, OFF_PSG_MASK),
        tick_rate=read_le16(data, OFF_TICK_RATE),
    )


def command_length(data: bytes, pos: int) -> int:
    """
    Total size in bytes of the command starting at data[pos].

    Raises TruncatedStreamError if the EXTCMD length byte is missing.
    """
    cmd = data[pos]

    if cmd <= CMD_PSG_MAX:
        return 2
    if cmd == CMD_EXT:
        if pos + 1 >= len(data):
            raise TruncatedStreamError(len(data), "EXTCMD header missing")
        return 2 + (data[pos + 1] & 0x3F)
    if cmd <= CMD_FM_MAX:
        return 1 + 2 * (cmd & 0x3F)
    return 1


def is_line_end(cmd: int, min_pause_ticks: int) -> bool:
    """True if the single-byte command `cmd` terminates a line."""
    if cmd == CMD_EOF:
        return True
    return cmd > CMD_EOF and (cmd & 0x7F) >= min_pause_ticks


def scan_line(data: bytes, start: int, min_pause_ticks: int = DEFAULT_MIN_PAUSE_TICKS) -> int:
    """
    Find the end of the line beginning at data[start].

    Returns the offset just past the terminating delay/EOF byte.
    """
    pos = start
    while pos < len(data):
        cmd = data[pos]
        size = command_length(data, pos)
        if pos + size > len(data):
            raise TruncatedStreamError(len(data), f"Command 0x{cmd:02X} runs past end of data")
        pos += size
        if size == 1 and is_line_end(cmd, min_pause_ticks):
            return pos

    raise TruncatedStreamError(len(data), "Line has no terminating pause")


class ZsmParser:
    """
    Splits a ZSM music stream into lines.

    A delay with ticks >= min_pause_ticks, or the end-of-stream marker,
    closes the current line. With include_ext_cmds=False, EXTCMD blocks are
    still consumed from the input (offsets advance) but left out of the
    line data.
    """

    def __init__(self, min_pause_ticks: int = DEFAULT_MIN_PAUSE_TICKS,
                 include_ext_cmds: bool = True):
        if min_pause_ticks < 1:
            raise ZsmConfigError(f"min_pause_ticks must be >= 1 (got {min_pause_ticks})")
        self.min_pause_ticks = min_pause_ticks
        self.include_ext_cmds = include_ext_cmds

    def parse_file(self, path) -> Tuple[ZsmHeader, List[ZsmLine]]:
        with open(Path(path), 'rb') as f:
            data = f.read()
        return self.parse_bytes(data)

    def parse_bytes(self, data: bytes) -> Tuple[ZsmHeader, List[ZsmLine]]:
        """Parse a complete ZSM file image into its header and lines."""
        header = parse_header(data)

        lines: List[ZsmLine] = []
        current = bytearray()
        line_start = HEADER_SIZE
        pos = HEADER_SIZE

        while True:
            if pos >= len(data):
                raise TruncatedStreamError(pos, "Music stream ended without end-of-stream marker")

            cmd = data[pos]
            size = command_length(data, pos)
            end = pos + size
            if end > len(data):
                raise TruncatedStreamError(len(data), f"Command 0x{cmd:02X} at 0x{pos:06X} truncated")

            if cmd == CMD_EXT and not self.include_ext_cmds:
                # Consumed but not stored
                pos = end
                continue

            current += data[pos:end]
            pos = end

            if cmd == CMD_EOF:
                lines.append(self._finalize(current, line_start, PAUSE_EOF))
                break

            if cmd > CMD_EOF:
                ticks = cmd & 0x7F
                if ticks >= self.min_pause_ticks:
                    lines.append(self._finalize(current, line_start, ticks))
                    line_start = pos

        return header, lines

    @staticmethod
    def _finalize(current: bytearray, start: int, pause_ticks: int) -> ZsmLine:
        data = bytes(current)
        current.clear()
        return ZsmLine(
            offset=start,
            length=len(data),
            data=data,
            ends_with_pause=True,
            pause_ticks=pause_ticks,
        )
