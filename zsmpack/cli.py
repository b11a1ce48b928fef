#!/usr/bin/env python3
"""
zsm2dict - Compress ZSM music into a line dictionary for banked playback

Splits the music stream into pause-terminated lines, stores every distinct
line once and writes a pointer table (3 bytes per line) in front of the
unique line data. The player must be built with the same bank, base
address and window size.

Usage:
    zsm2dict song.zsm -o AUDCOMP.BIN
    zsm2dict song.zsm --bank 2 --base-address 0xA000
    zsm2dict song.zsm --strip-ext --min-pause 2
    zsm2dict song.zsm --stats 20 --verify
"""

import argparse
import sys
from pathlib import Path

from .banking import DEFAULT_BANK, DEFAULT_BASE_ADDRESS, DEFAULT_WINDOW_SIZE
from .compress import CompressOptions, CompressResult, compress_lines
from .errors import ZsmError
from .parser import DEFAULT_MIN_PAUSE_TICKS
from .serializer import write_dictionary

OUTPUT_SUFFIX = '.zdc'


def parse_int(value: str) -> int:
    """Parse decimal or 0x-prefixed hex."""
    try:
        return int(value, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}")


def print_summary(result: CompressResult, top: int = 0):
    """Print header info and size accounting."""
    header = result.header
    stats = result.stats

    print(f"  ZSM version {header.version}, tick rate {header.tick_rate} Hz")
    print(f"  Channels: {header.fm_channels} FM, {header.psg_channels} PSG"
          f"{', PCM' if header.has_pcm else ''}{', looped' if header.has_loop else ''}")
    print(f"  Lines: {stats.line_count:,} ({stats.unique_count:,} unique, {stats.duplicate_count:,} repeats)")
    print(f"  Stream size: {stats.total_size:,} bytes")
    print(f"  Unique data: {stats.unique_size:,} bytes, pointer table: {stats.pointer_table_size:,} bytes")
    print(f"  Output: {stats.output_size:,} bytes ({stats.ratio * 100:.1f}% of stream)")

    if top > 0:
        print("  Most repeated lines:")
        for entry in result.dictionary.most_repeated(top):
            digest = entry.fingerprint_hex[:16] or '(empty)'
            print(f"    {digest:16}  x{entry.count:<5} {entry.size:4} bytes @ {entry.address}")


def convert_file(input_path: str, output_path: str = None, options: CompressOptions = None,
                 top: int = 0, verify: bool = False) -> bool:
    """Compress one ZSM file. Returns False on error."""

    input_path = Path(input_path)

    if not input_path.exists():
        print(f"Error: File not found: {input_path}", file=sys.stderr)
        return False

    if output_path is None:
        output_path = input_path.with_suffix(OUTPUT_SUFFIX)
    else:
        output_path = Path(output_path)

    if options is None:
        options = CompressOptions()

    print(f"Compressing: {input_path.name}")

    try:
        header, lines = options.parser().parse_file(input_path)
    except OSError as e:
        print(f"Error reading {input_path}: {e}", file=sys.stderr)
        return False
    except ZsmError as e:
        print(f"Error parsing {input_path}: {e}", file=sys.stderr)
        return False

    try:
        result = compress_lines(header, lines, options)
    except ZsmError as e:
        print(f"Error compressing {input_path}: {e}", file=sys.stderr)
        return False

    try:
        write_dictionary(output_path, result.data)
    except OSError as e:
        print(f"Error writing {output_path}: {e}", file=sys.stderr)
        return False

    print_summary(result, top)

    if verify:
        try:
            verified = result.verify()
        except ZsmError as e:
            print(f"Error verifying {output_path}: {e}", file=sys.stderr)
            return False
        if not verified:
            print(f"Error: {output_path} does not expand back to the original lines", file=sys.stderr)
            return False
        print(f"  Verified: {len(result.lines):,} lines expand correctly")

    print(f"  Written: {output_path}")
    print()

    return True


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Compress ZSM music into a deduplicated line dictionary'
    )
    parser.add_argument('input', help='Input ZSM file')
    parser.add_argument('-o', '--output', help=f'Output file (default: input with {OUTPUT_SUFFIX})')
    parser.add_argument('-b', '--bank', type=parse_int, default=DEFAULT_BANK,
                        help=f'First memory bank of the dictionary (default: {DEFAULT_BANK})')
    parser.add_argument('--base-address', type=parse_int, default=DEFAULT_BASE_ADDRESS,
                        help=f'Bank window start address (default: 0x{DEFAULT_BASE_ADDRESS:04X})')
    parser.add_argument('--window-size', type=parse_int, default=DEFAULT_WINDOW_SIZE,
                        help=f'Bytes per bank (default: 0x{DEFAULT_WINDOW_SIZE:04X})')
    parser.add_argument('--min-pause', type=parse_int, default=DEFAULT_MIN_PAUSE_TICKS, metavar='TICKS',
                        help='Shortest delay that ends a line (default: 1)')
    parser.add_argument('--strip-ext', action='store_true',
                        help='Drop EXTCMD commands from the output')
    parser.add_argument('--stats', type=parse_int, default=0, metavar='N',
                        help='List the N most repeated lines')
    parser.add_argument('--verify', action='store_true',
                        help='Expand the output again and check it against the input')

    args = parser.parse_args(argv)

    try:
        options = CompressOptions(
            start_bank=args.bank,
            base_address=args.base_address,
            window_size=args.window_size,
            min_pause_ticks=args.min_pause,
            include_ext_cmds=not args.strip_ext,
        )
    except ZsmError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    success = convert_file(args.input, args.output, options, args.stats, args.verify)
    return 0 if success else 1


if __name__ == '__main__':
    sys.exit(main())
