"""Shared fixtures: synthetic ZSM file images."""

import struct

import pytest


def build_zsm(stream: bytes, version: int = 1, loop_point: int = 0, pcm_offset: int = 0,
              fm_mask: int = 0xFF, psg_mask: int = 0xFFFF, tick_rate: int = 60,
              magic: bytes = b'zm') -> bytes:
    header = bytearray(magic)
    header.append(version)
    header.extend(struct.pack('<I', loop_point)[:3])
    header.extend(struct.pack('<I', pcm_offset)[:3])
    header.append(fm_mask)
    header.extend(struct.pack('<H', psg_mask))
    header.extend(struct.pack('<H', tick_rate))
    header.extend(b'\x00\x00')
    assert len(header) == 16
    return bytes(header) + bytes(stream)


@pytest.fixture
def make_zsm():
    return build_zsm


@pytest.fixture
def song_stream():
    """A short looping pattern: two bars repeated, one variation, silence."""
    bar_a = bytes([0x00, 0x05, 0x01, 0x10, 0x81])
    bar_b = bytes([0x41, 0x28, 0xF0, 0x82])
    fill = bytes([0x42, 0x28, 0x00, 0x28, 0x01, 0x00, 0x3F, 0x84])
    return bar_a + bar_b + bar_a + bar_b + fill + bar_a + bytes([0x80])
