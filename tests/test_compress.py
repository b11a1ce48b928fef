"""End-to-end tests: compression pipeline, expansion and round trips."""

import pytest

from zsmpack.banking import BankWindow
from zsmpack.compress import CompressOptions, compress_bytes, compress_file, compress_lines
from zsmpack.errors import DictionaryDecodeError, ZsmConfigError, ZsmFormatError
from zsmpack.expand import expand_dictionary, infer_line_count, read_pointers
from zsmpack.parser import ZsmHeader, ZsmLine


class TestCompressOptions:

    def test_defaults(self):
        options = CompressOptions()
        assert options.window() == BankWindow(1, 0xA000, 0x2000)
        assert options.parser().min_pause_ticks == 1
        assert options.parser().include_ext_cmds

    def test_rejects_zero_pause_threshold(self):
        with pytest.raises(ZsmConfigError):
            CompressOptions(min_pause_ticks=0)

    def test_rejects_bad_window(self):
        with pytest.raises(ZsmConfigError):
            CompressOptions(base_address=0xFFFF, window_size=0x100)

    def test_rejects_window_ending_at_top_of_memory(self):
        # The end-of-window address 0x10000 would spill into the bank byte
        with pytest.raises(ZsmConfigError):
            CompressOptions(base_address=0xFF00, window_size=0x100, min_pause_ticks=2)


class TestCompressBytes:

    def test_round_trip(self, make_zsm, song_stream):
        result = compress_bytes(make_zsm(song_stream))
        expanded = expand_dictionary(result.data, line_count=len(result.lines))
        assert b''.join(expanded) == song_stream
        assert result.verify()

    def test_round_trip_across_banks(self, make_zsm, song_stream):
        options = CompressOptions(start_bank=4, base_address=0x6000, window_size=0x08)
        result = compress_bytes(make_zsm(song_stream), options)
        expanded = expand_dictionary(result.data, window=options.window())
        assert expanded == [line.data for line in result.lines]

    def test_round_trip_with_pause_threshold(self, make_zsm):
        stream = b'\x00\x01\x81\x00\x02\x83\x00\x01\x81\x00\x02\x83\x00\x03\x81\x80'
        options = CompressOptions(min_pause_ticks=3)
        result = compress_bytes(make_zsm(stream), options)
        assert result.stats.line_count == 3
        assert result.stats.unique_count == 2
        assert result.verify()

    def test_deterministic(self, make_zsm, song_stream):
        data = make_zsm(song_stream)
        assert compress_bytes(data).data == compress_bytes(data).data

    def test_extended_commands_stripped(self, make_zsm):
        stream = b'\x40\x02\x11\x22\x00\x05\x81\x80'
        result = compress_bytes(make_zsm(stream), CompressOptions(include_ext_cmds=False))
        assert b'\x11\x22' not in result.data
        assert result.lines[0].data == b'\x00\x05\x81'
        assert result.verify()

    def test_bad_magic(self, make_zsm):
        with pytest.raises(ZsmFormatError):
            compress_bytes(make_zsm(b'\x80', magic=b'VG'))

    def test_output_never_larger_than_lines_plus_table(self, make_zsm, song_stream):
        stats = compress_bytes(make_zsm(song_stream)).stats
        assert stats.unique_size <= stats.total_size
        assert stats.output_size == stats.unique_size + 3 * stats.line_count


class TestCompressFile:

    def test_writes_output(self, tmp_path, make_zsm, song_stream):
        source = tmp_path / "song.zsm"
        source.write_bytes(make_zsm(song_stream))
        target = tmp_path / "build" / "AUDCOMP.BIN"

        result = compress_file(source, target)
        assert target.read_bytes() == result.data

    def test_no_output_on_format_error(self, tmp_path, make_zsm):
        source = tmp_path / "song.zsm"
        source.write_bytes(make_zsm(b'\x80', magic=b'no'))
        target = tmp_path / "AUDCOMP.BIN"

        with pytest.raises(ZsmFormatError):
            compress_file(source, target)
        assert not target.exists()


class TestExpand:

    def test_infers_line_count(self, make_zsm, song_stream):
        result = compress_bytes(make_zsm(song_stream))
        assert infer_line_count(result.data, BankWindow()) == 7

    def test_pointers_resolve_duplicates(self, make_zsm):
        result = compress_bytes(make_zsm(b'\x00\x05\x81\x00\x05\x81\x80'))
        pointers = read_pointers(result.data, 3)
        assert pointers == result.dictionary.pointers

    def test_pointer_outside_payload(self):
        # One pointer aimed back into the pointer table itself
        blob = b'\xFF\x9F\x01' + b'\x80'
        with pytest.raises(DictionaryDecodeError):
            expand_dictionary(blob, line_count=1)

    def test_short_pointer_table(self):
        with pytest.raises(DictionaryDecodeError):
            read_pointers(b'\x02\xA0', 1)

    def test_unterminated_line(self):
        blob = b'\x02\xA0\x01' + b'\x00\x05'
        with pytest.raises(DictionaryDecodeError):
            expand_dictionary(blob, line_count=1)


class TestEmptyLines:

    HEADER = ZsmHeader(1, 0, 0, 0xFF, 0xFFFF, 60)

    @pytest.fixture
    def lines(self):
        return [
            ZsmLine(16, 0, b'', False, 0),
            ZsmLine(16, 3, b'\x00\x01\x81', True, 1),
            ZsmLine(19, 0, b'', False, 0),
            ZsmLine(19, 1, b'\x80', True, -1),
        ]

    def test_round_trip(self, lines):
        result = compress_lines(self.HEADER, lines)
        assert result.stats.unique_count == 3
        assert result.verify()

    def test_shares_address_with_next_line(self, lines):
        result = compress_lines(self.HEADER, lines)
        pointers = read_pointers(result.data, 4)
        assert pointers[0] == pointers[1]
        assert pointers[2] == pointers[0]

    def test_expand_with_lengths(self, lines):
        result = compress_lines(self.HEADER, lines)
        expanded = expand_dictionary(result.data, line_count=4, lengths=[0, 3, 0, 1])
        assert expanded == [b'', b'\x00\x01\x81', b'', b'\x80']

    def test_scanning_reads_following_line(self, lines):
        result = compress_lines(self.HEADER, lines)
        expanded = expand_dictionary(result.data, line_count=4)
        assert expanded[0] == b'\x00\x01\x81'

    def test_length_count_must_match(self, lines):
        result = compress_lines(self.HEADER, lines)
        with pytest.raises(DictionaryDecodeError):
            expand_dictionary(result.data, line_count=4, lengths=[0, 3])

    def test_length_past_end(self, lines):
        result = compress_lines(self.HEADER, lines)
        with pytest.raises(DictionaryDecodeError):
            expand_dictionary(result.data, line_count=4, lengths=[0, 3, 0, 5])
