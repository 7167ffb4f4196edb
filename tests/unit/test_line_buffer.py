"""
Unit tests for the growable line buffer.
"""

import pytest

from replserver.core.line_buffer import LineBuffer
from replserver.errors import BufferReleasedError, CapacityExceeded


class TestLineExtraction:
    """Tests for extract_lines() and partial-line carry-over."""

    def test_single_line(self):
        buf = LineBuffer()
        buf.append(b"foo\n")

        assert list(buf.extract_lines()) == [b"foo"]
        assert buf.used == 0

    def test_lines_then_partial(self):
        """k complete lines + a partial one: exactly k lines, remainder kept."""
        buf = LineBuffer()
        buf.append(b"one\ntwo\nthree\npar")

        assert list(buf.extract_lines()) == [b"one", b"two", b"three"]
        assert buf.pending() == b"par"
        assert buf.used == 3

    def test_partial_line_across_reads(self):
        buf = LineBuffer()
        buf.append(b"print(1)\nprin")
        assert list(buf.extract_lines()) == [b"print(1)"]

        buf.append(b"t(2)\n")
        assert list(buf.extract_lines()) == [b"print(2)"]
        assert buf.pending() == b""

    def test_no_newline_yields_nothing(self):
        buf = LineBuffer()
        buf.append(b"incomplete")

        assert list(buf.extract_lines()) == []
        assert buf.pending() == b"incomplete"

    def test_empty_lines_are_kept(self):
        buf = LineBuffer()
        buf.append(b"\n\nx\n")

        assert list(buf.extract_lines()) == [b"", b"", b"x"]

    def test_carriage_return_not_stripped(self):
        buf = LineBuffer()
        buf.append(b"dir\r\n")

        assert list(buf.extract_lines()) == [b"dir\r"]

    def test_extraction_is_lazy(self):
        """Nothing is consumed until the iterator is advanced."""
        buf = LineBuffer()
        buf.append(b"a\nb\n")

        lines = buf.extract_lines()
        assert buf.used == 4
        assert next(lines) == b"a"
        lines.close()

        # "a" was consumed by the closed iterator, "b" is still there
        assert buf.pending() == b"b\n"
        assert list(buf.extract_lines()) == [b"b"]

    def test_lines_not_yielded_twice(self):
        buf = LineBuffer()
        buf.append(b"a\n")

        assert list(buf.extract_lines()) == [b"a"]
        assert list(buf.extract_lines()) == []

    def test_chunked_delivery_preserves_order(self):
        """Byte-at-a-time delivery gives the same lines in the same order."""
        data = b"alpha\nbeta\ngamma\ndel"
        buf = LineBuffer(inline_size=8)
        lines = []
        for i in range(len(data)):
            buf.append(data[i:i + 1])
            lines.extend(buf.extract_lines())

        assert lines == [b"alpha", b"beta", b"gamma"]
        assert buf.pending() == b"del"


class TestInlineStorage:
    """Tests for the no-allocation common case."""

    def test_starts_inline(self):
        buf = LineBuffer(inline_size=256)

        assert buf.is_inline
        assert buf.capacity == 256
        assert buf.spare == 255

    def test_appends_within_inline_capacity_stay_inline(self):
        buf = LineBuffer(inline_size=64)
        for _ in range(20):
            buf.append(b"cmd\n")
            list(buf.extract_lines())
            assert buf.is_inline
            assert buf.capacity == 64

    def test_filling_up_to_reserved_byte_stays_inline(self):
        buf = LineBuffer(inline_size=16)
        buf.append(b"x" * 15)

        assert buf.is_inline
        assert buf.used == 15
        assert buf.spare == 0
        assert buf.should_grow()


class TestGrowAndShrink:
    """Tests for growth by doubling and shrinking back to inline."""

    def test_grow_doubles_and_keeps_data(self):
        buf = LineBuffer(inline_size=16)
        buf.append(b"x" * 15)

        assert buf.grow() == 32
        assert buf.capacity == 32
        assert not buf.is_inline
        assert buf.pending() == b"x" * 15

    def test_append_grows_as_needed(self):
        buf = LineBuffer(inline_size=16)
        buf.append(b"y" * 100)

        assert buf.capacity == 128
        assert buf.used == 100
        assert buf.used < buf.capacity

    def test_long_line_grows_then_shrinks(self):
        """A 500 byte line grows the buffer, extraction lets it shrink."""
        buf = LineBuffer(inline_size=256)
        buf.append(b"z" * 255)
        assert buf.should_grow()
        buf.grow()

        buf.append(b"z" * 245)
        buf.append(b"\n")

        assert list(buf.extract_lines()) == [b"z" * 500]
        assert buf.should_shrink()

        buf.shrink()
        assert buf.is_inline
        assert buf.capacity == 256
        assert buf.used == 0

    def test_shrink_keeps_remainder(self):
        buf = LineBuffer(inline_size=8)
        buf.append(b"0123456789\nrest")
        list(buf.extract_lines())

        buf.shrink()
        assert buf.is_inline
        assert buf.pending() == b"rest"

    def test_shrink_is_idempotent_when_inline(self):
        buf = LineBuffer(inline_size=8)
        buf.append(b"abc")

        buf.shrink()
        buf.shrink()
        assert buf.is_inline
        assert buf.capacity == 8
        assert buf.pending() == b"abc"

    def test_no_shrink_while_data_too_large(self):
        buf = LineBuffer(inline_size=8)
        buf.append(b"0123456789abcdef")

        assert not buf.should_shrink()
        buf.shrink()
        assert not buf.is_inline
        assert buf.pending() == b"0123456789abcdef"

    def test_grow_again_after_shrink(self):
        buf = LineBuffer(inline_size=8)
        buf.append(b"0123456789\n")
        list(buf.extract_lines())
        buf.shrink()

        buf.append(b"abcdefghij")
        assert not buf.is_inline
        assert buf.pending() == b"abcdefghij"


class TestLimits:
    """Tests for max_size and CapacityExceeded."""

    def test_append_beyond_max_size_raises(self):
        buf = LineBuffer(inline_size=16, max_size=64)

        with pytest.raises(CapacityExceeded) as exc_info:
            buf.append(b"x" * 100)

        assert exc_info.value.limit == 64
        # Nothing was appended, nothing was truncated
        assert buf.used == 0

    def test_growth_clamped_to_max_size(self):
        buf = LineBuffer(inline_size=16, max_size=40)
        buf.append(b"x" * 35)

        assert buf.capacity == 40

    def test_grow_at_max_size_raises(self):
        buf = LineBuffer(inline_size=16, max_size=32)
        buf.append(b"x" * 31)

        assert buf.should_grow()
        with pytest.raises(CapacityExceeded):
            buf.grow()

    def test_invalid_sizes(self):
        with pytest.raises(ValueError):
            LineBuffer(inline_size=1)
        with pytest.raises(ValueError):
            LineBuffer(inline_size=64, max_size=32)


class TestRelease:
    """Tests for release()."""

    def test_release_drops_storage(self):
        buf = LineBuffer()
        buf.append(b"abc")
        buf.release()

        assert buf.released
        assert buf.used == 0
        assert not buf.should_grow()
        assert not buf.should_shrink()

    def test_use_after_release_raises(self):
        buf = LineBuffer()
        buf.release()

        with pytest.raises(BufferReleasedError):
            buf.append(b"x")
        with pytest.raises(BufferReleasedError):
            buf.extract_lines()

    def test_release_during_extraction(self):
        """Releasing mid-iteration ends the iteration cleanly."""
        buf = LineBuffer()
        buf.append(b"a\nb\n")

        seen = []
        for line in buf.extract_lines():
            seen.append(line)
            buf.release()

        assert seen == [b"a"]
