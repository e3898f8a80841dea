"""Tests for the frame decoder."""

from miow.stream.decoder import FrameDecoder


def test_feed_returns_complete_lines():
    decoder = FrameDecoder()
    assert decoder.feed(b"event: agent\ndata: hello\n\n") == ["event: agent", "data: hello", ""]
    assert decoder.pending == ""


def test_partial_line_is_carried_to_next_chunk():
    decoder = FrameDecoder()
    assert decoder.feed(b'data: {"typ') == []
    assert decoder.pending == 'data: {"typ'
    assert decoder.feed(b'e":"Done"}\n') == ['data: {"type":"Done"}']
    assert decoder.pending == ""


def test_split_inside_multibyte_character():
    decoder = FrameDecoder()
    encoded = "data: café ☕\n".encode("utf-8")
    cut = encoded.index(b"\xc3") + 1  # between the two bytes of "é"

    assert decoder.feed(encoded[:cut]) == []
    assert decoder.feed(encoded[cut:]) == ["data: café ☕"]


def test_crlf_line_endings_are_stripped():
    decoder = FrameDecoder()
    assert decoder.feed(b"data: one\r\ndata: two\r\n") == ["data: one", "data: two"]


def test_finish_drops_unterminated_tail():
    decoder = FrameDecoder()
    assert decoder.feed(b"data: complete\ndata: never ends") == ["data: complete"]
    assert decoder.finish() == []
    assert decoder.pending == ""


def test_reset_discards_carry_buffer():
    decoder = FrameDecoder()
    decoder.feed(b"data: half")
    decoder.reset()
    assert decoder.feed(b" line\n") == [" line"]


def test_empty_chunk_is_a_no_op():
    decoder = FrameDecoder()
    decoder.feed(b"data: x")
    assert decoder.feed(b"") == []
    assert decoder.pending == "data: x"


def test_lines_are_independent_of_chunk_boundaries(full_stream):
    whole = FrameDecoder().feed(full_stream)

    for cut in range(1, len(full_stream)):
        decoder = FrameDecoder()
        lines = decoder.feed(full_stream[:cut]) + decoder.feed(full_stream[cut:])
        assert lines == whole, f"split at byte {cut}"

    decoder = FrameDecoder()
    byte_by_byte = []
    for i in range(len(full_stream)):
        byte_by_byte.extend(decoder.feed(full_stream[i:i + 1]))
    assert byte_by_byte == whole
