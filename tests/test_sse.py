import pytest

from byomux.sse import SSEDecoder, iter_sse_events


class TestSSEDecoder:

    def test_single_event(self):
        decoder = SSEDecoder()
        events = decoder.feed(b'event: ping\ndata: {"a": 1}\n\n')
        assert len(events) == 1
        assert events[0].event == "ping"
        assert events[0].data == '{"a": 1}'

    def test_partial_lines_across_chunks(self):
        decoder = SSEDecoder()
        assert decoder.feed(b"data: hel") == []
        assert decoder.feed(b"lo\n") == []
        events = decoder.feed(b"\n")
        assert [e.data for e in events] == ["hello"]

    def test_split_multibyte_character(self):
        decoder = SSEDecoder()
        encoded = "data: café ☕\n\n".encode("utf-8")
        split = encoded.index("☕".encode("utf-8")) + 1
        assert decoder.feed(encoded[:split]) == []
        events = decoder.feed(encoded[split:])
        assert events[0].data == "café ☕"

    def test_crlf_and_comments(self):
        decoder = SSEDecoder()
        events = decoder.feed(b": keep-alive\r\ndata: one\r\n\r\ndata: two\r\n\r\n")
        assert [e.data for e in events] == ["one", "two"]

    def test_crlf_split_between_chunks(self):
        decoder = SSEDecoder()
        assert decoder.feed(b"data: x\r") == []
        events = decoder.feed(b"\n\r\n")
        assert [e.data for e in events] == ["x"]

    def test_multiline_data(self):
        decoder = SSEDecoder()
        events = decoder.feed(b"data: a\ndata: b\n\n")
        assert events[0].data == "a\nb"

    def test_flush_dispatches_unterminated_event(self):
        decoder = SSEDecoder()
        assert decoder.feed(b"data: [DONE]") == []
        events = decoder.flush()
        assert [e.data for e in events] == ["[DONE]"]

    @pytest.mark.asyncio
    async def test_iter_sse_events(self):
        async def chunks():
            for chunk in (b"data: 1\n", b"\ndata: 2\n\n", b"data: 3"):
                yield chunk

        events = [e.data async for e in iter_sse_events(chunks())]
        assert events == ["1", "2", "3"]
