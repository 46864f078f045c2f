"""
Incremental server-sent-events decoding.

The transport may split a line, or even a multi-byte UTF-8 character, across
chunks. `SSEDecoder` buffers the incomplete tail and only dispatches an event
once the blank line terminating it has been seen.
"""
import codecs
from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, List, Optional


@dataclass
class ServerSentEvent:
    """
    One dispatched SSE event.

    Attributes:
        event: Value of the `event:` field, or None when absent.
        data: The `data:` lines joined with newlines.
    """
    event: Optional[str]
    data: str


class SSEDecoder:
    """
    Stateful decoder: feed raw bytes, receive complete events.
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""
        self._event: Optional[str] = None
        self._data: List[str] = []

    def feed(self, chunk: bytes) -> List[ServerSentEvent]:
        """
        Consume a chunk of bytes and return every event it completes.
        """
        self._buffer += self._decoder.decode(chunk)
        events: List[ServerSentEvent] = []

        while True:
            line, found = self._next_line()
            if not found:
                break
            event = self._process_line(line)
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> List[ServerSentEvent]:
        """
        Dispatch whatever remains at end of stream.

        Servers commonly omit the final blank line, so a pending event is
        dispatched rather than dropped.
        """
        self._buffer += self._decoder.decode(b"", final=True)
        events: List[ServerSentEvent] = []
        if self._buffer:
            tail, self._buffer = self._buffer, ""
            for line in tail.splitlines():
                event = self._process_line(line)
                if event is not None:
                    events.append(event)
        event = self._dispatch()
        if event is not None:
            events.append(event)
        return events

    def _next_line(self):
        for index, char in enumerate(self._buffer):
            if char == "\n":
                line = self._buffer[:index]
                self._buffer = self._buffer[index + 1:]
                return line, True
            if char == "\r":
                # A lone CR at the end of the buffer may be the first half of CRLF
                if index == len(self._buffer) - 1:
                    return "", False
                line = self._buffer[:index]
                skip = 2 if self._buffer[index + 1] == "\n" else 1
                self._buffer = self._buffer[index + skip:]
                return line, True
        return "", False

    def _process_line(self, line: str) -> Optional[ServerSentEvent]:
        if line == "":
            return self._dispatch()
        if line.startswith(":"):
            return None

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if field == "event":
            self._event = value
        elif field == "data":
            self._data.append(value)
        return None

    def _dispatch(self) -> Optional[ServerSentEvent]:
        if not self._data and self._event is None:
            return None
        event = ServerSentEvent(event=self._event, data="\n".join(self._data))
        self._event = None
        self._data = []
        return event


async def iter_sse_events(chunks: AsyncIterable[bytes]) -> AsyncIterator[ServerSentEvent]:
    """
    Decode an async byte stream into SSE events.
    """
    decoder = SSEDecoder()
    async for chunk in chunks:
        for event in decoder.feed(chunk):
            yield event
    for event in decoder.flush():
        yield event
