"""Server-sent-event decoding for streamed chat completions.

The transport yields raw byte chunks that can split lines (and UTF-8
sequences) anywhere. :class:`ChatStreamDecoder` reassembles them into lines
and turns ``data:`` events into text fragments; :class:`ChatStream` wraps a
live HTTP response and guarantees it is closed exactly once.
"""

import codecs
import json
import logging
import weakref
from typing import Any, Callable, Iterable, Iterator, List, Optional

import requests

from ..errors import ChatRequestError

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

ChunkCallback = Callable[[str], None]


class CancellationToken:
    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


def delta_content(payload: Any) -> Optional[str]:
    """Return ``choices[0].delta.content`` when present and non-empty."""
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


class ChatStreamDecoder:
    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.done = False

    def feed(self, data: bytes) -> List[str]:
        """Consume one transport chunk and return the fragments it completed."""
        if self.done:
            return []
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._buffer += self._utf8.decode(data)
        *lines, self._buffer = self._buffer.split("\n")
        return self._parse_lines(lines)

    def flush(self) -> List[str]:
        """Decode whatever is left once the transport is exhausted."""
        if self.done:
            return []
        rest = self._buffer + self._utf8.decode(b"", final=True)
        self._buffer = ""
        return self._parse_lines([rest])

    def _parse_lines(self, lines: List[str]) -> List[str]:
        out = []
        for line in lines:
            fragment = self.parse_line(line)
            if self.done:
                break
            if fragment:
                out.append(fragment)
        return out

    def parse_line(self, line: str) -> Optional[str]:
        line = line.rstrip("\r")
        # blank lines separate events, ':' lines are keep-alive comments
        if not line.strip() or line.startswith(":") or not line.startswith(DATA_PREFIX):
            return None
        data = line[len(DATA_PREFIX):]
        if data.startswith(" "):
            data = data[1:]
        if data.strip() == DONE_SENTINEL:
            self.done = True
            return None
        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            logger.warning("Failed to parse SSE data: %.200s", data)
            return None
        if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
            err = payload["error"]
            raise ChatRequestError(err.get("message") or "Stream error", err.get("code"))
        return delta_content(payload)


def iter_fragments(
    chunks: Iterable[bytes],
    token: Optional[CancellationToken] = None,
    on_chunk: Optional[ChunkCallback] = None,
) -> Iterator[str]:
    """Yield text fragments from an iterable of SSE byte chunks.

    Cancellation is checked before every read from ``chunks``.
    """
    decoder = ChatStreamDecoder()
    source = iter(chunks)
    while True:
        if token is not None and token.cancelled:
            return
        try:
            chunk = next(source)
        except StopIteration:
            break
        for fragment in decoder.feed(chunk):
            if on_chunk is not None:
                on_chunk(fragment)
            yield fragment
        if decoder.done:
            return
    for fragment in decoder.flush():
        if on_chunk is not None:
            on_chunk(fragment)
        yield fragment


def _close_response(response: requests.Response, stream_id: str) -> None:
    try:
        response.close()
    except Exception:
        logger.warning("Error closing stream %s", stream_id, exc_info=True)


class ChatStream:
    """A single-use iterator over the fragments of one streamed completion.

    The response is closed exactly once: when iteration finishes, on
    ``cancel`` or ``close``, or when an abandoned stream is collected.
    """

    def __init__(
        self,
        response: requests.Response,
        stream_id: str,
        on_chunk: Optional[ChunkCallback] = None,
        on_release: Optional[Callable[["ChatStream"], None]] = None,
    ) -> None:
        self.id = stream_id
        self.response = response
        self.token = CancellationToken()
        self._on_chunk = on_chunk
        self._on_release = on_release
        self._parts: List[str] = []
        self._released = False
        self._finalizer = weakref.finalize(self, _close_response, response, stream_id)
        self._iterator = self._generate()

    def __iter__(self) -> "ChatStream":
        return self

    def __next__(self) -> str:
        return next(self._iterator)

    def __enter__(self) -> "ChatStream":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def text(self) -> str:
        return "".join(self._parts)

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    @property
    def released(self) -> bool:
        return self._released

    def _generate(self) -> Iterator[str]:
        try:
            chunks = self.response.iter_content(chunk_size=None)
            for fragment in iter_fragments(chunks, self.token, self._on_chunk):
                self._parts.append(fragment)
                yield fragment
        except requests.exceptions.RequestException as exc:
            if not self.token.cancelled:
                raise ChatRequestError(f"Network error while streaming: {exc}") from exc
        finally:
            self.release()

    def cancel(self) -> None:
        """Stop at the next read; fragments already yielded stay delivered."""
        self.token.cancel()
        self.release()

    def close(self) -> None:
        self._iterator.close()
        self.release()

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._finalizer()
        if self._on_release is not None:
            self._on_release(self)
