"""
Response - mutable response sink with ASGI sending.

Services marked as raw-response write to it directly; for every other
service the dispatcher serializes the return value into it. The ASGI
adapter sends whatever the sink holds once the pipeline finishes.
"""

from __future__ import annotations

import json
import logging
from typing import (
    Any, AsyncIterable, AsyncIterator, Callable, Iterable, List,
    Optional, Tuple, Union,
)


logger = logging.getLogger("declarest.response")

Body = Union[bytes, str]
Stream = Union[AsyncIterable[Body], Iterable[Body]]


def _json_default_serializer(o: Any) -> Any:
    """Fallback encoder for objects the json module does not know."""
    if hasattr(o, "to_dict"):
        return o.to_dict()
    if hasattr(o, "isoformat"):
        return o.isoformat()
    if isinstance(o, (set, frozenset)):
        return list(o)
    if isinstance(o, bytes):
        return o.decode("utf-8", errors="replace")
    raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")


def dumps(value: Any) -> str:
    """Encode ``value`` as compact JSON."""
    return json.dumps(value, default=_json_default_serializer, separators=(",", ":"))


class Response:
    """
    HTTP response sink.

    Attributes:
        status: Status code (default 200)
        headers: Ordered list of (name, value) pairs; names are lowercased

    Example:
        ```python
        @GET
        @Path("download")
        @RawResponse
        def download(self, response: Annotated[Response, ContextResponse()]):
            response.set_header("content-type", "text/csv")
            response.write("a,b\\n")
            response.end()
        ```
    """

    def __init__(
        self,
        content: Optional[Body] = None,
        status: int = 200,
        headers: Optional[dict] = None,
        media_type: Optional[str] = None,
    ):
        self.status = status
        self.headers: List[Tuple[str, str]] = []
        self._chunks: List[bytes] = []
        self._stream: Optional[Stream] = None
        self._finished = False

        for name, value in (headers or {}).items():
            self.add_header(name, value)
        if media_type:
            self.set_header("content-type", media_type)
        if content is not None:
            self.write(content)

    def __repr__(self) -> str:
        return f"<Response [{self.status}] {self.get_header('content-type') or ''}>"

    # ========================================================================
    # Sink API
    # ========================================================================

    def set_header(self, name: str, value: str) -> None:
        """Set a header, replacing existing values."""
        key = name.lower()
        self.headers = [(k, v) for k, v in self.headers if k != key]
        self.headers.append((key, str(value)))

    def add_header(self, name: str, value: str) -> None:
        """Append a header value (repeatable headers like Set-Cookie)."""
        self.headers.append((name.lower(), str(value)))

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        key = name.lower()
        for k, v in self.headers:
            if k == key:
                return v
        return default

    def unset_header(self, name: str) -> None:
        key = name.lower()
        self.headers = [(k, v) for k, v in self.headers if k != key]

    def write(self, data: Body) -> None:
        """Append data to the body buffer."""
        if self._finished:
            raise RuntimeError("Cannot write to a finished response")
        if self._stream is not None:
            raise RuntimeError("Cannot write to a streaming response")
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._chunks.append(bytes(data))

    def stream(self, iterable: Stream) -> None:
        """Send the body from a sync or async iterable of chunks."""
        if self._finished:
            raise RuntimeError("Cannot stream to a finished response")
        if self._chunks:
            raise RuntimeError("Cannot stream after writing a buffered body")
        self._stream = iterable

    def end(self, data: Optional[Body] = None) -> None:
        """Write optional trailing data and mark the response finished."""
        if data is not None:
            self.write(data)
        self._finished = True

    def reset(self) -> None:
        """Discard status, headers and body (used before writing an error)."""
        self.status = 200
        self.headers = []
        self._chunks = []
        self._stream = None
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def is_streaming(self) -> bool:
        return self._stream is not None

    @property
    def body(self) -> bytes:
        """Buffered body bytes (empty for streaming responses)."""
        return b"".join(self._chunks)

    # ========================================================================
    # Constructors
    # ========================================================================

    @classmethod
    def json(cls, content: Any, status: int = 200, **kwargs) -> "Response":
        return cls(dumps(content), status=status, media_type="application/json", **kwargs)

    @classmethod
    def text(cls, content: str, status: int = 200, **kwargs) -> "Response":
        return cls(content, status=status, media_type="text/plain; charset=utf-8", **kwargs)

    @classmethod
    def html(cls, content: str, status: int = 200, **kwargs) -> "Response":
        return cls(content, status=status, media_type="text/html; charset=utf-8", **kwargs)

    def copy_to(self, target: "Response") -> None:
        """Copy status, headers and body into another sink."""
        target.status = self.status
        for name, value in self.headers:
            target.add_header(name, value)
        if self._stream is not None:
            target.stream(self._stream)
        else:
            for chunk in self._chunks:
                target.write(chunk)
        target.end()

    # ========================================================================
    # ASGI
    # ========================================================================

    async def send_asgi(self, send: Callable, *, head_only: bool = False) -> None:
        """
        Send this response over ASGI.

        Args:
            send: ASGI send callable
            head_only: Suppress the body (HEAD requests)

        1xx, 204 and 304 responses carry neither a body nor Content-Length.
        """
        headers = list(self.headers)
        bodiless = self.status < 200 or self.status in (204, 304)
        if bodiless:
            headers = [(k, v) for k, v in headers if k != "content-length"]
        elif self._stream is None and not any(k == "content-length" for k, _ in headers):
            headers.append(("content-length", str(len(self.body))))

        await send({
            "type": "http.response.start",
            "status": self.status,
            "headers": [(k.encode("latin-1"), v.encode("latin-1")) for k, v in headers],
        })

        if head_only or bodiless:
            await send({"type": "http.response.body", "body": b"", "more_body": False})
            return

        if self._stream is None:
            await send({"type": "http.response.body", "body": self.body, "more_body": False})
            return

        async for chunk in self._iter_stream():
            await send({"type": "http.response.body", "body": chunk, "more_body": True})
        await send({"type": "http.response.body", "body": b"", "more_body": False})

    async def _iter_stream(self) -> AsyncIterator[bytes]:
        stream = self._stream
        if hasattr(stream, "__aiter__"):
            async for chunk in stream:
                yield self._ensure_bytes(chunk)
        else:
            for chunk in stream:
                yield self._ensure_bytes(chunk)

    @staticmethod
    def _ensure_bytes(chunk: Any) -> bytes:
        if isinstance(chunk, bytes):
            return chunk
        if isinstance(chunk, str):
            return chunk.encode("utf-8")
        return bytes(chunk)
