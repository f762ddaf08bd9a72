"""
Request - ASGI request wrapper.

Provides:
- Typed access to method, path, path params, query, headers, cookies
- Body reading with idempotent caching and a size limit
- Body parsing by Content-Type: JSON, urlencoded forms, multipart uploads
- A ``state`` dict and free attribute space for preprocessors
"""

from __future__ import annotations

import json as stdlib_json
import logging
import tempfile
import uuid
from http.cookies import CookieError, SimpleCookie
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union
from urllib.parse import parse_qsl

from python_multipart import MultipartParser
from python_multipart.multipart import parse_options_header

from ._datastructures import Headers, MultiDict, ParsedContentType
from ._uploads import (
    FormData, UploadFile,
    create_upload_file_from_bytes, create_upload_file_from_path,
)
from .faults import BadRequestFault, PayloadTooLargeFault


logger = logging.getLogger("declarest.request")

PathLike = Union[str, Path]

_UNLOADED = object()


class Request:
    """
    Request object handed to preprocessors, the binder and services.

    The ASGI adapter calls :meth:`load` before the pipeline starts, so the
    parsed body is available synchronously as :attr:`data` (the role a
    body-parsing middleware plays in other servers). Preprocessors may attach
    arbitrary attributes to the request; later stages see them.
    """

    def __init__(
        self,
        scope: Mapping[str, Any],
        receive: Optional[Callable[..., Awaitable[dict]]] = None,
        *,
        path_params: Optional[Dict[str, Any]] = None,
        max_body_size: int = 10_485_760,  # 10 MiB
        max_file_size: int = 104_857_600,  # 100 MiB
        form_memory_threshold: int = 1024 * 1024,  # 1 MiB
        upload_dir: Optional[PathLike] = None,
    ):
        self.scope = scope
        self._receive = receive
        self.path_params: Dict[str, Any] = dict(path_params or {})

        self.max_body_size = max_body_size
        self.max_file_size = max_file_size
        self.form_memory_threshold = form_memory_threshold
        self.upload_dir = Path(upload_dir) if upload_dir else None

        self.state: Dict[str, Any] = {}

        self._body: Optional[bytes] = None
        self._data: Any = _UNLOADED
        self._form: Optional[FormData] = None
        self._query_params: Optional[MultiDict] = None
        self._headers: Optional[Headers] = None
        self._cookies: Optional[Dict[str, str]] = None

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.path}>"

    # ========================================================================
    # Basic Properties
    # ========================================================================

    @property
    def method(self) -> str:
        return self.scope.get("method", "GET")

    @property
    def path(self) -> str:
        return self.scope.get("path", "/")

    @property
    def query_string(self) -> str:
        raw = self.scope.get("query_string", b"")
        return raw.decode("latin-1") if isinstance(raw, bytes) else raw

    @property
    def query_params(self) -> MultiDict:
        """Parsed query parameters."""
        if self._query_params is None:
            self._query_params = MultiDict(parse_qsl(self.query_string, keep_blank_values=True))
        return self._query_params

    def query_param(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.query_params.get(name, default)

    @property
    def headers(self) -> Headers:
        if self._headers is None:
            self._headers = Headers(raw=list(self.scope.get("headers", [])))
        return self._headers

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get single header (case-insensitive)."""
        return self.headers.get(name, default)

    @property
    def cookies(self) -> Mapping[str, str]:
        if self._cookies is None:
            self._cookies = {}
            cookie_header = self.header("cookie")
            if cookie_header:
                cookie = SimpleCookie()
                try:
                    cookie.load(cookie_header)
                except CookieError:
                    logger.debug(f"Ignoring malformed Cookie header: {cookie_header!r}")
                self._cookies = {key: morsel.value for key, morsel in cookie.items()}
        return self._cookies

    def cookie(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.cookies.get(name, default)

    def content_type(self) -> Optional[str]:
        return self.header("content-type")

    @property
    def is_multipart(self) -> bool:
        parsed = ParsedContentType.parse(self.content_type())
        return parsed is not None and parsed.media_type.startswith("multipart/")

    # ========================================================================
    # Principal
    # ========================================================================

    @property
    def principal(self) -> Optional[Any]:
        """Authenticated principal attached by an authenticator, if any."""
        return self.state.get("principal")

    @principal.setter
    def principal(self, value: Any) -> None:
        self.state["principal"] = value

    def principal_roles(self) -> Optional[List[str]]:
        """
        Roles of the caller.

        Returns None when no principal is attached at all, which the
        negotiation guard distinguishes from a principal without roles.
        """
        if "roles" in self.state:
            return list(self.state["roles"] or [])
        principal = self.principal
        if principal is None:
            return None
        if isinstance(principal, Mapping):
            return list(principal.get("roles") or [])
        return list(getattr(principal, "roles", None) or [])

    # ========================================================================
    # Body
    # ========================================================================

    async def body(self) -> bytes:
        """
        Read full request body (idempotent).

        Raises:
            PayloadTooLargeFault: If body exceeds max_body_size
        """
        if self._body is not None:
            return self._body

        if self._receive is None:
            self._body = b""
            return self._body

        chunks: List[bytes] = []
        total = 0
        while True:
            message = await self._receive()
            if message["type"] == "http.disconnect":
                break
            chunk = message.get("body", b"")
            total += len(chunk)
            if total > self.max_body_size:
                raise PayloadTooLargeFault(max_allowed=self.max_body_size, actual=total)
            chunks.append(chunk)
            if not message.get("more_body", False):
                break

        self._body = b"".join(chunks)
        return self._body

    async def text(self) -> str:
        """Decode the body with the Content-Type charset (utf-8 by default)."""
        raw = await self.body()
        parsed = ParsedContentType.parse(self.content_type())
        charset = parsed.charset if parsed is not None else "utf-8"
        try:
            return raw.decode(charset)
        except (UnicodeDecodeError, LookupError) as exc:
            raise BadRequestFault(f"Cannot decode body as {charset}: {exc}") from exc

    async def json(self) -> Any:
        """Parse request body as JSON; None for an empty body."""
        raw = await self.body()
        if not raw.strip():
            return None
        try:
            return stdlib_json.loads(raw)
        except (ValueError, UnicodeDecodeError) as exc:
            raise BadRequestFault(f"Invalid JSON body: {exc}") from exc

    async def form(self) -> FormData:
        """Parse an urlencoded or multipart body."""
        if self._form is not None:
            return self._form

        parsed = ParsedContentType.parse(self.content_type())
        if parsed is None:
            self._form = FormData()
        elif parsed.media_type == "application/x-www-form-urlencoded":
            self._form = FormData(
                fields=MultiDict(parse_qsl(await self.text(), keep_blank_values=True)),
            )
        elif parsed.media_type.startswith("multipart/"):
            if not parsed.boundary:
                raise BadRequestFault("No boundary in multipart Content-Type")
            self._form = await self._parse_multipart(parsed.boundary.encode("latin-1"))
        else:
            self._form = FormData()
        return self._form

    async def files(self) -> Dict[str, List[UploadFile]]:
        return (await self.form()).files

    async def load(self) -> Any:
        """
        Read and parse the body according to Content-Type.

        JSON bodies become Python objects, forms become a plain dict of
        fields (first value per key), anything else stays raw bytes. An
        empty body yields None.
        """
        if self._data is not _UNLOADED:
            return self._data

        parsed = ParsedContentType.parse(self.content_type())
        if parsed is not None and parsed.is_json:
            data = await self.json()
        elif parsed is not None and (
            parsed.media_type == "application/x-www-form-urlencoded"
            or parsed.media_type.startswith("multipart/")
        ):
            data = (await self.form()).fields.to_dict()
        else:
            raw = await self.body()
            if not raw:
                data = None
            elif parsed is not None and parsed.media_type.startswith("text/"):
                data = await self.text()
            else:
                data = raw

        self._data = data
        return data

    @property
    def data(self) -> Any:
        """Parsed body loaded by :meth:`load` (None before loading)."""
        return None if self._data is _UNLOADED else self._data

    @data.setter
    def data(self, value: Any) -> None:
        self._data = value

    async def cleanup(self) -> None:
        """Release spilled upload files."""
        if self._form is not None:
            await self._form.cleanup()

    # ========================================================================
    # Multipart
    # ========================================================================

    async def _parse_multipart(self, boundary: bytes) -> FormData:
        """Parse multipart/form-data with python-multipart callbacks."""
        fields = MultiDict()
        files: Dict[str, List[UploadFile]] = {}
        temp_dir = self.upload_dir or Path(tempfile.gettempdir()) / "declarest_uploads"

        part: Dict[str, Any] = {}
        header_state = {"field": bytearray(), "value": bytearray(), "headers": {}}

        def on_part_begin():
            part.clear()
            part.update(name=None, filename=None, content_type="application/octet-stream",
                        data=bytearray(), size=0, path=None, handle=None)
            header_state["headers"] = {}

        def on_header_field(data: bytes, start: int, end: int):
            header_state["field"].extend(data[start:end])

        def on_header_value(data: bytes, start: int, end: int):
            header_state["value"].extend(data[start:end])

        def on_header_end():
            name = header_state["field"].decode("latin-1").lower()
            header_state["headers"][name] = header_state["value"].decode("utf-8", errors="replace")
            header_state["field"] = bytearray()
            header_state["value"] = bytearray()

        def on_headers_finished():
            disposition = header_state["headers"].get("content-disposition", "")
            _, options = parse_options_header(disposition)
            name = options.get(b"name")
            filename = options.get(b"filename")
            part["name"] = name.decode("utf-8", errors="replace") if name else None
            if filename:
                part["filename"] = Path(filename.decode("utf-8", errors="replace")).name
            if "content-type" in header_state["headers"]:
                part["content_type"] = header_state["headers"]["content-type"]

        def on_part_data(data: bytes, start: int, end: int):
            chunk = data[start:end]
            part["size"] += len(chunk)
            if part["filename"] is None:
                part["data"].extend(chunk)
                return

            if part["size"] > self.max_file_size:
                raise PayloadTooLargeFault(
                    "File upload exceeds maximum size",
                    filename=part["filename"],
                    max_allowed=self.max_file_size,
                )
            if part["handle"] is None and part["size"] > self.form_memory_threshold:
                temp_dir.mkdir(parents=True, exist_ok=True)
                part["path"] = temp_dir / f"{uuid.uuid4().hex}_{part['filename']}"
                part["handle"] = open(part["path"], "wb")
                part["handle"].write(part["data"])
                part["data"] = bytearray()
            if part["handle"] is not None:
                part["handle"].write(chunk)
            else:
                part["data"].extend(chunk)

        def on_part_end():
            if part["handle"] is not None:
                part["handle"].close()
            name = part["name"]
            if not name:
                return
            if part["filename"] is None:
                fields.add(name, part["data"].decode("utf-8", errors="replace"))
            elif part["path"] is not None:
                files.setdefault(name, []).append(create_upload_file_from_path(
                    part["filename"], part["path"], part["content_type"], field_name=name,
                ))
            else:
                files.setdefault(name, []).append(create_upload_file_from_bytes(
                    part["filename"], bytes(part["data"]), part["content_type"], field_name=name,
                ))

        parser = MultipartParser(boundary, {
            "on_part_begin": on_part_begin,
            "on_part_data": on_part_data,
            "on_part_end": on_part_end,
            "on_header_field": on_header_field,
            "on_header_value": on_header_value,
            "on_header_end": on_header_end,
            "on_headers_finished": on_headers_finished,
        })

        try:
            parser.write(await self.body())
            parser.finalize()
        except PayloadTooLargeFault:
            if part.get("handle") is not None:
                part["handle"].close()
            raise
        except Exception as exc:
            if part.get("handle") is not None:
                part["handle"].close()
            raise BadRequestFault(f"Multipart parsing failed: {exc}") from exc

        return FormData(fields=fields, files=files)
