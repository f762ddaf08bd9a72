"""
Return helpers - values a service can return to control status and headers
without touching the response sink.

Example:
    ```python
    @POST
    def create(self, body: dict):
        user = self.repo.add(body)
        return NewResource(f"/users/{user.id}", user.to_dict())
    ```
"""

from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Any, Optional, Union

from .response import Response, dumps


class ReturnValue:
    """Base class for return helpers; subclasses write themselves to a sink."""

    def apply(self, response: Response) -> None:
        raise NotImplementedError


class _Located(ReturnValue):
    status: int = 200

    def __init__(self, location: str, body: Any = None):
        self.location = location
        self.body = body

    def apply(self, response: Response) -> None:
        response.status = self.status
        response.set_header("location", self.location)
        if self.body is not None:
            response.set_header("content-type", "application/json")
            response.write(dumps(self.body))
        response.end()


class NewResource(_Located):
    """201 Created with a Location header pointing at the new resource."""
    status = 201


class RequestAccepted(_Located):
    """202 Accepted with a Location header for polling."""
    status = 202


class MovedPermanently(_Located):
    """301 redirect."""
    status = 301


class MovedTemporarily(_Located):
    """302 redirect."""
    status = 302


class DownloadResource(ReturnValue):
    """Send a file from disk as an attachment."""

    def __init__(self, file_path: Union[str, Path], file_name: Optional[str] = None):
        self.file_path = Path(file_path)
        self.file_name = file_name or self.file_path.name

    def apply(self, response: Response) -> None:
        media_type = mimetypes.guess_type(self.file_name)[0] or "application/octet-stream"
        response.set_header("content-type", media_type)
        response.set_header("content-disposition", f'attachment; filename="{self.file_name}"')
        response.set_header("content-length", str(self.file_path.stat().st_size))
        response.stream(self._chunks())
        response.end()

    def _chunks(self):
        with open(self.file_path, "rb") as f:
            while True:
                chunk = f.read(64 * 1024)
                if not chunk:
                    break
                yield chunk


class DownloadBinaryData(ReturnValue):
    """Send in-memory bytes as an attachment."""

    def __init__(self, content: bytes, mime_type: str = "application/octet-stream", file_name: Optional[str] = None):
        self.content = content
        self.mime_type = mime_type
        self.file_name = file_name

    def apply(self, response: Response) -> None:
        response.set_header("content-type", self.mime_type)
        if self.file_name:
            response.set_header("content-disposition", f'attachment; filename="{self.file_name}"')
        response.write(self.content)
        response.end()


class _NoResponse(ReturnValue):
    """The service already wrote to the sink; leave it untouched."""

    def apply(self, response: Response) -> None:
        return None

    def __repr__(self) -> str:
        return "NoResponse"


NoResponse = _NoResponse()
