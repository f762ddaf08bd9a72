"""
Upload file handling for Request.

Provides:
- UploadFile: file upload kept in memory or spilled to a temp file
- FormData: combined form fields and file uploads
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional, Union

from ._datastructures import MultiDict


# ============================================================================
# UploadFile
# ============================================================================

@dataclass
class UploadFile:
    """
    Uploaded file representation.

    Small uploads stay in memory; larger ones are spilled to disk by the
    multipart parser and read back lazily.
    """

    filename: str
    content_type: str
    field_name: str = ""
    size: Optional[int] = None
    _content: Optional[bytes] = None
    _file_path: Optional[Path] = None
    _chunk_size: int = 64 * 1024

    async def read(self, size: int = -1) -> bytes:
        """
        Read file content.

        Args:
            size: Number of bytes to read (-1 for all)
        """
        if self._content is not None:
            return self._content if size == -1 else self._content[:size]

        if self._file_path is not None:
            with open(self._file_path, "rb") as f:
                return f.read() if size == -1 else f.read(size)

        return b""

    async def stream(self, chunk_size: Optional[int] = None) -> AsyncIterator[bytes]:
        """Stream file content in chunks."""
        chunk_size = chunk_size or self._chunk_size

        if self._content is not None:
            for i in range(0, len(self._content), chunk_size):
                yield self._content[i:i + chunk_size]

        elif self._file_path is not None:
            with open(self._file_path, "rb") as f:
                while True:
                    chunk = f.read(chunk_size)
                    if not chunk:
                        break
                    yield chunk

    async def save(self, path: Union[str, Path], overwrite: bool = False) -> Path:
        """
        Save uploaded file to disk.

        Raises:
            FileExistsError: If file exists and overwrite=False
        """
        dest = Path(path)
        if dest.exists() and not overwrite:
            raise FileExistsError(f"File already exists: {dest}")

        dest.parent.mkdir(parents=True, exist_ok=True)
        if self._file_path is not None:
            shutil.copyfile(self._file_path, dest)
        else:
            dest.write_bytes(self._content or b"")
        return dest

    async def close(self) -> None:
        """Remove the spilled temp file, if any."""
        if self._file_path is not None and self._file_path.exists():
            self._file_path.unlink()
        self._file_path = None


def create_upload_file_from_bytes(
    filename: str,
    content: bytes,
    content_type: str = "application/octet-stream",
    field_name: str = "",
) -> UploadFile:
    return UploadFile(
        filename=filename,
        content_type=content_type,
        field_name=field_name,
        size=len(content),
        _content=content,
    )


def create_upload_file_from_path(
    filename: str,
    file_path: Path,
    content_type: str = "application/octet-stream",
    field_name: str = "",
) -> UploadFile:
    return UploadFile(
        filename=filename,
        content_type=content_type,
        field_name=field_name,
        size=file_path.stat().st_size,
        _file_path=file_path,
    )


# ============================================================================
# FormData
# ============================================================================

@dataclass
class FormData:
    """Form fields plus uploaded files, keyed by field name."""

    fields: MultiDict = field(default_factory=MultiDict)
    files: Dict[str, List[UploadFile]] = field(default_factory=dict)

    def get_field(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.fields.get(name, default)

    def get_file(self, name: str) -> Optional[UploadFile]:
        uploads = self.files.get(name)
        return uploads[0] if uploads else None

    def get_all_files(self, name: str) -> List[UploadFile]:
        return self.files.get(name, [])

    async def cleanup(self) -> None:
        """Close every upload (removes spilled temp files)."""
        for uploads in self.files.values():
            for upload in uploads:
                await upload.close()
