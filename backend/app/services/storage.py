import re
import uuid
import aiofiles
import aiofiles.os
from pathlib import Path
from typing import Any
from app.core.config import get_settings

settings = get_settings()

_UNSAFE_NAME_RE = re.compile(r"[^A-Za-z0-9一-龥._-]+")


def safe_filename(name: str, default: str = "file") -> str:
    """Reduce a user-supplied file name to a storage-safe one."""
    base = Path(name or "").name
    cleaned = _UNSAFE_NAME_RE.sub("_", base).strip("._")
    return cleaned or default


class StorageService:
    def __init__(self):
        self.upload_dir = Path(settings.upload_dir)
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def _get_file_path(self, key: str) -> Path:
        """Get file path with path traversal protection."""
        if not key or ".." in key or key.startswith("/") or key.startswith("\\"):
            raise ValueError(f"Invalid storage key: {key}")

        file_path = (self.upload_dir / key).resolve()

        if not str(file_path).startswith(str(self.upload_dir.resolve())):
            raise ValueError(f"Path traversal attempt detected: {key}")

        return file_path

    @staticmethod
    def owned_key(user_id: uuid.UUID, key: str) -> str:
        """Namespace a key under its owner so file access can be checked by prefix."""
        return f"users/{user_id}/{key}"

    @staticmethod
    def key_owner(key: str) -> uuid.UUID | None:
        parts = key.split("/", 2)
        if len(parts) < 3 or parts[0] != "users":
            return None
        try:
            return uuid.UUID(parts[1])
        except ValueError:
            return None

    async def put(self, key: str, content: bytes | str) -> str:
        """Write content under ``key`` and return its download URL."""
        if isinstance(content, str):
            content = content.encode("utf-8")
        file_path = self._get_file_path(key)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        async with aiofiles.open(file_path, "wb") as f:
            await f.write(content)

        return self.get_file_url(key)

    async def save_upload_file(
        self,
        upload_file: Any,
        key: str,
        max_size: int,
        *,
        magic_header: bytes | None = None,
    ) -> int:
        """Stream an upload to disk with size and magic header checks.

        Returns:
            Number of bytes written.
        """
        file_path = self._get_file_path(key)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        bytes_read = 0
        header = bytearray()
        try:
            async with aiofiles.open(file_path, "wb") as f:
                while chunk := await upload_file.read(8192):
                    bytes_read += len(chunk)
                    if bytes_read > max_size:
                        raise ValueError("File size exceeds limit")
                    if magic_header and len(header) < len(magic_header):
                        needed = len(magic_header) - len(header)
                        header.extend(chunk[:needed])
                    await f.write(chunk)

            if bytes_read < (len(magic_header) if magic_header else 1):
                raise ValueError("Invalid file format")
            if magic_header and bytes(header[: len(magic_header)]) != magic_header:
                raise ValueError("Invalid file format")
        except Exception:
            if await aiofiles.os.path.exists(file_path):
                await aiofiles.os.remove(file_path)
            raise

        return bytes_read

    async def get_file_path(self, key: str) -> Path:
        """Get absolute file path for a storage key."""
        file_path = self._get_file_path(key)
        if not await aiofiles.os.path.exists(file_path):
            raise FileNotFoundError(f"File not found: {key}")
        return file_path

    async def read_file(self, key: str) -> bytes:
        """Read file content."""
        file_path = await self.get_file_path(key)
        async with aiofiles.open(file_path, "rb") as f:
            return await f.read()

    async def delete_file(self, key: str) -> None:
        """Delete a file."""
        file_path = self._get_file_path(key)
        if await aiofiles.os.path.exists(file_path):
            await aiofiles.os.remove(file_path)

    def get_file_url(self, key: str) -> str:
        """Local files are served back through the authenticated files endpoint."""
        return f"{settings.api_v1_prefix}/files/{key}"
