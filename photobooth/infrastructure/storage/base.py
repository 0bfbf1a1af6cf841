import re
from abc import ABC, abstractmethod

from photobooth.domain.errors import UploadRejectedError

ALLOWED_MIME = re.compile(r"^image/(png|jpg|jpeg)$")


def validate_upload(content_type: str, size: int, max_bytes: int) -> None:
    if not ALLOWED_MIME.match((content_type or "").lower()):
        raise UploadRejectedError("Format file harus PNG, JPG, atau JPEG")
    if size <= 0:
        raise UploadRejectedError("File kosong")
    if size > max_bytes:
        raise UploadRejectedError(f"Ukuran file melebihi batas {max_bytes // (1024 * 1024)}MB", too_large=True)


class UploadStorage(ABC):
    """Stores an uploaded image under a generated name and returns its public URL."""

    @abstractmethod
    async def save(self, data: bytes, filename: str, content_type: str) -> str: ...

    @abstractmethod
    async def delete(self, url: str) -> bool: ...
