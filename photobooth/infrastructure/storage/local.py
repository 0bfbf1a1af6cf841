import os
import re
import time

import aiofiles

from photobooth.config.logger import get_logger
from photobooth.infrastructure.storage.base import UploadStorage

logger = get_logger(__name__)

EXTENSIONS = {"image/png": ".png", "image/jpeg": ".jpg", "image/jpg": ".jpg"}


def generated_name(filename: str, content_type: str) -> str:
    base, ext = os.path.splitext(os.path.basename(filename or ""))
    ext = ext.lower() or EXTENSIONS.get(content_type, ".png")
    base = re.sub(r"[^\w\-]+", "_", base) or "upload"
    return f"frame_{int(time.time() * 1000)}_{base}{ext}"


class LocalUploadStorage(UploadStorage):
    def __init__(self, upload_dir: str, url_prefix: str = "/frame"):
        self.upload_dir = upload_dir
        self.url_prefix = url_prefix.rstrip("/")
        os.makedirs(self.upload_dir, exist_ok=True)

    async def save(self, data: bytes, filename: str, content_type: str) -> str:
        name = generated_name(filename, content_type)
        path = os.path.join(self.upload_dir, name)
        async with aiofiles.open(path, "wb") as f:
            await f.write(data)
        logger.info(f"Gambar disimpan: {path} ({len(data)} bytes)")
        return f"{self.url_prefix}/{name}"

    async def delete(self, url: str) -> bool:
        if not url.startswith(self.url_prefix + "/"):
            logger.warning(f"URL '{url}' bukan milik penyimpanan lokal, tidak dihapus.")
            return False
        path = os.path.join(self.upload_dir, os.path.basename(url))
        if not os.path.isfile(path):
            return False
        os.remove(path)
        logger.info(f"Gambar dihapus: {path}")
        return True
