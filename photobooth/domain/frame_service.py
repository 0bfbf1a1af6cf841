# photobooth/domain/frame_service.py
import asyncio
import os
from typing import List, Tuple

from PIL import Image, UnidentifiedImageError

from photobooth.config.logger import get_logger
from photobooth.domain.crop_box import CropBox, CropBoxController
from photobooth.domain.editor import FrameEditor
from photobooth.domain.errors import InputValidationError, NotFoundError
from photobooth.domain.models import Area, Frame, ShapeKind, SizeClass, utcnow
from photobooth.infrastructure.cv import image_process
from photobooth.infrastructure.database.repository import RecordStore
from photobooth.infrastructure.storage.base import UploadStorage, validate_upload

logger = get_logger(__name__)


def default_frames() -> List[Frame]:
    return [
        Frame(
            id="1",
            name="Single Portrait",
            background_image_url="/api/placeholder/400/600",
            size_class=SizeClass.four_by_six,
            areas=[Area(id="area-1", shape_kind=ShapeKind.portrait, x=50, y=50, width=200, height=300, rotation=0, order=1)],
            areas_on_top=True,
            created_at=utcnow(),
        ),
        Frame(
            id="2",
            name="Double Square",
            background_image_url="/api/placeholder/600/400",
            size_class=SizeClass.two_by_four,
            areas=[
                Area(id="area-1", shape_kind=ShapeKind.square, x=50, y=50, width=150, height=150, rotation=0, order=1),
                Area(id="area-2", shape_kind=ShapeKind.square, x=250, y=50, width=150, height=150, rotation=0, order=2),
            ],
            areas_on_top=True,
            created_at=utcnow(),
        ),
    ]


class FrameService:
    def __init__(self, store: RecordStore, uploads: UploadStorage, max_upload_bytes: int = 8 * 1024 * 1024):
        self.store = store
        self.uploads = uploads
        self.max_upload_bytes = max_upload_bytes

    async def seed_default_frames(self) -> int:
        if await self.store.list_frames():
            return 0
        frames = default_frames()
        for frame in frames:
            await self.store.save_frame(frame)
        logger.info(f"{len(frames)} frame default ditambahkan.")
        return len(frames)

    async def list_frames(self) -> List[Frame]:
        return await self.store.list_frames()

    async def get_frame(self, frame_id: str) -> Frame:
        frame = await self.store.get_frame(frame_id)
        if frame is None:
            raise NotFoundError("Frame tidak ditemukan")
        return frame

    async def save_editor(self, editor: FrameEditor) -> Frame:
        frame = editor.build_frame()
        await self.store.save_frame(frame)
        logger.info(f"Frame '{frame.name}' ({frame.id}) disimpan.")
        return frame

    async def delete_frame(self, frame_id: str) -> bool:
        """Remove a frame, then try to remove its background image.

        Returns whether the image was deleted too. Image cleanup is best
        effort; the frame removal stands either way.
        """
        frame = await self.get_frame(frame_id)
        await self.store.delete_frame(frame_id)
        logger.info(f"Frame {frame_id} dihapus.")
        try:
            return await self.uploads.delete(frame.background_image_url)
        except Exception as e:
            logger.warning(f"Gagal menghapus gambar frame {frame_id}: {type(e).__name__}: {e}")
            return False

    async def upload_background(self, data: bytes, filename: str, content_type: str) -> str:
        validate_upload(content_type, len(data), self.max_upload_bytes)
        return await self.uploads.save(data, filename, content_type)

    def _crop(self, data: bytes, box: CropBox, size_class: SizeClass) -> Image.Image:
        try:
            source = image_process.open_image(data)
        except (UnidentifiedImageError, OSError) as e:
            raise InputValidationError("Gambar tidak bisa dibaca") from e
        controller = CropBoxController(size_class)
        controller.box = box
        return controller.commit(source)

    async def crop_background(self, data: bytes, filename: str, content_type: str, box: CropBox, size_class: SizeClass) -> Tuple[str, Tuple[int, int]]:
        """Extract the crop box from an uploaded image and store it as PNG."""
        validate_upload(content_type, len(data), self.max_upload_bytes)
        if not (0 < box.w <= 1 and 0 < box.h <= 1):
            raise InputValidationError("Ukuran crop tidak valid")
        if box.x < 0 or box.y < 0 or box.x + box.w > 1 + 1e-9 or box.y + box.h > 1 + 1e-9:
            raise InputValidationError("Area crop keluar dari gambar")

        loop = asyncio.get_running_loop()
        cropped = await loop.run_in_executor(None, self._crop, data, box, size_class)
        png_bytes, mime = image_process.pil_to_bytes(cropped, fmt="png")
        stem = os.path.splitext(os.path.basename(filename or "frame"))[0]
        url = await self.uploads.save(png_bytes, f"{stem}.png", mime)
        logger.info(f"Crop {cropped.width}x{cropped.height} diupload: {url}")
        return url, cropped.size
