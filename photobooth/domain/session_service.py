# photobooth/domain/session_service.py
import asyncio
import os
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Tuple

import aiohttp
import psutil

from photobooth.config.logger import get_logger
from photobooth.domain.capture_session import (
    COUNTDOWN_SECONDS,
    INTER_SHOT_PAUSE_MS,
    CaptureRunner,
    CaptureSession,
    Sleep,
)
from photobooth.domain.compositor import CompositeLayout, build_layout, export_size, render_composite
from photobooth.domain.errors import InputValidationError, NotFoundError, ResourceUnavailableError
from photobooth.domain.models import CapturedPhoto, Frame, PhotoSession
from photobooth.infrastructure.camera.base import CameraSource, camera_session
from photobooth.infrastructure.cv import image_process
from photobooth.infrastructure.database.repository import RecordStore
from photobooth.infrastructure.storage.base import UploadStorage

logger = get_logger(__name__)


def _decode_photo(photo: CapturedPhoto) -> bytes:
    """Raw image bytes of a photo's data URL; rejects anything Pillow can't open."""
    try:
        data = image_process.decode_data_url(photo.image_data)
        image_process.open_image(data).close()
    except (ValueError, OSError) as e:
        raise InputValidationError(f"Foto area {photo.area_id} tidak valid") from e
    return data


class SessionService:
    def __init__(
        self,
        store: RecordStore,
        uploads: UploadStorage,
        camera_factory: Callable[[], CameraSource],
        executor: Optional[ThreadPoolExecutor] = None,
        countdown_seconds: int = COUNTDOWN_SECONDS,
        pause_ms: int = INTER_SHOT_PAUSE_MS,
        capture_quality: int = 90,
        export_scale: float = 2,
        export_quality: int = 88,
        local_root: Optional[str] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.store = store
        self.uploads = uploads
        self.camera_factory = camera_factory
        self.executor = executor
        self.countdown_seconds = countdown_seconds
        self.pause_ms = pause_ms
        self.capture_quality = capture_quality
        self.export_scale = export_scale
        self.export_quality = export_quality
        self.local_root = local_root
        self.sleep = sleep

    async def _frame(self, frame_id: str) -> Frame:
        frame = await self.store.get_frame(frame_id)
        if frame is None:
            raise NotFoundError("Frame tidak ditemukan")
        return frame

    async def get_session(self, session_id: str) -> PhotoSession:
        record = await self.store.get_session(session_id)
        if record is None:
            raise NotFoundError("Sesi foto tidak ditemukan")
        return record

    def sequence_seconds(self, area_count: int) -> float:
        """Countdowns plus the pauses between them for ``area_count`` shots."""
        if area_count <= 0:
            return 0.0
        return area_count * self.countdown_seconds + (area_count - 1) * self.pause_ms / 1000

    async def frame_for(self, frame_id: str) -> Frame:
        return await self._frame(frame_id)

    def _runner(self, session: CaptureSession, camera: CameraSource) -> CaptureRunner:
        return CaptureRunner(session, camera, sleep=self.sleep, jpeg_quality=self.capture_quality)

    async def capture(self, frame_id: str) -> Tuple[PhotoSession, CaptureSession]:
        """Run a full timed session on the booth camera and store the result."""
        frame = await self._frame(frame_id)
        session = CaptureSession(frame, countdown_seconds=self.countdown_seconds, pause_ms=self.pause_ms)
        if not session.areas:
            raise InputValidationError("Frame tidak memiliki area foto")

        async with camera_session(self.camera_factory()) as camera:
            await self._runner(session, camera).run()

        record = PhotoSession(frame_id=frame.id, photos=session.photos)
        await self.store.save_session(record)
        logger.info(f"Sesi {record.id} disimpan: {len(record.photos)}/{len(session.areas)} foto, gagal={sorted(session.failed_area_ids)}")
        return record, session

    async def retake(self, session_id: str, area_id: str) -> Tuple[PhotoSession, CaptureSession]:
        record = await self.get_session(session_id)
        frame = await self._frame(record.frame_id)
        session = CaptureSession.resume(
            frame, record.photos, countdown_seconds=self.countdown_seconds, pause_ms=self.pause_ms
        )
        if frame.area(area_id) is None:
            raise NotFoundError(f"Area {area_id} tidak ditemukan")

        async with camera_session(self.camera_factory()) as camera:
            await self._runner(session, camera).retake(area_id)

        # Any earlier export no longer matches the photos.
        record = record.model_copy(update={"photos": session.photos, "final_image": None})
        await self.store.save_session(record)
        return record, session

    async def create_session(self, frame_id: str, photos: List[CapturedPhoto]) -> PhotoSession:
        """Store photos captured on the client side."""
        frame = await self._frame(frame_id)
        known = {a.id for a in frame.areas}
        unknown = [p.area_id for p in photos if p.area_id not in known]
        if unknown:
            raise InputValidationError(f"Area tidak dikenal: {', '.join(unknown)}")
        area_ids = [p.area_id for p in photos]
        duplicates = sorted({a for a in area_ids if area_ids.count(a) > 1})
        if duplicates:
            raise InputValidationError(f"Satu foto per area: {', '.join(duplicates)}")
        for photo in photos:
            _decode_photo(photo)

        record = PhotoSession(frame_id=frame.id, photos=photos)
        await self.store.save_session(record)
        return record

    async def layout(self, session_id: str) -> CompositeLayout:
        record = await self.get_session(session_id)
        frame = await self._frame(record.frame_id)
        return build_layout(frame, record.photos)

    def _render(self, background_bytes: bytes, layout: CompositeLayout, photos: Dict[str, bytes]) -> bytes:
        background = image_process.open_image(background_bytes)
        photo_images = {area_id: image_process.open_image(b) for area_id, b in photos.items()}
        size = export_size(layout.frame, self.export_scale)
        composite = render_composite(background, layout, photo_images, size)
        data, _ = image_process.pil_to_bytes(composite, fmt="jpeg", quality=self.export_quality)
        composite.close()
        background.close()
        for im in photo_images.values():
            im.close()
        return data

    async def export(self, session_id: str) -> PhotoSession:
        start_time = time.perf_counter()
        record = await self.get_session(session_id)
        layout = await self.layout(session_id)
        if not layout.all_filled:
            raise InputValidationError("Lengkapi semua foto")

        try:
            process = psutil.Process(os.getpid())
            logger.info(f"Memory usage at export start: {process.memory_info().rss / 1024 / 1024:.1f}MB for session {session_id}")
        except psutil.Error as mem_error:
            logger.warning(f"Could not get memory info: {mem_error}")

        async with aiohttp.ClientSession() as http:
            try:
                background_bytes = await image_process.load_image_bytes_async(
                    layout.frame.background_image_url, http, local_root=self.local_root
                )
            except (aiohttp.ClientError, OSError) as e:
                raise ResourceUnavailableError("Gambar frame tidak bisa dimuat") from e

        photos = {p.area.id: _decode_photo(p.photo) for p in layout.stack}
        loop = asyncio.get_running_loop()
        data = await loop.run_in_executor(self.executor, self._render, background_bytes, layout, photos)

        url = await self.uploads.save(data, f"{session_id}_final.jpg", "image/jpeg")
        record = record.model_copy(update={"final_image": url})
        await self.store.save_session(record)
        logger.info(f"Export sesi {session_id} selesai dalam {time.perf_counter() - start_time:.2f} detik: {url}")
        return record
