# photobooth/domain/capture_session.py
"""Timed, ordered photo capture over a frame's areas.

``CaptureSession`` is a pure state machine advanced by ``tick(elapsed_ms)``;
it never sleeps and never touches the camera. When a countdown runs out it
reports the area whose shot is due and waits in ``capturing`` until the
driver hands the result back through ``record_shot``. ``CaptureRunner`` is
that driver: it sleeps between transitions and takes the shots.
"""
import asyncio
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Set, Tuple

from photobooth.config.logger import get_logger
from photobooth.domain.errors import InputValidationError, InvalidTransitionError, NotFoundError
from photobooth.domain.models import Area, CapturedPhoto, Frame, utcnow
from photobooth.infrastructure.camera.base import CameraSource
from photobooth.infrastructure.cv import image_process

logger = get_logger(__name__)

COUNTDOWN_SECONDS = 5
INTER_SHOT_PAUSE_MS = 800
TICK_MS = 1000


class CapturePhase(str, Enum):
    idle = "idle"
    armed = "armed"
    countdown = "countdown"
    capturing = "capturing"
    captured = "captured"
    complete = "complete"
    retaking = "retaking"


RUNNING_PHASES = {
    CapturePhase.armed,
    CapturePhase.countdown,
    CapturePhase.capturing,
    CapturePhase.captured,
    CapturePhase.retaking,
}


class CaptureSession:
    def __init__(
        self,
        frame: Frame,
        countdown_seconds: int = COUNTDOWN_SECONDS,
        pause_ms: int = INTER_SHOT_PAUSE_MS,
    ):
        # Work on a snapshot; later edits to the frame never reach a session.
        self.frame = frame.model_copy(deep=True)
        self.areas: List[Area] = self.frame.areas_by_order()
        self.countdown_seconds = countdown_seconds
        self.pause_ms = pause_ms

        self.photos: List[CapturedPhoto] = []
        self.failed_area_ids: Set[str] = set()
        self.phase = CapturePhase.idle
        self.index = 0
        self.seconds_remaining = 0
        self.retake_area_id: Optional[str] = None
        self._phase_ms = 0.0

    @classmethod
    def resume(cls, frame: Frame, photos: List[CapturedPhoto], **kwargs) -> "CaptureSession":
        """Rebuild a finished session from stored photos so it can retake."""
        session = cls(frame, **kwargs)
        session.photos = [p.model_copy() for p in photos]
        session.phase = CapturePhase.complete
        return session

    # --- derived state ---

    @property
    def is_running(self) -> bool:
        return self.phase in RUNNING_PHASES

    @property
    def current_area(self) -> Optional[Area]:
        """Area the camera guide should show."""
        if self.retake_area_id is not None:
            return self._area(self.retake_area_id)
        if self.phase == CapturePhase.complete or not self.areas:
            return None
        if self.phase == CapturePhase.idle:
            return self.areas[0]
        return self.areas[self.index]

    @property
    def all_filled(self) -> bool:
        return len(self.areas) > 0 and all(self.photo_for(a.id) for a in self.areas)

    @property
    def pending_area_ids(self) -> List[str]:
        return [a.id for a in self.areas if self.photo_for(a.id) is None]

    @property
    def progress(self) -> Tuple[int, int]:
        return len(self.photos), len(self.areas)

    def photo_for(self, area_id: str) -> Optional[CapturedPhoto]:
        return next((p for p in self.photos if p.area_id == area_id), None)

    def ms_until_next_event(self) -> Optional[float]:
        if self.phase in (CapturePhase.countdown, CapturePhase.retaking):
            return TICK_MS - self._phase_ms
        if self.phase == CapturePhase.captured:
            return max(0.0, self.pause_ms - self._phase_ms)
        if self.phase in (CapturePhase.armed, CapturePhase.capturing):
            return 0.0
        return None

    def _area(self, area_id: str) -> Area:
        area = next((a for a in self.areas if a.id == area_id), None)
        if area is None:
            raise NotFoundError(f"Area {area_id} tidak ditemukan")
        return area

    def _shot_area(self) -> Area:
        if self.retake_area_id is not None:
            return self._area(self.retake_area_id)
        return self.areas[self.index]

    # --- transitions ---

    def start(self) -> None:
        if self.is_running:
            raise InvalidTransitionError("Sesi foto sedang berjalan")
        if not self.areas:
            raise InputValidationError("Frame tidak memiliki area foto")
        self.photos = []
        self.failed_area_ids = set()
        self.retake_area_id = None
        self.index = 0
        self._phase_ms = 0.0
        self.phase = CapturePhase.armed
        logger.info(f"Sesi foto dimulai untuk frame {self.frame.id} ({len(self.areas)} area).")

    def retake(self, area_id: str) -> None:
        if self.phase != CapturePhase.complete:
            raise InvalidTransitionError("Retake hanya bisa setelah sesi selesai")
        self._area(area_id)
        self.retake_area_id = area_id
        self._begin_countdown(CapturePhase.retaking)

    def reset(self) -> None:
        if self.is_running:
            raise InvalidTransitionError("Sesi foto sedang berjalan")
        self.photos = []
        self.failed_area_ids = set()
        self.retake_area_id = None
        self.index = 0
        self.seconds_remaining = 0
        self._phase_ms = 0.0
        self.phase = CapturePhase.idle

    def _begin_countdown(self, phase: CapturePhase) -> None:
        self.phase = phase
        self.seconds_remaining = self.countdown_seconds
        self._phase_ms = 0.0
        if self.seconds_remaining <= 0:
            self.phase = CapturePhase.capturing

    def tick(self, elapsed_ms: float) -> Optional[Area]:
        """Advance the clock. Returns the area to shoot once a countdown ends."""
        budget = max(0.0, float(elapsed_ms))
        while True:
            if self.phase == CapturePhase.armed:
                self._begin_countdown(CapturePhase.countdown)
                continue

            if self.phase == CapturePhase.capturing:
                return self._shot_area()

            if self.phase in (CapturePhase.countdown, CapturePhase.retaking):
                need = TICK_MS - self._phase_ms
                if budget < need:
                    self._phase_ms += budget
                    return None
                budget -= need
                self._phase_ms = 0.0
                self.seconds_remaining -= 1
                if self.seconds_remaining <= 0:
                    self.phase = CapturePhase.capturing
                continue

            if self.phase == CapturePhase.captured:
                need = self.pause_ms - self._phase_ms
                if budget < need:
                    self._phase_ms += budget
                    return None
                budget -= need
                self._phase_ms = 0.0
                self.index += 1
                self.phase = CapturePhase.armed
                continue

            return None

    def record_shot(self, area_id: str, photo: Optional[CapturedPhoto]) -> None:
        if self.phase != CapturePhase.capturing:
            raise InvalidTransitionError("Tidak ada foto yang sedang diambil")
        area = self._shot_area()
        if area.id != area_id or (photo is not None and photo.area_id != area_id):
            raise InvalidTransitionError(f"Foto untuk area {area_id} tidak diharapkan")

        if self.retake_area_id is not None:
            self._apply_retake(area, photo)
            self.retake_area_id = None
            self.phase = CapturePhase.complete
            return

        if photo is None:
            self.failed_area_ids.add(area.id)
            logger.warning(f"Foto area {area.order} gagal diambil, area ditandai perlu retake.")
        else:
            self.photos.append(photo)

        if self.index >= len(self.areas) - 1:
            self.phase = CapturePhase.complete
            logger.info(f"Sesi foto selesai: {len(self.photos)}/{len(self.areas)} foto.")
        else:
            self.phase = CapturePhase.captured
            self._phase_ms = 0.0

    def _apply_retake(self, area: Area, photo: Optional[CapturedPhoto]) -> None:
        if photo is None:
            logger.warning(f"Retake area {area.order} gagal, foto lama dipertahankan.")
            return
        self.failed_area_ids.discard(area.id)
        for i, existing in enumerate(self.photos):
            if existing.area_id == area.id:
                self.photos[i] = existing.model_copy(update={
                    "image_data": photo.image_data,
                    "captured_at": photo.captured_at,
                    "aspect_ratio": photo.aspect_ratio,
                })
                logger.info(f"Foto area {area.order} berhasil diganti.")
                return
        self.photos.append(photo)
        logger.info(f"Foto area {area.order} ditambahkan lewat retake.")


Sleep = Callable[[float], Awaitable[None]]


class CaptureRunner:
    """Drives a CaptureSession against a live camera in real time."""

    def __init__(
        self,
        session: CaptureSession,
        camera: CameraSource,
        sleep: Sleep = asyncio.sleep,
        jpeg_quality: int = 90,
    ):
        self.session = session
        self.camera = camera
        self.sleep = sleep
        self.jpeg_quality = jpeg_quality

    def _encode(self, frame_bgr, aspect: float) -> str:
        cropped = image_process.crop_guide(frame_bgr, aspect)
        return image_process.encode_jpeg_data_url(cropped, self.jpeg_quality)

    async def shoot(self, area: Area) -> Optional[CapturedPhoto]:
        aspect = area.aspect_ratio
        try:
            frame_bgr = await self.camera.read()
            loop = asyncio.get_running_loop()
            data_url = await loop.run_in_executor(None, self._encode, frame_bgr, aspect)
        except Exception as e:
            # A single failed shot never stops the sequence.
            logger.error(f"Gagal mengambil foto area {area.order}: {type(e).__name__}: {e}", exc_info=True)
            return None
        return CapturedPhoto(area_id=area.id, image_data=data_url, captured_at=utcnow(), aspect_ratio=aspect)

    async def _drive(self) -> None:
        while self.session.is_running:
            wait_ms = self.session.ms_until_next_event() or 0.0
            if wait_ms > 0:
                await self.sleep(wait_ms / 1000)
            due = self.session.tick(wait_ms)
            if due is not None:
                photo = await self.shoot(due)
                self.session.record_shot(due.id, photo)

    async def run(self) -> CaptureSession:
        self.session.start()
        await self._drive()
        return self.session

    async def retake(self, area_id: str) -> CaptureSession:
        self.session.retake(area_id)
        await self._drive()
        return self.session
