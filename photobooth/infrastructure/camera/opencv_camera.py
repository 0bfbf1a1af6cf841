"""
USB / built-in webcam source using OpenCV.
"""

import asyncio
from typing import Optional, Tuple

import cv2
import numpy as np

from photobooth.config.logger import get_logger
from photobooth.domain.errors import CaptureStepError, ResourceUnavailableError
from photobooth.infrastructure.camera.base import CameraSource

logger = get_logger(__name__, tag="CAMERA")


class OpenCVCamera(CameraSource):
    def __init__(self, device_id: int = 0, width: int = 1280, height: int = 720):
        self.device_id = device_id
        self.width = width
        self.height = height
        self.cv_camera: Optional[cv2.VideoCapture] = None
        self._actual_size: Tuple[int, int] = (0, 0)

    @property
    def is_open(self) -> bool:
        return self.cv_camera is not None and self.cv_camera.isOpened()

    @property
    def size(self) -> Tuple[int, int]:
        return self._actual_size

    def _open(self) -> None:
        logger.info(f"Membuka kamera {self.device_id}...")
        cam = cv2.VideoCapture(self.device_id)
        if not cam.isOpened():
            raise ResourceUnavailableError("Tidak dapat mengakses kamera")

        # Preferred resolution only; the device may substitute its own.
        cam.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cam.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)

        ret, frame = cam.read()
        if not ret or frame is None:
            cam.release()
            raise ResourceUnavailableError("Tidak dapat mengakses kamera")

        self._actual_size = (frame.shape[1], frame.shape[0])
        self.cv_camera = cam
        logger.info(f"Kamera {self.device_id} siap: {self._actual_size[0]}x{self._actual_size[1]}")

    async def acquire(self) -> "OpenCVCamera":
        if self.is_open:
            return self
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._open)
        return self

    def _read(self) -> np.ndarray:
        if not self.is_open:
            raise CaptureStepError("Kamera belum aktif")
        ret, frame = self.cv_camera.read()
        if not ret or frame is None:
            raise CaptureStepError("Gagal membaca frame kamera")
        return frame

    async def read(self) -> np.ndarray:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._read)

    async def release(self) -> None:
        if self.cv_camera is not None:
            self.cv_camera.release()
            self.cv_camera = None
