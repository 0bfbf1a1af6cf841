from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Tuple

import numpy as np

from photobooth.config.logger import get_logger

logger = get_logger(__name__, tag="CAMERA")


class CameraSource(ABC):
    """A live video source. Exactly one acquisition may be open at a time."""

    @abstractmethod
    async def acquire(self) -> "CameraSource":
        """Open the device. Raises ResourceUnavailableError when it cannot."""

    @abstractmethod
    async def read(self) -> np.ndarray:
        """Return the current frame as a BGR array."""

    @abstractmethod
    async def release(self) -> None:
        pass

    @property
    @abstractmethod
    def is_open(self) -> bool:
        pass

    @property
    @abstractmethod
    def size(self) -> Tuple[int, int]:
        """Actual (width, height) delivered by the device."""


@asynccontextmanager
async def camera_session(camera: CameraSource) -> AsyncIterator[CameraSource]:
    source = await camera.acquire()
    try:
        yield source
    finally:
        # Always give the device back, even when a sequence is cut short.
        await camera.release()
        logger.info("Kamera dilepas.")
