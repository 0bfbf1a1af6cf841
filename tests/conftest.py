import base64
import io
from typing import Dict, List, Optional, Tuple

import numpy as np
import pytest
from PIL import Image

from photobooth.domain.errors import CaptureStepError, ResourceUnavailableError
from photobooth.domain.models import Area, Frame, ShapeKind, SizeClass
from photobooth.infrastructure.camera.base import CameraSource
from photobooth.infrastructure.storage.base import UploadStorage


def png_bytes(size=(300, 450), color=(255, 0, 0, 255), mode="RGBA") -> bytes:
    buf = io.BytesIO()
    Image.new(mode, size, color).save(buf, format="PNG")
    return buf.getvalue()


def png_data_url(size=(400, 600), color=(255, 0, 0, 255)) -> str:
    return "data:image/png;base64," + base64.b64encode(png_bytes(size, color)).decode("ascii")


class FakeCamera(CameraSource):
    """Synthetic BGR frames; each read gets a different grey level."""

    def __init__(self, width=1280, height=720, fail_acquire=False, fail_reads: Optional[List[int]] = None):
        self.width = width
        self.height = height
        self.fail_acquire = fail_acquire
        self.fail_reads = set(fail_reads or [])
        self.reads = 0
        self.acquired = 0
        self.released = 0
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    async def acquire(self):
        if self.fail_acquire:
            raise ResourceUnavailableError("Tidak dapat mengakses kamera")
        self.acquired += 1
        self._open = True
        return self

    async def read(self):
        self.reads += 1
        if self.reads in self.fail_reads:
            raise CaptureStepError("sensor glitch")
        level = (self.reads * 40) % 256
        return np.full((self.height, self.width, 3), level, dtype=np.uint8)

    async def release(self):
        self.released += 1
        self._open = False


class MemoryUploadStorage(UploadStorage):
    def __init__(self, fail_delete: bool = False):
        self.files: Dict[str, bytes] = {}
        self.fail_delete = fail_delete
        self._n = 0

    async def save(self, data: bytes, filename: str, content_type: str) -> str:
        self._n += 1
        url = f"memory://{self._n}/{filename}"
        self.files[url] = data
        return url

    async def delete(self, url: str) -> bool:
        if self.fail_delete:
            raise OSError("storage offline")
        return self.files.pop(url, None) is not None


class FakeClock:
    def __init__(self):
        self.slept: List[float] = []

    async def sleep(self, seconds: float) -> None:
        self.slept.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.slept)


def make_area(area_id: str, shape: ShapeKind = ShapeKind.square, order: int = 1, **kw) -> Area:
    defaults = {"x": 50, "y": 50, "width": 100, "height": 100, "rotation": 0}
    defaults.update(kw)
    return Area(id=area_id, shape_kind=shape, order=order, **defaults)


@pytest.fixture
def portrait_frame() -> Frame:
    return Frame(
        id="f1",
        name="Portrait",
        background_image_url=png_data_url(),
        size_class=SizeClass.four_by_six,
        areas=[make_area("a1", ShapeKind.portrait, order=1, width=80, height=120)],
        areas_on_top=True,
    )


@pytest.fixture
def three_area_frame() -> Frame:
    return Frame(
        id="f3",
        name="Strip",
        background_image_url=png_data_url((600, 400)),
        size_class=SizeClass.two_by_four,
        areas=[
            make_area("b", ShapeKind.landscape, order=2, x=200, width=160, height=90),
            make_area("a", ShapeKind.square, order=1),
            make_area("c", ShapeKind.portrait, order=5, x=400, width=90, height=160),
        ],
        areas_on_top=True,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
