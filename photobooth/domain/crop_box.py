# photobooth/domain/crop_box.py
"""Fixed-aspect crop selection over a freshly uploaded frame background.

The box lives in proportional (0..1) coordinates of the displayed image and
only exists while the user is picking the crop. Committing converts it to a
pixel rectangle of the source image and extracts that region.
"""
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from PIL import Image

from photobooth.domain.errors import InputValidationError
from photobooth.domain.geometry import FRAME_ASPECT
from photobooth.domain.models import SizeClass
from photobooth.infrastructure.cv import image_process

INITIAL_COVERAGE = 0.8
MIN_BOX = 0.1
MAX_BOX = 1.0


@dataclass(frozen=True)
class CropBox:
    x: float
    y: float
    w: float
    h: float

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px <= self.x + self.w and self.y <= py <= self.y + self.h


def target_aspect(size_class: SizeClass) -> float:
    return FRAME_ASPECT[SizeClass(size_class)]


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def initial_crop_box(container_width: float, container_height: float, aspect: float) -> CropBox:
    if container_width <= 0 or container_height <= 0:
        raise InputValidationError("Ukuran container tidak valid")
    container_aspect = container_width / container_height

    if container_aspect > aspect:
        # Container is relatively wider: height is the limiting side.
        h = INITIAL_COVERAGE
        w = h * aspect / container_aspect
    else:
        w = INITIAL_COVERAGE
        h = w * container_aspect / aspect

    w = _clamp(w, MIN_BOX, MAX_BOX)
    h = _clamp(h, MIN_BOX, MAX_BOX)
    return CropBox(x=(1 - w) / 2, y=(1 - h) / 2, w=w, h=h)


def clamp_position(box: CropBox, x: float, y: float) -> CropBox:
    return replace(box, x=_clamp(x, 0.0, 1.0 - box.w), y=_clamp(y, 0.0, 1.0 - box.h))


def to_pixel_rect(box: CropBox, image_width: int, image_height: int) -> Tuple[int, int, int, int]:
    sx = int(round(box.x * image_width))
    sy = int(round(box.y * image_height))
    sw = max(1, int(round(box.w * image_width)))
    sh = max(1, int(round(box.h * image_height)))
    # Rounding must not push the rectangle past the image edge.
    sx = min(sx, image_width - sw) if sw <= image_width else 0
    sy = min(sy, image_height - sh) if sh <= image_height else 0
    return sx, sy, min(sw, image_width), min(sh, image_height)


class CropDrag:
    def __init__(self, box: CropBox, pointer_x: float, pointer_y: float):
        self.offset = (pointer_x - box.x, pointer_y - box.y)

    def move(self, box: CropBox, pointer_x: float, pointer_y: float) -> CropBox:
        return clamp_position(box, pointer_x - self.offset[0], pointer_y - self.offset[1])


class CropBoxController:
    def __init__(self, size_class: SizeClass = SizeClass.four_by_six):
        self.size_class = SizeClass(size_class)
        self.box: Optional[CropBox] = None
        self.drag: Optional[CropDrag] = None

    @property
    def aspect(self) -> float:
        return target_aspect(self.size_class)

    def select_image(self, container_width: float, container_height: float, size_class: Optional[SizeClass] = None) -> CropBox:
        if size_class is not None:
            self.size_class = SizeClass(size_class)
        self.drag = None
        self.box = initial_crop_box(container_width, container_height, self.aspect)
        return self.box

    def pointer_down(self, px: float, py: float) -> bool:
        if self.box is None or not self.box.contains(px, py):
            return False
        self.drag = CropDrag(self.box, px, py)
        return True

    def pointer_move(self, px: float, py: float) -> Optional[CropBox]:
        if self.drag is None or self.box is None:
            return self.box
        self.box = self.drag.move(self.box, px, py)
        return self.box

    def pointer_up(self) -> None:
        self.drag = None

    def commit(self, source: Image.Image) -> Image.Image:
        if self.box is None:
            raise InputValidationError("Belum ada area crop")
        rect = to_pixel_rect(self.box, *source.size)
        cropped = image_process.extract_region(source, rect)
        self.box = None
        self.drag = None
        return cropped
