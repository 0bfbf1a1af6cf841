# photobooth/domain/geometry.py
"""Design-space <-> proportional coordinate conversion.

Areas are authored in a fixed design canvas per frame size (4x6 is
400x600, 2x4 is 600x400). Every other view (editor, booth grid thumbnail,
camera guide, preview, export) projects through proportions so the same
Area lands on the same spot regardless of the physical render size. The
uploaded background is assumed to cover the design canvas entirely, so the
basis never depends on the image's native resolution.
"""
from dataclasses import dataclass
from typing import Tuple

from photobooth.domain.models import Area, SizeClass

DESIGN_DIMENSIONS = {
    SizeClass.four_by_six: (400, 600),
    SizeClass.two_by_four: (600, 400),
}

# Width:height of the printed card for each size class.
FRAME_ASPECT = {
    SizeClass.four_by_six: 2 / 3,
    SizeClass.two_by_four: 1 / 2,
}


@dataclass(frozen=True)
class ProportionalRect:
    left: float
    top: float
    width: float
    height: float


@dataclass(frozen=True)
class PixelRect:
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2


def to_proportion(value: float, design_dimension: float) -> float:
    if design_dimension <= 0:
        raise ValueError("design dimension must be positive")
    return value / design_dimension


def from_proportion(p: float, target_dimension: float) -> float:
    return p * target_dimension


def design_dimensions(size_class: SizeClass) -> Tuple[int, int]:
    return DESIGN_DIMENSIONS[SizeClass(size_class)]


def area_proportions(area: Area, size_class: SizeClass) -> ProportionalRect:
    base_w, base_h = design_dimensions(size_class)
    return ProportionalRect(
        left=to_proportion(area.x, base_w),
        top=to_proportion(area.y, base_h),
        width=to_proportion(area.width, base_w),
        height=to_proportion(area.height, base_h),
    )


def project(rect: ProportionalRect, target_width: float, target_height: float) -> PixelRect:
    return PixelRect(
        x=from_proportion(rect.left, target_width),
        y=from_proportion(rect.top, target_height),
        width=from_proportion(rect.width, target_width),
        height=from_proportion(rect.height, target_height),
    )


def render_size(size_class: SizeClass, width: float) -> Tuple[float, float]:
    """Height that keeps the design canvas ratio for a given render width."""
    base_w, base_h = design_dimensions(size_class)
    return width, width * base_h / base_w
