# photobooth/domain/compositor.py
"""Layering of a frame background and its captured photos.

``build_layout`` is the pure projection shared by every preview surface;
``render_composite`` turns a layout into pixels with Pillow for export.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from PIL import Image, ImageDraw

from photobooth.domain.geometry import PixelRect, ProportionalRect, area_proportions, design_dimensions, project
from photobooth.domain.models import Area, CapturedPhoto, Frame
from photobooth.infrastructure.cv import image_process

BACKGROUND_LAYER = "background"
AREAS_LAYER = "areas"
Z_BOTTOM = 0
Z_TOP = 10

PLACEHOLDER_FILL = (0, 0, 0, 38)
PLACEHOLDER_OUTLINE = (255, 255, 255, 102)


@dataclass(frozen=True)
class AreaPlacement:
    area: Area
    rect: ProportionalRect
    photo: Optional[CapturedPhoto]

    @property
    def filled(self) -> bool:
        return self.photo is not None

    def to_pixels(self, render_width: float, render_height: float) -> PixelRect:
        return project(self.rect, render_width, render_height)


@dataclass(frozen=True)
class Layer:
    name: str
    z_index: int


@dataclass
class CompositeLayout:
    frame: Frame
    stack: List[AreaPlacement] = field(default_factory=list)
    layers: List[Layer] = field(default_factory=list)

    @property
    def listing(self) -> List[AreaPlacement]:
        """Placements in capture order, for numbered lists."""
        return sorted(self.stack, key=lambda p: p.area.order)

    @property
    def all_filled(self) -> bool:
        return len(self.stack) > 0 and all(p.filled for p in self.stack)

    def layer(self, name: str) -> Layer:
        return next(layer for layer in self.layers if layer.name == name)


def layer_order(areas_on_top: bool) -> List[Layer]:
    """Layers bottom to top."""
    if areas_on_top:
        return [Layer(BACKGROUND_LAYER, Z_BOTTOM), Layer(AREAS_LAYER, Z_TOP)]
    return [Layer(AREAS_LAYER, Z_BOTTOM), Layer(BACKGROUND_LAYER, Z_TOP)]


def build_layout(frame: Frame, photos: List[CapturedPhoto]) -> CompositeLayout:
    by_area: Dict[str, CapturedPhoto] = {}
    for photo in photos:
        by_area.setdefault(photo.area_id, photo)

    # Overlay stacking follows the frame's own area list, not the capture order.
    stack = [
        AreaPlacement(area=area, rect=area_proportions(area, frame.size_class), photo=by_area.get(area.id))
        for area in frame.areas
    ]
    return CompositeLayout(frame=frame, stack=stack, layers=layer_order(frame.areas_on_top))


def export_size(frame: Frame, scale: float = 1.0) -> Tuple[int, int]:
    base_w, base_h = design_dimensions(frame.size_class)
    return int(round(base_w * scale)), int(round(base_h * scale))


def _render_area(placement: AreaPlacement, photo_image: Optional[Image.Image], canvas_size: Tuple[int, int]) -> Tuple[Image.Image, Tuple[int, int]]:
    px = placement.to_pixels(*canvas_size)
    w, h = max(1, int(round(px.width))), max(1, int(round(px.height)))

    if photo_image is not None:
        tile = image_process.crop_to_fill(photo_image.convert("RGBA"), w, h)
    else:
        tile = Image.new("RGBA", (w, h), PLACEHOLDER_FILL)
        ImageDraw.Draw(tile).rectangle((0, 0, w - 1, h - 1), outline=PLACEHOLDER_OUTLINE, width=2)

    rotation = placement.area.rotation
    if rotation:
        # Screen rotation is clockwise for positive degrees; Pillow's is counter-clockwise.
        tile = tile.rotate(-rotation, resample=Image.Resampling.BICUBIC, expand=True)

    cx, cy = px.center
    return tile, (int(round(cx - tile.width / 2)), int(round(cy - tile.height / 2)))


def render_composite(
    background: Image.Image,
    layout: CompositeLayout,
    photo_images: Dict[str, Image.Image],
    size: Tuple[int, int],
) -> Image.Image:
    """Render the layout onto an RGBA canvas of ``size``.

    ``photo_images`` maps area id to the decoded photo for that area.
    """
    canvas_w, canvas_h = size
    bg = image_process.crop_to_fill(background.convert("RGBA"), canvas_w, canvas_h)

    areas_layer = Image.new("RGBA", size, (0, 0, 0, 0))
    for placement in layout.stack:
        tile, position = _render_area(placement, photo_images.get(placement.area.id), size)
        # paste clips tiles that hang off the canvas edge
        piece = Image.new("RGBA", size, (0, 0, 0, 0))
        piece.paste(tile, position)
        areas_layer = Image.alpha_composite(areas_layer, piece)

    rendered = {BACKGROUND_LAYER: bg, AREAS_LAYER: areas_layer}
    canvas = Image.new("RGBA", size, (255, 255, 255, 255))
    for layer in layout.layers:
        canvas = Image.alpha_composite(canvas, rendered[layer.name])
    return canvas
