# photobooth/domain/editor.py
"""Frame editor state: the area collection, selection and pointer gestures.

Pointer coordinates handed to the editor are in design-space pixels (the
caller divides out any on-screen scaling first).
"""
import math
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from photobooth.config.logger import get_logger
from photobooth.domain.errors import InputValidationError, InvalidTransitionError, NotFoundError
from photobooth.domain.models import Area, Frame, ShapeKind, SizeClass, new_id, utcnow

logger = get_logger(__name__)

MIN_AREA_SIZE = 50
DEFAULT_POSITION = (50, 50)
DEFAULT_SIZES = {
    ShapeKind.square: (100, 100),
    ShapeKind.landscape: (120, 80),
    ShapeKind.portrait: (80, 120),
}
# Height per unit of width applied while resizing.
LOCKED_RATIOS = {
    ShapeKind.square: 1.0,
    ShapeKind.portrait: 16 / 9,
    ShapeKind.landscape: 9 / 16,
}
HANDLE_TOLERANCE = 8
ROTATE_HANDLE_OFFSET = 16

_EDITABLE_FIELDS = {"shape_kind", "x", "y", "width", "height", "rotation", "order"}


class GestureKind(str, Enum):
    idle = "idle"
    dragging = "dragging"
    resizing = "resizing"
    rotating = "rotating"


def resize_dimensions(
    shape_kind: Optional[ShapeKind],
    start_width: float,
    start_height: float,
    delta_x: float,
    delta_y: float,
    min_size: float = MIN_AREA_SIZE,
) -> Tuple[float, float]:
    ratio = LOCKED_RATIOS.get(shape_kind) if shape_kind is not None else None
    if ratio is None:
        return max(min_size, start_width + delta_x), max(min_size, start_height + delta_y)

    delta = max(delta_x, delta_y)
    width = max(min_size, start_width + delta)
    height = width * ratio
    if height < min_size:
        # Landscape: keep the ratio and grow until both sides clear the floor.
        height = min_size
        width = height / ratio
    return width, height


def pointer_angle(center: Tuple[float, float], pointer: Tuple[float, float]) -> float:
    return math.degrees(math.atan2(pointer[1] - center[1], pointer[0] - center[0]))


class GestureSession:
    """One drag/resize/rotate interaction, alive from pointer-down to pointer-up."""

    def __init__(self, area: Area, kind: GestureKind, pointer: Tuple[float, float], min_size: float = MIN_AREA_SIZE):
        if kind == GestureKind.idle:
            raise InvalidTransitionError("gesture must start in an active state")
        self.area_id = area.id
        self.kind = kind
        self.min_size = min_size
        self.shape_kind = area.shape_kind
        px, py = pointer

        if kind == GestureKind.dragging:
            self.offset = (px - area.x, py - area.y)
        elif kind == GestureKind.resizing:
            self.start_pointer = (px, py)
            self.start_size = (area.width, area.height)
        else:
            self.center = (area.x + area.width / 2, area.y + area.height / 2)
            self.angle_offset = pointer_angle(self.center, pointer) - area.rotation

    def move(self, pointer_x: float, pointer_y: float) -> Dict[str, float]:
        """Area fields to update for the current pointer position."""
        if self.kind == GestureKind.dragging:
            return {
                "x": max(0.0, pointer_x - self.offset[0]),
                "y": max(0.0, pointer_y - self.offset[1]),
            }
        if self.kind == GestureKind.resizing:
            width, height = resize_dimensions(
                self.shape_kind,
                self.start_size[0],
                self.start_size[1],
                pointer_x - self.start_pointer[0],
                pointer_y - self.start_pointer[1],
                self.min_size,
            )
            return {"width": width, "height": height}
        angle = pointer_angle(self.center, (pointer_x, pointer_y))
        return {"rotation": angle - self.angle_offset}


def handle_at(area: Area, pointer_x: float, pointer_y: float, tolerance: float = HANDLE_TOLERANCE) -> Optional[GestureKind]:
    """Which gesture a pointer-down at this point would start, if any."""
    cx, cy = area.x + area.width / 2, area.y + area.height / 2
    # Undo the area's rotation so the hit test runs in its local frame.
    theta = math.radians(-area.rotation)
    dx, dy = pointer_x - cx, pointer_y - cy
    lx = cx + dx * math.cos(theta) - dy * math.sin(theta)
    ly = cy + dx * math.sin(theta) + dy * math.cos(theta)

    def near(x: float, y: float) -> bool:
        return abs(lx - x) <= tolerance and abs(ly - y) <= tolerance

    if near(cx, area.y - ROTATE_HANDLE_OFFSET):
        return GestureKind.rotating
    right, bottom = area.x + area.width, area.y + area.height
    corners = [(area.x, area.y), (right, area.y), (area.x, bottom), (right, bottom)]
    if any(near(x, y) for x, y in corners):
        return GestureKind.resizing
    if area.x <= lx <= right and area.y <= ly <= bottom:
        return GestureKind.dragging
    return None


class FrameEditor:
    def __init__(
        self,
        name: str = "",
        size_class: SizeClass = SizeClass.four_by_six,
        background_image_url: str = "",
        areas_on_top: bool = True,
        areas: Optional[List[Area]] = None,
        min_size: float = MIN_AREA_SIZE,
        frame_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ):
        self.frame_id = frame_id
        self.created_at = created_at
        self.name = name
        self.size_class = SizeClass(size_class)
        self.background_image_url = background_image_url
        self.areas_on_top = areas_on_top
        self.areas: List[Area] = list(areas or [])
        self.min_size = min_size
        self.selected_area_id: Optional[str] = None
        self.gesture: Optional[GestureSession] = None

    @classmethod
    def from_frame(cls, frame: Frame) -> "FrameEditor":
        return cls(
            name=frame.name,
            size_class=frame.size_class,
            background_image_url=frame.background_image_url,
            areas_on_top=frame.areas_on_top,
            areas=[a.model_copy() for a in frame.areas],
            frame_id=frame.id,
            created_at=frame.created_at,
        )

    # --- area collection ---

    def _index(self, area_id: str) -> int:
        for i, area in enumerate(self.areas):
            if area.id == area_id:
                return i
        raise NotFoundError(f"Area {area_id} tidak ditemukan")

    def get_area(self, area_id: str) -> Area:
        return self.areas[self._index(area_id)]

    def _next_order(self) -> int:
        # Equals count+1 while orders are dense; never collides after a removal.
        return max((a.order for a in self.areas), default=0) + 1

    def add_area(self, shape_kind: ShapeKind) -> Area:
        shape_kind = ShapeKind(shape_kind)
        width, height = DEFAULT_SIZES[shape_kind]
        area = Area(
            id=new_id("area"),
            shape_kind=shape_kind,
            x=DEFAULT_POSITION[0],
            y=DEFAULT_POSITION[1],
            width=width,
            height=height,
            rotation=0,
            order=self._next_order(),
        )
        self.areas.append(area)
        return area

    def update_area(self, area_id: str, **fields: Any) -> Area:
        """Merge fields into an area. Shape ratios are not enforced here."""
        unknown = set(fields) - _EDITABLE_FIELDS
        if unknown:
            raise InputValidationError(f"Field tidak dikenal: {', '.join(sorted(unknown))}")
        i = self._index(area_id)
        merged = {**self.areas[i].model_dump(), **fields}
        self.areas[i] = Area.model_validate(merged)
        return self.areas[i]

    def remove_area(self, area_id: str) -> None:
        i = self._index(area_id)
        del self.areas[i]
        if self.gesture is not None and self.gesture.area_id == area_id:
            self.gesture = None
        if self.selected_area_id == area_id:
            self.selected_area_id = None

    def select_area(self, area_id: str) -> None:
        self._index(area_id)
        self.selected_area_id = area_id

    def deselect(self) -> None:
        self.selected_area_id = None

    # --- pointer gestures ---

    def gesture_state(self, area_id: str) -> GestureKind:
        if self.gesture is not None and self.gesture.area_id == area_id:
            return self.gesture.kind
        return GestureKind.idle

    def pointer_down(self, area_id: str, kind: GestureKind, x: float, y: float) -> GestureSession:
        if self.gesture is not None:
            raise InvalidTransitionError("Gesture lain masih aktif")
        area = self.get_area(area_id)
        self.select_area(area_id)
        self.gesture = GestureSession(area, GestureKind(kind), (x, y), self.min_size)
        return self.gesture

    def pointer_move(self, x: float, y: float) -> Optional[Area]:
        if self.gesture is None:
            return None
        return self.update_area(self.gesture.area_id, **self.gesture.move(x, y))

    def pointer_up(self) -> None:
        self.gesture = None

    # --- output ---

    def _check_areas(self) -> None:
        ids = [a.id for a in self.areas]
        if len(set(ids)) != len(ids):
            raise InputValidationError("ID area tidak boleh duplikat")
        orders = [a.order for a in self.areas]
        if any(order < 1 for order in orders):
            raise InputValidationError("Urutan area dimulai dari 1")
        if len(set(orders)) != len(orders):
            raise InputValidationError("Urutan area tidak boleh duplikat")

    def build_frame(self) -> Frame:
        name = self.name.strip()
        if not name:
            raise InputValidationError("Nama frame harus diisi")
        if not self.background_image_url:
            raise InputValidationError("Gambar frame harus diupload")
        self._check_areas()

        frame = Frame(
            id=self.frame_id or new_id("frame"),
            name=name,
            background_image_url=self.background_image_url,
            size_class=self.size_class,
            areas=[a.model_copy() for a in self.areas],
            areas_on_top=self.areas_on_top,
            created_at=self.created_at or utcnow(),
        )
        logger.info(f"Frame '{frame.name}' dibangun dengan {len(frame.areas)} area.")
        return frame
