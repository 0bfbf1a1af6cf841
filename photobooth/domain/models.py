# photobooth/domain/models.py
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class ShapeKind(str, Enum):
    square = "square"
    landscape = "landscape"
    portrait = "portrait"


class SizeClass(str, Enum):
    four_by_six = "4x6"
    two_by_four = "2x4"


class _Record(BaseModel):
    # Records are persisted with the camelCase keys used by the booth client.
    model_config = ConfigDict(populate_by_name=True)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class Area(_Record):
    id: str
    shape_kind: ShapeKind = Field(alias="type")
    x: float
    y: float
    width: float
    height: float
    rotation: float = 0.0
    order: int

    @property
    def aspect_ratio(self) -> float:
        return max(1.0, self.width) / max(1.0, self.height)


class Frame(_Record):
    id: str
    name: str
    background_image_url: str = Field(alias="image")
    size_class: SizeClass = Field(alias="size")
    areas: List[Area] = Field(default_factory=list)
    areas_on_top: bool = Field(alias="areasOnTop")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")

    def area(self, area_id: str) -> Optional[Area]:
        return next((a for a in self.areas if a.id == area_id), None)

    def areas_by_order(self) -> List[Area]:
        return sorted(self.areas, key=lambda a: a.order)


class CapturedPhoto(_Record):
    id: str = Field(default_factory=lambda: new_id("photo"))
    area_id: str = Field(alias="areaId")
    image_data: str = Field(alias="dataUrl")
    captured_at: datetime = Field(default_factory=utcnow, alias="timestamp")
    aspect_ratio: Optional[float] = Field(default=None, alias="aspectRatio")


class PhotoSession(_Record):
    id: str = Field(default_factory=lambda: new_id("session"))
    frame_id: str = Field(alias="frameId")
    photos: List[CapturedPhoto] = Field(default_factory=list)
    final_image: Optional[str] = Field(default=None, alias="finalImage")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")


def normalize_frame_record(raw: Dict[str, Any]) -> Frame:
    """Turn a stored frame dict into a fully populated Frame.

    Records written before the layering switch existed carry no
    ``areasOnTop``; those always rendered areas above the background.
    """
    data = dict(raw)
    if not isinstance(data.get("areasOnTop", data.get("areas_on_top")), bool):
        data.pop("areas_on_top", None)
        data["areasOnTop"] = True
    return Frame.model_validate(data)


def normalize_session_record(raw: Dict[str, Any]) -> PhotoSession:
    return PhotoSession.model_validate(raw)
