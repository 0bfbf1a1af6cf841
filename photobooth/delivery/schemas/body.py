from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional

from photobooth.domain.models import Area, CapturedPhoto, SizeClass


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class FrameBody(_Body):
    name: str
    image: str = ""                        # URL returned by /upload-frame or /crop-frame
    size: SizeClass = SizeClass.four_by_six
    areas: List[Area] = Field(default_factory=list)
    areas_on_top: bool = Field(default=True, alias="areasOnTop")


class UploadResponse(BaseModel):
    url: str


class CropResponse(BaseModel):
    url: str
    width: int
    height: int


class CropBoxOut(BaseModel):
    x: float
    y: float
    w: float
    h: float
    aspect: float


class AreaRectOut(_Body):
    id: str
    order: int
    type: str
    x: float
    y: float
    width: float
    height: float
    rotation: float
    filled: bool = False
    photo: Optional[str] = None           # data URL of the captured photo, if any


class LayerOut(BaseModel):
    name: str
    z_index: int = Field(serialization_alias="zIndex")


class LayoutOut(_Body):
    frame_id: str = Field(serialization_alias="frameId")
    image: str
    width: float
    height: float
    areas_on_top: bool = Field(serialization_alias="areasOnTop")
    layers: List[LayerOut]
    areas: List[AreaRectOut]              # overlay stacking order
    listing: List[str]                    # area ids by capture order
    all_filled: bool = Field(serialization_alias="allFilled")


class SessionBody(_Body):
    frame_id: str = Field(alias="frameId")
    photos: List[CapturedPhoto] = Field(default_factory=list)


class CaptureOut(_Body):
    session: dict
    failed_area_ids: List[str] = Field(serialization_alias="failedAreaIds")
    pending_area_ids: List[str] = Field(serialization_alias="pendingAreaIds")
    all_filled: bool = Field(serialization_alias="allFilled")
