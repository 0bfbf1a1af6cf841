# photobooth/delivery/api/uploads.py
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from photobooth.delivery.api.deps import get_frame_service
from photobooth.delivery.schemas.body import CropBoxOut, CropResponse, UploadResponse
from photobooth.domain.crop_box import CropBox, initial_crop_box, target_aspect
from photobooth.domain.frame_service import FrameService
from photobooth.domain.models import SizeClass

router = APIRouter(tags=["uploads"])


@router.post("/upload-frame", response_model=UploadResponse)
async def upload_frame(file: UploadFile = File(...), service: FrameService = Depends(get_frame_service)):
    data = await file.read()
    url = await service.upload_background(data, file.filename or "", file.content_type or "")
    return UploadResponse(url=url)


@router.get("/crop-box/initial", response_model=CropBoxOut)
async def initial_box(
    size: SizeClass = Query(default=SizeClass.four_by_six),
    container_width: float = Query(..., gt=0),
    container_height: float = Query(..., gt=0),
):
    aspect = target_aspect(size)
    box = initial_crop_box(container_width, container_height, aspect)
    return CropBoxOut(x=box.x, y=box.y, w=box.w, h=box.h, aspect=aspect)


@router.post("/crop-frame", response_model=CropResponse)
async def crop_frame(
    file: UploadFile = File(...),
    size: SizeClass = Form(default=SizeClass.four_by_six),
    x: float = Form(...),
    y: float = Form(...),
    w: float = Form(...),
    h: float = Form(...),
    service: FrameService = Depends(get_frame_service),
):
    data = await file.read()
    url, (width, height) = await service.crop_background(
        data, file.filename or "", file.content_type or "", CropBox(x=x, y=y, w=w, h=h), size
    )
    return CropResponse(url=url, width=width, height=height)
