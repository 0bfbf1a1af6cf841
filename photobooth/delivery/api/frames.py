# photobooth/delivery/api/frames.py
from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import Optional
import asyncio
import logging
import threading

from photobooth.config.settings import settings
from photobooth.delivery.api.deps import get_frame_service, get_session_service, layout_out
from photobooth.delivery.schemas.body import CaptureOut, FrameBody, LayoutOut
from photobooth.domain.compositor import build_layout
from photobooth.domain.editor import FrameEditor
from photobooth.domain.frame_service import FrameService
from photobooth.domain.session_service import SessionService

router = APIRouter(tags=["frames"])
logger = logging.getLogger("uvicorn.error")


def _editor(body: FrameBody, frame_id: Optional[str] = None, created_at=None) -> FrameEditor:
    return FrameEditor(
        name=body.name,
        size_class=body.size,
        background_image_url=body.image,
        areas_on_top=body.areas_on_top,
        areas=body.areas,
        frame_id=frame_id,
        created_at=created_at,
    )


@router.get("/frames")
async def list_frames(service: FrameService = Depends(get_frame_service)):
    return [frame.to_record() for frame in await service.list_frames()]


@router.get("/frames/{frame_id}")
async def get_frame(frame_id: str, service: FrameService = Depends(get_frame_service)):
    return (await service.get_frame(frame_id)).to_record()


@router.post("/frames", status_code=status.HTTP_201_CREATED)
async def create_frame(body: FrameBody, service: FrameService = Depends(get_frame_service)):
    frame = await service.save_editor(_editor(body))
    return frame.to_record()


@router.put("/frames/{frame_id}")
async def update_frame(frame_id: str, body: FrameBody, service: FrameService = Depends(get_frame_service)):
    existing = await service.get_frame(frame_id)
    frame = await service.save_editor(_editor(body, frame_id=existing.id, created_at=existing.created_at))
    return frame.to_record()


@router.delete("/frames/{frame_id}")
async def delete_frame(frame_id: str, service: FrameService = Depends(get_frame_service)):
    image_deleted = await service.delete_frame(frame_id)
    message = "Frame dan gambar berhasil dihapus" if image_deleted else "Frame dihapus, gambar tidak ikut terhapus"
    return {"status": "ok", "imageDeleted": image_deleted, "message": message}


@router.get("/frames/{frame_id}/layout", response_model=LayoutOut)
async def frame_layout(
    frame_id: str,
    width: Optional[float] = Query(default=None, gt=0),
    service: FrameService = Depends(get_frame_service),
):
    frame = await service.get_frame(frame_id)
    return layout_out(build_layout(frame, []), width)


@router.post("/frames/{frame_id}/capture", response_model=CaptureOut)
async def capture(frame_id: str, service: SessionService = Depends(get_session_service)):
    logger.info(f"=== ENDPOINT START capture for {frame_id} (threads={threading.active_count()}) ===")
    frame = await service.frame_for(frame_id)
    # The countdowns themselves are never cut short; the limit only bounds what comes on top.
    timeout = service.sequence_seconds(len(frame.areas)) + settings.ENDPOINT_TIMEOUT_SECONDS
    try:
        record, session = await asyncio.wait_for(service.capture(frame_id), timeout=timeout)
    except asyncio.TimeoutError:
        logger.error(f"=== ENDPOINT TIMEOUT capture for {frame_id} after {timeout:.1f}s ===")
        raise HTTPException(status_code=504, detail="Sesi foto melebihi batas waktu")

    logger.info(f"=== ENDPOINT SUCCESS capture for {frame_id} ===")
    return CaptureOut(
        session=record.to_record(),
        failed_area_ids=sorted(session.failed_area_ids),
        pending_area_ids=session.pending_area_ids,
        all_filled=session.all_filled,
    )
