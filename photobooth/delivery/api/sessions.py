# photobooth/delivery/api/sessions.py
from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import Optional
import asyncio
import logging

from photobooth.config.settings import settings
from photobooth.delivery.api.deps import get_session_service, layout_out
from photobooth.delivery.schemas.body import CaptureOut, LayoutOut, SessionBody
from photobooth.domain.session_service import SessionService

router = APIRouter(tags=["sessions"])
logger = logging.getLogger("uvicorn.error")


@router.post("/sessions", status_code=status.HTTP_201_CREATED)
async def create_session(body: SessionBody, service: SessionService = Depends(get_session_service)):
    record = await service.create_session(body.frame_id, body.photos)
    return record.to_record()


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, service: SessionService = Depends(get_session_service)):
    return (await service.get_session(session_id)).to_record()


@router.post("/sessions/{session_id}/retake/{area_id}", response_model=CaptureOut)
async def retake(session_id: str, area_id: str, service: SessionService = Depends(get_session_service)):
    logger.info(f"=== ENDPOINT START retake {area_id} for {session_id} ===")
    try:
        record, session = await asyncio.wait_for(
            service.retake(session_id, area_id),
            timeout=service.sequence_seconds(1) + settings.ENDPOINT_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        logger.error(f"=== ENDPOINT TIMEOUT retake for {session_id} ===")
        raise HTTPException(status_code=504, detail="Retake melebihi batas waktu")

    logger.info(f"=== ENDPOINT SUCCESS retake for {session_id} ===")
    return CaptureOut(
        session=record.to_record(),
        failed_area_ids=sorted(session.failed_area_ids),
        pending_area_ids=session.pending_area_ids,
        all_filled=session.all_filled,
    )


@router.get("/sessions/{session_id}/preview", response_model=LayoutOut)
async def preview(
    session_id: str,
    width: Optional[float] = Query(default=None, gt=0),
    service: SessionService = Depends(get_session_service),
):
    return layout_out(await service.layout(session_id), width)


@router.post("/sessions/{session_id}/export")
async def export(session_id: str, service: SessionService = Depends(get_session_service)):
    logger.info(f"=== ENDPOINT START export for {session_id} ===")
    record = await service.export(session_id)
    logger.info(f"=== ENDPOINT SUCCESS export for {session_id} ===")
    return {"url": record.final_image, "session": record.to_record()}
