# photobooth/delivery/api/deps.py
import logging
from typing import Optional

from fastapi import HTTPException, Request, status

from photobooth.domain.compositor import CompositeLayout
from photobooth.domain.frame_service import FrameService
from photobooth.domain.geometry import design_dimensions, render_size
from photobooth.domain.session_service import SessionService
from photobooth.delivery.schemas.body import AreaRectOut, LayerOut, LayoutOut

logger = logging.getLogger("uvicorn.error")


def _service(request: Request, name: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        logger.error(f"{name} not initialized")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is not ready. Please try again in a moment.",
        )
    return service


def get_frame_service(request: Request) -> FrameService:
    return _service(request, "frame_service")


def get_session_service(request: Request) -> SessionService:
    return _service(request, "session_service")


def layout_out(layout: CompositeLayout, width: Optional[float] = None) -> LayoutOut:
    """Project a layout to pixels at ``width`` (design size when omitted)."""
    frame = layout.frame
    if width is None:
        width = design_dimensions(frame.size_class)[0]
    render_w, render_h = render_size(frame.size_class, width)

    areas = []
    for placement in layout.stack:
        px = placement.to_pixels(render_w, render_h)
        areas.append(AreaRectOut(
            id=placement.area.id,
            order=placement.area.order,
            type=placement.area.shape_kind.value,
            x=px.x,
            y=px.y,
            width=px.width,
            height=px.height,
            rotation=placement.area.rotation,
            filled=placement.filled,
            photo=placement.photo.image_data if placement.photo else None,
        ))
    return LayoutOut(
        frame_id=frame.id,
        image=frame.background_image_url,
        width=render_w,
        height=render_h,
        areas_on_top=frame.areas_on_top,
        layers=[LayerOut(name=layer.name, z_index=layer.z_index) for layer in layout.layers],
        areas=areas,
        listing=[p.area.id for p in layout.listing],
        all_filled=layout.all_filled,
    )
