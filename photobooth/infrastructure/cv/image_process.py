# photobooth/infrastructure/cv/image_process.py
import base64
import io
import os
from typing import Optional, Tuple

import aiofiles
import aiohttp
import cv2
import numpy as np
from PIL import Image

from photobooth.config.logger import get_logger
from photobooth.domain.errors import CaptureStepError

logger = get_logger(__name__)

REQUEST_TIMEOUT = 30
GUIDE_COVERAGE = 0.8


def guide_rect(video_w: int, video_h: int, aspect: float) -> Tuple[float, float, float, float]:
    """Largest centred rectangle of the given aspect within 80% of the frame."""
    guide_w = video_w * GUIDE_COVERAGE
    guide_h = guide_w / aspect
    if guide_h > video_h * GUIDE_COVERAGE:
        guide_h = video_h * GUIDE_COVERAGE
        guide_w = guide_h * aspect
    crop_x = (video_w - guide_w) / 2
    crop_y = (video_h - guide_h) / 2
    return crop_x, crop_y, guide_w, guide_h


def crop_guide(frame_bgr: np.ndarray, aspect: float) -> np.ndarray:
    if frame_bgr is None or frame_bgr.size == 0:
        raise CaptureStepError("Frame kamera kosong")
    video_h, video_w = frame_bgr.shape[:2]
    crop_x, crop_y, guide_w, guide_h = guide_rect(video_w, video_h, aspect)
    out_w = max(1, int(round(guide_w)))
    out_h = max(1, int(round(guide_h)))
    x0 = int(round(crop_x))
    y0 = int(round(crop_y))
    x0 = max(0, min(x0, video_w - out_w))
    y0 = max(0, min(y0, video_h - out_h))
    return frame_bgr[y0:y0 + out_h, x0:x0 + out_w]


def encode_jpeg_data_url(image_bgr: np.ndarray, quality: int = 90) -> str:
    ok, buf = cv2.imencode(".jpg", image_bgr, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
    if not ok:
        raise CaptureStepError("Encode JPEG gagal")
    return "data:image/jpeg;base64," + base64.b64encode(buf.tobytes()).decode("ascii")


def decode_data_url(data_url: str) -> bytes:
    if data_url.startswith("data:image"):
        _, encoded = data_url.split(",", 1)
        return base64.b64decode(encoded)
    return base64.b64decode(data_url)


def open_image(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


def extract_region(image_pil: Image.Image, rect: Tuple[int, int, int, int]) -> Image.Image:
    """Copy a pixel rectangle out of an image without resampling."""
    sx, sy, sw, sh = rect
    if image_pil.mode == "P":
        image_pil = image_pil.convert("RGBA")
    return image_pil.crop((sx, sy, sx + sw, sy + sh))


def crop_to_fill(image_pil: Image.Image, target_w: int, target_h: int) -> Image.Image:
    target_w, target_h = max(1, int(target_w)), max(1, int(target_h))
    source_w, source_h = image_pil.size
    target_ratio = target_w / target_h
    source_ratio = source_w / source_h

    if source_ratio > target_ratio:
        scale_factor = target_h / source_h
        scaled_w = max(target_w, int(round(source_w * scale_factor)))
        scaled_h = target_h
        resized_image = image_pil.resize((scaled_w, scaled_h), Image.Resampling.LANCZOS)
        crop_x = (scaled_w - target_w) // 2
        return resized_image.crop((crop_x, 0, crop_x + target_w, scaled_h))
    else:
        scale_factor = target_w / source_w
        scaled_w = target_w
        scaled_h = max(target_h, int(round(source_h * scale_factor)))
        resized_image = image_pil.resize((scaled_w, scaled_h), Image.Resampling.LANCZOS)
        crop_y = (scaled_h - target_h) // 2
        return resized_image.crop((0, crop_y, scaled_w, crop_y + target_h))


def pil_to_bytes(img: Image.Image, fmt: str = "png", quality: int = 88) -> Tuple[bytes, str]:
    """Serialize an image, returning the bytes and their MIME type."""
    fmt = (fmt or "png").lower()
    if fmt in ("jpg", "jpeg"):
        # JPEG can't have alpha
        if img.mode != "RGB":
            img = img.convert("RGB")
        save_kwargs = dict(format="JPEG", quality=quality, optimize=True)
        mime = "image/jpeg"
    elif fmt == "png":
        save_kwargs = dict(format="PNG")
        mime = "image/png"
    else:
        raise ValueError(f"Format tidak didukung: {fmt}")

    buf = io.BytesIO()
    img.save(buf, **save_kwargs)
    return buf.getvalue(), mime


async def load_image_bytes_async(src: str, session: aiohttp.ClientSession, local_root: Optional[str] = None) -> bytes:
    """Fetch image bytes from an http(s) URL, a local path or a data URL."""
    if src.startswith(("http://", "https://")):
        async with session.get(src, timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT)) as response:
            response.raise_for_status()
            return await response.read()
    if src.startswith("data:image"):
        return decode_data_url(src)

    path = src
    if local_root and not os.path.isfile(path):
        path = os.path.join(local_root, src.lstrip("/"))
    if os.path.isfile(path):
        async with aiofiles.open(path, "rb") as f:
            return await f.read()
    raise FileNotFoundError(f"Gambar tidak ditemukan: '{src[:70]}'")
