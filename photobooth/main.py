# photobooth/main.py
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional
import logging
import os
import traceback

from photobooth.config.settings import settings
from photobooth.config.database import create_engine, create_session_factory, init_db
from photobooth.delivery.api import frames, sessions, uploads
from photobooth.domain.capture_session import Sleep
from photobooth.domain.errors import (
    InputValidationError,
    InvalidTransitionError,
    NotFoundError,
    PhotoboothError,
    ResourceUnavailableError,
    UploadRejectedError,
)
from photobooth.domain.frame_service import FrameService
from photobooth.domain.session_service import SessionService
from photobooth.infrastructure.camera.base import CameraSource
from photobooth.infrastructure.camera.opencv_camera import OpenCVCamera
from photobooth.infrastructure.database.repository import InMemoryRecordStore, RecordStore, SqlRecordStore
from photobooth.infrastructure.storage.base import UploadStorage
from photobooth.infrastructure.storage.local import LocalUploadStorage

logger = logging.getLogger("uvicorn.error")


def _default_uploads() -> UploadStorage:
    if settings.UPLOAD_BACKEND == "cloudinary":
        from photobooth.infrastructure.storage.cloudinary_storage import CloudinaryUploadStorage
        return CloudinaryUploadStorage(
            folder=settings.CLOUDINARY_FOLDER,
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_API_SECRET,
            cloudinary_url=settings.CLOUDINARY_URL,
        )
    return LocalUploadStorage(settings.UPLOAD_DIR, settings.UPLOAD_URL_PREFIX)


def _default_camera() -> CameraSource:
    return OpenCVCamera(settings.CAMERA_DEVICE_ID, settings.CAMERA_WIDTH, settings.CAMERA_HEIGHT)


def _status_for(exc: PhotoboothError) -> int:
    if isinstance(exc, UploadRejectedError) and exc.too_large:
        return status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    if isinstance(exc, InputValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, ResourceUnavailableError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(exc, InvalidTransitionError):
        return status.HTTP_409_CONFLICT
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_app(
    record_store: Optional[RecordStore] = None,
    upload_storage: Optional[UploadStorage] = None,
    camera_factory: Optional[Callable[[], CameraSource]] = None,
    sleep: Optional[Sleep] = None,
    seed_defaults: Optional[bool] = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        max_workers = min(4, os.cpu_count() or 1)  # Conservative limit
        app.state.executor = ThreadPoolExecutor(max_workers=max_workers)

        engine = None
        store = record_store
        if store is None and settings.RECORD_STORE == "sql":
            engine = create_engine(settings.DATABASE_URL)
            await init_db(engine)
            store = SqlRecordStore(create_session_factory(engine))
        elif store is None:
            store = InMemoryRecordStore()

        uploads_backend = upload_storage or _default_uploads()
        app.state.frame_service = FrameService(store, uploads_backend, settings.MAX_UPLOAD_BYTES)
        extra = {"sleep": sleep} if sleep is not None else {}
        app.state.session_service = SessionService(
            store,
            uploads_backend,
            camera_factory or _default_camera,
            executor=app.state.executor,
            countdown_seconds=settings.COUNTDOWN_SECONDS,
            pause_ms=settings.INTER_SHOT_PAUSE_MS,
            capture_quality=settings.CAPTURE_JPEG_QUALITY,
            export_scale=settings.EXPORT_SCALE,
            export_quality=settings.EXPORT_JPEG_QUALITY,
            local_root=os.path.dirname(os.path.abspath(settings.UPLOAD_DIR)),
            **extra,
        )

        if settings.SEED_DEFAULT_FRAMES if seed_defaults is None else seed_defaults:
            await app.state.frame_service.seed_default_frames()

        logger.info(f"Service '{settings.PROJECT_NAME}' dimulai (mode: {settings.ENVIRONMENT}).")
        yield
        logger.info("Menutup ThreadPoolExecutor...")
        app.state.executor.shutdown(wait=True)
        if engine is not None:
            await engine.dispose()
        logger.info("Service berhenti.")

    app = FastAPI(
        title="Photobooth Studio Service",
        description="Frame templates, timed camera capture sessions and composite export",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_HOSTS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PhotoboothError)
    async def photobooth_error(request: Request, exc: PhotoboothError):
        code = _status_for(exc)
        if code >= 500:
            logger.error(f"=== ENDPOINT ERROR {request.url.path}: {exc} ===")
        else:
            logger.warning(f"{request.url.path}: {exc}")
        return JSONResponse(status_code=code, content={"detail": str(exc)})

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.error(f"=== ENDPOINT ERROR {request.url.path}: {exc} ===\n{traceback.format_exc()}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Terjadi kesalahan internal pada server."},
        )

    app.include_router(uploads.router, prefix=settings.API_V1_STR)
    app.include_router(frames.router, prefix=settings.API_V1_STR)
    app.include_router(sessions.router, prefix=settings.API_V1_STR)

    if settings.UPLOAD_BACKEND == "local":
        app.mount(settings.UPLOAD_URL_PREFIX, StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")

    @app.get("/")
    async def root():
        return {"message": "Photobooth Studio Service", "version": "1.0.0", "status": "ok"}

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "service": "Photobooth Studio 1.0"}

    return app


app = create_app()
