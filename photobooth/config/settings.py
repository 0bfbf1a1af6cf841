# config/settings.py
from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # API
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Photobooth Studio"

    # CORS
    ALLOWED_HOSTS: List[str] = ["*"]

    # Records
    RECORD_STORE: str = "sql"  # "sql" | "memory"
    DATABASE_URL: str = "sqlite+aiosqlite:///./photobooth.db"
    SEED_DEFAULT_FRAMES: bool = True

    # Uploads
    UPLOAD_BACKEND: str = "local"  # "local" | "cloudinary"
    UPLOAD_DIR: str = "public/frame"
    UPLOAD_URL_PREFIX: str = "/frame"
    MAX_UPLOAD_BYTES: int = 8 * 1024 * 1024

    # Cloudinary (either use CLOUDINARY_URL or the 3 fields below)
    CLOUDINARY_URL: Optional[str] = None
    CLOUDINARY_CLOUD_NAME: Optional[str] = None
    CLOUDINARY_API_KEY: Optional[str] = None
    CLOUDINARY_API_SECRET: Optional[str] = None
    CLOUDINARY_FOLDER: str = "photobooth-frames"

    # Camera
    CAMERA_DEVICE_ID: int = 0
    CAMERA_WIDTH: int = 1280
    CAMERA_HEIGHT: int = 720

    # Capture session
    COUNTDOWN_SECONDS: int = 5
    INTER_SHOT_PAUSE_MS: int = 800
    CAPTURE_JPEG_QUALITY: int = 90

    # Export
    EXPORT_SCALE: int = 2
    EXPORT_JPEG_QUALITY: int = 88
    ENDPOINT_TIMEOUT_SECONDS: int = 120  # headroom on top of the capture countdowns and pauses

    # Env
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
