import os
from pathlib import Path
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent.parent  # go up to project root
env_path = BASE_DIR / ".env.development"

load_dotenv(env_path)


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


class Settings:
    MONGO_URI: str = os.getenv("MONGO_URI", "mongodb://localhost:27017")
    MONGO_DB: str = os.getenv("MONGO_DB", "filevault_db")

    # Remote object store (S3 or any S3-compatible endpoint)
    AWS_ACCESS_KEY_ID: str = os.getenv("AWS_ACCESS_KEY_ID")
    AWS_SECRET_ACCESS_KEY: str = os.getenv("AWS_SECRET_ACCESS_KEY")
    AWS_REGION: str = os.getenv("AWS_REGION", "us-east-1")
    AWS_S3_BUCKET: str = os.getenv("AWS_S3_BUCKET")
    S3_ENDPOINT_URL: str = os.getenv("S3_ENDPOINT_URL")
    S3_PUBLIC_BASE_URL: str = os.getenv("S3_PUBLIC_BASE_URL")
    UPLOAD_FOLDER: str = os.getenv("UPLOAD_FOLDER", "files")
    HLS_FOLDER: str = os.getenv("HLS_FOLDER", "hls")
    UPLOAD_CONCURRENCY: int = _int_env("UPLOAD_CONCURRENCY", 4)

    # Auth collaborator
    ACCESS_TOKEN_SECRET: str = os.getenv("ACCESS_TOKEN_SECRET", "")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")

    # Upload pipeline
    MAX_UPLOAD_SIZE: int = _int_env("MAX_UPLOAD_SIZE", 100 * 1024 * 1024)  # 100MB in bytes
    TEMP_DIR: str = os.getenv("TEMP_DIR", str(BASE_DIR / "public" / "temp"))
    HLS_SEGMENT_DURATION: int = _int_env("HLS_SEGMENT_DURATION", 10)
    HLS_MAX_WIDTH: int = _int_env("HLS_MAX_WIDTH", 1920)
    FFMPEG_PATH: str = os.getenv("FFMPEG_PATH", "ffmpeg")
    FFPROBE_PATH: str = os.getenv("FFPROBE_PATH", "ffprobe")
    PROBE_TIMEOUT: int = _int_env("PROBE_TIMEOUT", 60)
    TRANSCODE_TIMEOUT: int = _int_env("TRANSCODE_TIMEOUT", 1800)

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    PORT: int = _int_env("PORT", 8000)

settings = Settings()
