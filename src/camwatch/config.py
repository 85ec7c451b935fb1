"""
Configuration management for CamWatch using Pydantic settings.

Loads configuration from:
1. .env file (if present)
2. config/config.json (defaults)
3. Environment variables (override with CAMWATCH_ prefix)
"""

import json
import logging
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
RUNTIME_DIR = PROJECT_ROOT / "runtime"

# Load .env file from project root (if exists)
_env_file = PROJECT_ROOT / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
    logger.debug(f"Loaded environment from {_env_file}")


def load_json_config() -> dict[str, Any]:
    """Load configuration from config.json file."""
    config_file = CONFIG_DIR / "config.json"
    if config_file.exists():
        with open(config_file) as f:
            return json.load(f)
    return {}


_json_config = load_json_config()


class CameraConfig(BaseSettings):
    """Video source configuration."""

    model_config = {"env_prefix": "CAMWATCH_CAMERA_"}

    device: str = Field(
        default=str(_json_config.get("camera", {}).get("device", "0")),
        description="OpenCV capture device index or stream URL",
    )
    resolution: tuple[int, int] = Field(
        default=tuple(_json_config.get("camera", {}).get("resolution", [1280, 720])),
        description="Requested capture resolution (width, height)",
    )
    framerate: int = Field(
        default=_json_config.get("camera", {}).get("framerate", 30),
        description="Capture framerate",
    )

    @field_validator("resolution", mode="before")
    @classmethod
    def parse_resolution(cls, v):
        if isinstance(v, list):
            return tuple(v)
        return v

    @field_validator("framerate")
    @classmethod
    def validate_framerate(cls, v):
        if v < 1 or v > 120:
            raise ValueError(f"framerate must be between 1 and 120, got {v}")
        return v


class DetectionConfig(BaseSettings):
    """Object detector and sampling loop configuration."""

    model_config = {"env_prefix": "CAMWATCH_DETECTION_"}

    backend: str = Field(
        default=_json_config.get("detection", {}).get("backend", "ssd"),
        description="Detector backend: 'ssd' (OpenCV DNN) or 'mock'",
    )
    model_path: str = Field(
        default=_json_config.get("detection", {}).get(
            "model_path", str(PROJECT_ROOT / "models" / "ssd_mobilenet_v2_coco.pb")
        ),
        description="Path to the frozen SSD MobileNet graph",
    )
    config_path: str = Field(
        default=_json_config.get("detection", {}).get(
            "config_path", str(PROJECT_ROOT / "models" / "ssd_mobilenet_v2_coco.pbtxt")
        ),
        description="Path to the OpenCV text graph for the model",
    )
    confidence_threshold: float = Field(
        default=_json_config.get("detection", {}).get("confidence_threshold", 0.5),
        description="Minimum score for a detection to be reported",
    )
    interval_ms: int = Field(
        default=_json_config.get("detection", {}).get("interval_ms", 100),
        description="Polling interval of the detection loop",
    )
    target_class: str = Field(
        default=_json_config.get("detection", {}).get("target_class", "person"),
        description="Detection label that triggers auto-recording",
    )
    inference_timeout_seconds: float = Field(
        default=_json_config.get("detection", {}).get("inference_timeout_seconds", 5.0),
        description="A detect call taking longer than this is dropped",
    )

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v):
        if v not in ("ssd", "mock"):
            raise ValueError(f"backend must be 'ssd' or 'mock', got {v}")
        return v

    @field_validator("confidence_threshold")
    @classmethod
    def validate_threshold(cls, v):
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"confidence_threshold must be 0.0-1.0, got {v}")
        return v

    @field_validator("interval_ms")
    @classmethod
    def validate_interval(cls, v):
        if v < 10 or v > 10_000:
            raise ValueError(f"interval_ms must be between 10 and 10000, got {v}")
        return v


class DisplayConfig(BaseSettings):
    """Preview and overlay configuration."""

    model_config = {"env_prefix": "CAMWATCH_DISPLAY_"}

    mirrored: bool = Field(
        default=_json_config.get("display", {}).get("mirrored", True),
        description="Mirror the preview video and overlay horizontally",
    )
    preview_quality: int = Field(
        default=_json_config.get("display", {}).get("preview_quality", 80),
        description="JPEG quality of the preview image",
    )


class RecordingConfig(BaseSettings):
    """Recording session and export configuration."""

    model_config = {"env_prefix": "CAMWATCH_RECORDING_"}

    auto_record_enabled: bool = Field(
        default=_json_config.get("recording", {}).get("auto_record_enabled", False),
        description="Start recording automatically when the target class appears",
    )
    auto_stop_duration_ms: int = Field(
        default=_json_config.get("recording", {}).get("auto_stop_duration_ms", 30_000),
        description="Recording sessions are finalized after this long",
    )
    export_dir: str = Field(
        default=_json_config.get("recording", {}).get(
            "export_dir", str(RUNTIME_DIR / "exports")
        ),
        description="Directory receiving recordings and stills",
    )
    container: str = Field(
        default=_json_config.get("recording", {}).get("container", "webm"),
        description="Recording container: 'webm' (VP8) or 'mp4' (H.264)",
    )

    @field_validator("auto_stop_duration_ms")
    @classmethod
    def validate_auto_stop(cls, v):
        if v < 1:
            raise ValueError(f"auto_stop_duration_ms must be positive, got {v}")
        return v

    @field_validator("container")
    @classmethod
    def validate_container(cls, v):
        if v not in ("webm", "mp4"):
            raise ValueError(f"container must be 'webm' or 'mp4', got {v}")
        return v


class AudioConfig(BaseSettings):
    """Notification beep configuration."""

    model_config = {"env_prefix": "CAMWATCH_AUDIO_"}

    enabled: bool = Field(
        default=_json_config.get("audio", {}).get("enabled", True),
        description="Enable the audible cue",
    )
    volume: float = Field(
        default=_json_config.get("audio", {}).get("volume", 0.8),
        description="Notification volume (0.0 to 1.0)",
    )
    frequency_hz: float = Field(
        default=_json_config.get("audio", {}).get("frequency_hz", 520.0),
        description="Beep tone frequency",
    )
    duration_ms: int = Field(
        default=_json_config.get("audio", {}).get("duration_ms", 200),
        description="Beep length",
    )

    @field_validator("volume")
    @classmethod
    def validate_volume(cls, v):
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"volume must be 0.0-1.0, got {v}")
        return v


class APIConfig(BaseSettings):
    """FastAPI server configuration."""

    model_config = {"env_prefix": "CAMWATCH_API_"}

    enabled: bool = Field(
        default=_json_config.get("api", {}).get("enabled", True),
        description="Enable the operator API",
    )
    host: str = Field(
        default=_json_config.get("api", {}).get("host", "127.0.0.1"),
        description="API server bind host",
    )
    port: int = Field(
        default=_json_config.get("api", {}).get("port", 8080),
        description="API server port",
    )


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = {"env_prefix": "CAMWATCH_LOGGING_"}

    level: str = Field(
        default=_json_config.get("logging", {}).get("level", "INFO"),
        description="Log level",
    )
    file: str = Field(
        default=_json_config.get("logging", {}).get(
            "file", str(RUNTIME_DIR / "logs" / "camwatch.log")
        ),
        description="Log file path",
    )


# Global configuration instances
camera_config = CameraConfig()
detection_config = DetectionConfig()
display_config = DisplayConfig()
recording_config = RecordingConfig()
audio_config = AudioConfig()
api_config = APIConfig()
logging_config = LoggingConfig()


def setup_logging() -> None:
    """Configure logging for the application with log rotation."""
    from logging.handlers import RotatingFileHandler

    log_dir = Path(logging_config.file).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(
        logging_config.file,
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, logging_config.level.upper()))
    root_logger.addHandler(file_handler)
    root_logger.addHandler(logging.StreamHandler())

    logger.info(
        f"Logging configured: level={logging_config.level}, "
        f"file={logging_config.file} (rotating, 10MB max, 5 backups)"
    )


def ensure_runtime_dirs() -> None:
    """Create runtime directories if they don't exist."""
    dirs = [
        Path(recording_config.export_dir),
        Path(logging_config.file).parent,
    ]
    for d in dirs:
        d.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Ensured directory exists: {d}")
