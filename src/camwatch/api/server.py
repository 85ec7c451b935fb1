"""
FastAPI Server - Operator API

Provides HTTP endpoints for:
- System status and health checks
- Live preview (mirrored video + detection overlay)
- Snapshot and manual recording commands
- Operator settings (mirroring, auto-record, notification volume)
- Recent operator notices

Security: Designed for local use. Do NOT expose to the internet.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException, Response
from pydantic import BaseModel, Field

from camwatch.camera.overlay import encode_jpeg

logger = logging.getLogger(__name__)


class StatusResponse(BaseModel):
    """System status response."""

    timestamp: str
    settings: dict[str, Any] | None
    recording: dict[str, Any] | None
    sampler: dict[str, Any] | None
    camera: dict[str, Any] | None
    detector: dict[str, Any] | None
    audio: dict[str, Any] | None


class ActionResponse(BaseModel):
    """Action result response."""

    success: bool
    message: str
    timestamp: str


class VolumeRequest(BaseModel):
    """Volume change request body."""

    volume: float = Field(ge=0.0, le=1.0)


# Global component references
_settings = None
_controller = None
_still = None
_sampler = None
_camera = None
_detector = None
_audio = None
_notices = None
_preview_quality = 80


def set_components(
    settings=None,
    controller=None,
    still=None,
    sampler=None,
    camera=None,
    detector=None,
    audio=None,
    notices=None,
    preview_quality: int = 80,
) -> None:
    """Set references to system components."""
    global _settings, _controller, _still, _sampler, _camera, _detector, _audio, _notices
    global _preview_quality
    _settings = settings
    _controller = controller
    _still = still
    _sampler = sampler
    _camera = camera
    _detector = detector
    _audio = audio
    _notices = notices
    _preview_quality = preview_quality


def _action(success: bool, message: str) -> ActionResponse:
    return ActionResponse(
        success=success,
        message=message,
        timestamp=datetime.now().isoformat(),
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="CamWatch API",
        description="Operator API for detection-triggered camera recording",
        version="1.0.0",
    )

    # ==================== Status Endpoints ====================

    @app.get("/", response_model=dict)
    async def root():
        """Root endpoint - basic health check."""
        return {
            "service": "CamWatch",
            "version": "1.0.0",
            "status": "running",
            "timestamp": datetime.now().isoformat(),
        }

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "timestamp": datetime.now().isoformat()}

    @app.get("/status", response_model=StatusResponse)
    async def get_status():
        """Get full system status."""
        return StatusResponse(
            timestamp=datetime.now().isoformat(),
            settings=_settings.snapshot().model_dump() if _settings else None,
            recording=_controller.get_status() if _controller else None,
            sampler=_sampler.get_status() if _sampler else None,
            camera=_camera.get_status() if _camera else None,
            detector=_detector.get_status() if _detector else None,
            audio=_audio.get_status() if _audio else None,
        )

    @app.get("/notices")
    async def get_notices(count: int = 10):
        """Get recent operator notices."""
        if not _notices:
            raise HTTPException(status_code=503, detail="Notices not available")
        return {"notices": [n.to_dict() for n in _notices.recent(count)]}

    # ==================== Camera Endpoints ====================

    @app.get("/preview.jpg")
    async def preview():
        """Latest preview frame with the detection overlay."""
        if not _sampler:
            raise HTTPException(status_code=503, detail="Detection loop not available")

        frame = _sampler.get_preview()
        if frame is None:
            raise HTTPException(status_code=503, detail="No frame yet")

        return Response(content=encode_jpeg(frame, _preview_quality), media_type="image/jpeg")

    @app.post("/snapshot", response_model=ActionResponse)
    async def snapshot():
        """Capture a still image and export it."""
        if not _still:
            raise HTTPException(status_code=503, detail="Camera not available")

        # PNG encoding and the file write stay off the event loop
        loop = asyncio.get_running_loop()
        artifact = await loop.run_in_executor(None, _still.capture_still)
        if artifact is None:
            return _action(False, "Camera not found. Please refresh")
        return _action(True, f"Saved {artifact.filename}")

    # ==================== Recording Control ====================

    @app.post("/recording/toggle", response_model=ActionResponse)
    async def toggle_recording():
        """Record button: stop if recording, otherwise start."""
        if not _controller:
            raise HTTPException(status_code=503, detail="Recording not available")

        was_recording = _controller.is_recording
        recording, artifact = await _controller.toggle_recording()
        if recording:
            return _action(True, "Recording")
        if not was_recording:
            return _action(False, "Recording failed to start")
        if artifact is None:
            return _action(False, "Recording could not be saved")
        return _action(True, f"Recording saved as {artifact.filename}")

    @app.post("/recording/start", response_model=ActionResponse)
    async def start_recording():
        """Start a manual recording."""
        if not _controller:
            raise HTTPException(status_code=503, detail="Recording not available")

        started = await _controller.start_manual()
        if started:
            return _action(True, "Recording started")
        if _controller.is_recording:
            return _action(False, "Already recording")
        return _action(False, "Recording failed to start")

    @app.post("/recording/stop", response_model=ActionResponse)
    async def stop_recording():
        """Stop the active recording and export it."""
        if not _controller:
            raise HTTPException(status_code=503, detail="Recording not available")

        was_recording = _controller.is_recording
        artifact = await _controller.stop_manual()
        if artifact is not None:
            return _action(True, f"Recording saved as {artifact.filename}")
        if was_recording:
            return _action(False, "Recording could not be saved")
        return _action(False, "Not recording")

    # ==================== Settings ====================

    @app.post("/settings/mirrored", response_model=ActionResponse)
    async def toggle_mirrored():
        """Flip horizontal mirroring of the preview and overlay."""
        if not _settings:
            raise HTTPException(status_code=503, detail="Settings not available")

        mirrored = _settings.toggle("mirrored")
        return _action(True, f"Mirroring {'on' if mirrored else 'off'}")

    @app.post("/settings/auto-record", response_model=ActionResponse)
    async def toggle_auto_record():
        """Enable or disable automatic recording."""
        if not _settings:
            raise HTTPException(status_code=503, detail="Settings not available")

        enabled = _settings.toggle("auto_record_enabled")
        message = "AutoRecord Enabled" if enabled else "AutoRecord Disabled"
        if _notices:
            _notices.post(message)
        return _action(True, message)

    @app.put("/settings/volume", response_model=ActionResponse)
    async def set_volume(request: VolumeRequest):
        """Set the notification volume and play a preview beep."""
        if not _settings:
            raise HTTPException(status_code=503, detail="Settings not available")

        _settings.update(notification_volume=request.volume)
        if _audio:
            _audio.beep(request.volume)
        return _action(True, f"Volume set to {request.volume:.1f}")

    return app


async def start_server(host: str = "127.0.0.1", port: int = 8080, **components) -> None:
    """
    Start the API server.

    Args:
        host: Bind host
        port: Bind port
        **components: Forwarded to set_components()
    """
    set_components(**components)

    app = create_app()

    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level="info",
        access_log=False,
    )
    server = uvicorn.Server(config)

    logger.info(f"Starting API server on {host}:{port}")
    await server.serve()
