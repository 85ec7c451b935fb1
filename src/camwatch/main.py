"""
CamWatch Main Controller

Wires the components together and runs them until interrupted:

    CameraSource -> FrameSampler -> Detector
                                 -> OverlayRenderer (preview)
                                 -> RecordingController -> FileExportSink

plus the operator API (FastAPI) for snapshots, manual recording and
settings.
"""

import asyncio
import logging
import signal
import sys

logger = logging.getLogger(__name__)


class CamWatchApp:
    """Orchestrates camera, detection loop, recording and API."""

    def __init__(self):
        self._running = False

        # Component instances (initialized in start())
        self._settings = None
        self._notices = None
        self._camera = None
        self._detector = None
        self._audio = None
        self._sink = None
        self._controller = None
        self._still = None
        self._renderer = None
        self._sampler = None

        self._background_tasks: list[asyncio.Task] = []

    async def start(self) -> None:
        """Start the system and block until shutdown is requested."""
        logger.info("=== Starting CamWatch ===")

        from camwatch.config import api_config, ensure_runtime_dirs, setup_logging

        setup_logging()
        ensure_runtime_dirs()

        self._init_components()
        self._setup_signal_handlers()
        self._running = True

        if self._sampler is not None:
            self._sampler.start()

        if api_config.enabled:
            self._start_api(api_config.host, api_config.port)

        logger.info("=== CamWatch running ===")
        try:
            while self._running:
                await asyncio.sleep(1.0)
        finally:
            await self._shutdown()

    def _init_components(self) -> None:
        """Create all components from config."""
        from camwatch.camera.overlay import OverlayRenderer, RenderSurface
        from camwatch.camera.video_source import SourceUnavailableError, create_camera_source
        from camwatch.config import recording_config
        from camwatch.hardware.audio import create_audio_cue
        from camwatch.inference.detector import create_detector
        from camwatch.monitor.notices import NoticeBoard, NoticeLevel
        from camwatch.monitor.sampler import FrameSampler
        from camwatch.monitor.settings import SettingsStore, create_default_settings
        from camwatch.recording.controller import RecordingController
        from camwatch.recording.export import FileExportSink
        from camwatch.recording.recorder import create_recorder_factory
        from camwatch.recording.still import CAMERA_NOT_FOUND, StillCapture

        self._settings = SettingsStore(create_default_settings())
        self._notices = NoticeBoard()

        self._camera = create_camera_source()
        try:
            self._camera.start()
        except SourceUnavailableError as e:
            # Keep running: ticks are skipped until a frame arrives
            logger.error(f"Camera failed to start: {e}")
            self._notices.post(CAMERA_NOT_FOUND, NoticeLevel.ERROR)

        self._audio = create_audio_cue()
        self._sink = FileExportSink(recording_config.export_dir)

        self._controller = RecordingController(
            recorder_factory=create_recorder_factory(self._camera),
            export_sink=self._sink,
            audio=self._audio,
            settings=self._settings,
            notices=self._notices,
        )
        self._still = StillCapture(self._camera, self._sink, self._notices)

        try:
            self._detector = create_detector()
        except Exception as e:
            logger.error(f"Detector failed to load: {e}")
            self._notices.post("Detector not available", NoticeLevel.ERROR)
            self._detector = None

        settings = self._settings.snapshot()
        self._renderer = OverlayRenderer(RenderSurface(), target_class=settings.target_class)

        if self._detector is not None:
            self._sampler = FrameSampler(
                source=self._camera,
                detector=self._detector,
                renderer=self._renderer,
                controller=self._controller,
                settings=self._settings,
            )
        else:
            logger.warning("Detection disabled: detector not available. API will still run.")

    def _start_api(self, host: str, port: int) -> None:
        from camwatch.api.server import start_server
        from camwatch.config import display_config

        task = asyncio.create_task(
            start_server(
                host=host,
                port=port,
                settings=self._settings,
                controller=self._controller,
                still=self._still,
                sampler=self._sampler,
                camera=self._camera,
                detector=self._detector,
                audio=self._audio,
                notices=self._notices,
                preview_quality=display_config.preview_quality,
            ),
            name="api-server",
        )
        self._background_tasks.append(task)

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""

        def signal_handler(signum, frame):
            logger.info(f"Signal {signum} received, initiating shutdown...")
            self._running = False

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    async def _shutdown(self) -> None:
        """Clean shutdown of all components."""
        logger.info("Initiating shutdown...")

        # No tick may fire once the sampler is stopped
        if self._sampler:
            await self._sampler.stop()

        # Finalize and export any active recording
        if self._controller:
            await self._controller.shutdown()

        if self._background_tasks:
            for task in self._background_tasks:
                if not task.done():
                    task.cancel()
            try:
                await asyncio.wait_for(
                    asyncio.gather(*self._background_tasks, return_exceptions=True),
                    timeout=5.0,
                )
            except asyncio.TimeoutError:
                logger.warning("Background tasks did not cancel within 5s")
            self._background_tasks.clear()

        if self._camera:
            self._camera.cleanup()

        if self._detector:
            self._detector.cleanup()

        if self._audio:
            self._audio.cleanup()

        logger.info("Shutdown complete")

    def get_status(self) -> dict:
        """Get full system status."""
        return {
            "running": self._running,
            "settings": self._settings.snapshot().model_dump() if self._settings else None,
            "recording": self._controller.get_status() if self._controller else None,
            "sampler": self._sampler.get_status() if self._sampler else None,
            "camera": self._camera.get_status() if self._camera else None,
            "detector": self._detector.get_status() if self._detector else None,
            "export": self._sink.get_status() if self._sink else None,
        }


# ==================== Entry Point ====================


async def app() -> None:
    """Main application entry point."""
    await CamWatchApp().start()


def main() -> None:
    """CLI entry point."""
    print("=== CamWatch ===")
    print("Detection-triggered camera recording")
    print()

    try:
        asyncio.run(app())
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
