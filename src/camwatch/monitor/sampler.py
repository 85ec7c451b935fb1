"""
Frame Sampler

Fixed-cadence detection loop. Each tick pulls the current frame, awaits
the detector, repaints the overlay and hands the detections to the
recording controller before the next tick may start, so detector calls
never overlap and ticks are applied in order.

    tick -> VideoSource.get_frame -> Detector.detect -> OverlayRenderer.render
                                                     -> RecordingController.handle_detections
"""

import asyncio
import logging
import threading
import time
from datetime import datetime
from typing import TYPE_CHECKING, Callable

import numpy as np

from camwatch.camera.overlay import OverlayRenderer, compose_preview
from camwatch.camera.video_source import SourceUnavailableError, VideoSource
from camwatch.inference.detection import DetectionFrame, FrameTick
from camwatch.inference.detector import Detector

from .settings import MonitorSettings, SettingsStore

if TYPE_CHECKING:
    from camwatch.recording.controller import RecordingController

logger = logging.getLogger(__name__)


class FrameSampler:
    """Drives detection at a fixed interval while started."""

    def __init__(
        self,
        source: VideoSource,
        detector: Detector,
        renderer: OverlayRenderer,
        controller: "RecordingController",
        settings: SettingsStore,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._source = source
        self._detector = detector
        self._renderer = renderer
        self._controller = controller
        self._settings = settings
        self._clock = clock

        self._task: asyncio.Task | None = None
        self._sequence = 0

        # Counters
        self._ticks_processed = 0
        self._ticks_skipped = 0
        self._failed_ticks = 0
        self._last_inference_ms = 0.0

        self._preview_lock = threading.Lock()
        self._latest_preview: np.ndarray | None = None
        self._last_result: DetectionFrame | None = None

        self._on_tick_callbacks: list[Callable[[DetectionFrame], None]] = []

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def sequence(self) -> int:
        """Sequence number of the last tick."""
        return self._sequence

    @property
    def failed_ticks(self) -> int:
        return self._failed_ticks

    @property
    def skipped_ticks(self) -> int:
        return self._ticks_skipped

    @property
    def processed_ticks(self) -> int:
        return self._ticks_processed

    @property
    def last_result(self) -> DetectionFrame | None:
        return self._last_result

    def get_preview(self) -> np.ndarray | None:
        """Latest composited preview (mirrored video + overlay)."""
        with self._preview_lock:
            return self._latest_preview

    def start(self) -> None:
        """Start the polling loop on the running event loop."""
        if self.running:
            logger.warning("Frame sampler already running")
            return
        self._task = asyncio.create_task(self._run(), name="frame-sampler")
        logger.info("Frame sampler started")

    async def stop(self) -> None:
        """Cancel the polling loop. No tick runs after this returns."""
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info(
            f"Frame sampler stopped after {self._sequence} ticks "
            f"({self._ticks_processed} processed, {self._ticks_skipped} skipped, "
            f"{self._failed_ticks} failed)"
        )

    async def _run(self) -> None:
        """Polling loop: one tick, then sleep for the rest of the interval."""
        while True:
            loop_start = time.perf_counter()
            settings = self._settings.snapshot()

            try:
                await self.tick(settings)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Tick {self._sequence} error: {e}", exc_info=True)

            elapsed = time.perf_counter() - loop_start
            await asyncio.sleep(max(0.0, settings.detection_interval - elapsed))

    async def tick(self, settings: MonitorSettings | None = None) -> DetectionFrame | None:
        """
        Run one polling cycle.

        Args:
            settings: Snapshot to use for the whole tick (taken now if omitted)

        Returns:
            The tick's detections, or None if the tick was skipped or dropped
        """
        settings = settings or self._settings.snapshot()
        self._sequence += 1
        tick = FrameTick(sequence=self._sequence, timestamp=self._clock())

        if not self._source.is_ready():
            self._ticks_skipped += 1
            logger.debug(f"Tick {tick.sequence}: source not ready, skipping")
            return None
        try:
            frame = self._source.get_frame()
        except SourceUnavailableError:
            self._ticks_skipped += 1
            logger.debug(f"Tick {tick.sequence}: no frame, skipping")
            return None

        start = time.perf_counter()
        try:
            detections = await self._detector.detect(frame)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Dropped; the next tick proceeds as scheduled
            self._failed_ticks += 1
            logger.warning(f"Tick {tick.sequence}: detection failed, dropping tick: {e}")
            return None
        self._last_inference_ms = (time.perf_counter() - start) * 1000

        height, width = frame.shape[:2]
        surface = self._renderer.surface
        surface.resize(width, height)
        self._renderer.target_class = settings.target_class
        self._renderer.render(detections, settings.mirrored)

        preview = compose_preview(frame, surface, settings.mirrored)
        with self._preview_lock:
            self._latest_preview = preview

        result = DetectionFrame(
            tick=tick,
            detections=list(detections),
            frame_size=(width, height),
            inference_time_ms=self._last_inference_ms,
        )
        self._last_result = result
        self._ticks_processed += 1

        await self._controller.handle_detections(result, settings)

        for callback in self._on_tick_callbacks:
            try:
                callback(result)
            except Exception as e:
                logger.error(f"Tick callback error: {e}")

        if self._ticks_processed % 600 == 0:
            logger.debug(
                f"Sampler: {self._ticks_processed} ticks processed, "
                f"last inference {self._last_inference_ms:.1f}ms"
            )
        return result

    def on_tick(self, callback: Callable[[DetectionFrame], None]) -> None:
        """Register callback for processed ticks."""
        self._on_tick_callbacks.append(callback)

    def get_status(self) -> dict:
        """Get sampler status."""
        last = self._last_result
        return {
            "running": self.running,
            "sequence": self._sequence,
            "processed_ticks": self._ticks_processed,
            "skipped_ticks": self._ticks_skipped,
            "failed_ticks": self._failed_ticks,
            "last_inference_ms": self._last_inference_ms,
            "last_result": last.to_dict() if last else None,
        }
