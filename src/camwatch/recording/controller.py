"""
Recording Controller

State machine deciding when the camera is recorded:

    IDLE --manual start / target detected (auto-record on)--> RECORDING
    RECORDING --manual stop / auto-stop timer--> IDLE

Every session gets an auto-stop timer when it starts. A target detection
while already recording is a no-op and leaves the deadline unchanged.
Each finalized session produces exactly one artifact for the ExportSink.

All transitions run on the asyncio event loop and are serialized by a
lock. Encoding work (starting and finalizing ffmpeg) runs in the default
executor. Finalizing runs in its own task so a cancelled caller never
loses a session; shutdown() waits for every finalize still in flight.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable

from camwatch.hardware.audio import AudioCue
from camwatch.inference.detection import DetectionFrame
from camwatch.monitor.notices import NoticeBoard, NoticeLevel
from camwatch.monitor.settings import MonitorSettings, SettingsStore

from .export import Artifact, ExportSink, format_export_stem
from .recorder import MediaRecorder
from .session import IDLE_SESSION, RecordingSession, RecordingState, TriggerReason

logger = logging.getLogger(__name__)


class RecordingController:
    """Owns the recording session and its auto-stop timer."""

    def __init__(
        self,
        recorder_factory: Callable[[], MediaRecorder],
        export_sink: ExportSink,
        audio: AudioCue,
        settings: SettingsStore,
        notices: NoticeBoard | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the controller.

        Args:
            recorder_factory: Builds a fresh MediaRecorder for each session
            export_sink: Receives the finalized artifact of each session
            audio: Audible cue played when auto-recording starts
            settings: Operator settings (auto-stop duration, volume, ...)
            notices: Operator notice board
            clock: Time source for session timestamps and export filenames
        """
        self._recorder_factory = recorder_factory
        self._sink = export_sink
        self._audio = audio
        self._settings = settings
        self._notices = notices or NoticeBoard()
        self._clock = clock

        self._session: RecordingSession = IDLE_SESSION
        self._recorder: MediaRecorder | None = None
        self._session_id = 0
        self._auto_stop_task: asyncio.Task | None = None
        self._finalizing: set[asyncio.Task] = set()
        self._lock = asyncio.Lock()

        self._finalized_count = 0
        self._failed_count = 0
        self._last_artifact: Artifact | None = None

        self._on_state_change_callbacks: list[Callable[[RecordingSession], None]] = []

        logger.info("RecordingController initialized")

    @property
    def session(self) -> RecordingSession:
        """Current session value (read-only snapshot)."""
        return self._session

    @property
    def state(self) -> RecordingState:
        return self._session.state

    @property
    def is_recording(self) -> bool:
        return self._session.is_recording

    @property
    def auto_stop_pending(self) -> bool:
        """True while an auto-stop timer is armed."""
        return self._auto_stop_task is not None and not self._auto_stop_task.done()

    @property
    def finalized_count(self) -> int:
        return self._finalized_count

    @property
    def last_artifact(self) -> Artifact | None:
        return self._last_artifact

    # ==================== Events ====================

    async def handle_detections(
        self, frame: DetectionFrame, settings: MonitorSettings | None = None
    ) -> bool:
        """
        Evaluate one tick's detections.

        Args:
            frame: Detections of the tick
            settings: Settings snapshot taken by the sampler for this tick

        Returns:
            True if the batch started an automatic recording
        """
        settings = settings or self._settings.snapshot()
        if not settings.auto_record_enabled:
            return False
        if not frame.contains_class(settings.target_class):
            return False

        if self._session.is_recording:
            logger.debug(
                f"'{settings.target_class}' seen on tick {frame.tick.sequence}, "
                "already recording (deadline unchanged)"
            )
            return False

        logger.info(
            f"'{settings.target_class}' detected on tick {frame.tick.sequence}, "
            "starting auto-record"
        )
        return await self._start(TriggerReason.AUTO, settings, frame)

    async def start_manual(self) -> bool:
        """Operator start. No-op if a session is already active."""
        return await self._start(TriggerReason.MANUAL, self._settings.snapshot())

    async def stop_manual(self) -> Artifact | None:
        """
        Operator stop: finalize the active session now.

        Returns:
            The exported artifact, or None if idle or finalizing failed
        """
        async with self._lock:
            ended = self._end_session_locked()
        if ended is None:
            logger.debug("Stop requested while idle, ignoring")
            return None

        artifact = await asyncio.shield(self._spawn_finalize(*ended))
        if artifact is not None:
            self._notices.post("Recording saved")
        return artifact

    async def toggle_recording(self) -> tuple[bool, Artifact | None]:
        """
        Record button: stop if recording, otherwise start manually.

        Returns:
            (recording after the call, artifact exported by a stop or None)
        """
        if self._session.is_recording:
            artifact = await self.stop_manual()
            return self._session.is_recording, artifact
        await self.start_manual()
        return self._session.is_recording, None

    # ==================== Transitions ====================

    async def _start(
        self,
        reason: TriggerReason,
        settings: MonitorSettings,
        frame: DetectionFrame | None = None,
    ) -> bool:
        async with self._lock:
            if self._session.is_recording:
                logger.debug(f"Start ({reason.value}) ignored, session already active")
                return False

            recorder = self._recorder_factory()
            loop = asyncio.get_running_loop()
            start_future = loop.run_in_executor(None, recorder.start)
            try:
                await asyncio.shield(start_future)
            except asyncio.CancelledError:
                await self._release_unstarted(recorder, start_future)
                raise
            except Exception as e:
                self._failed_count += 1
                logger.error(f"Failed to start recording: {e}")
                self._notices.post(f"Recording failed to start: {e}", NoticeLevel.ERROR)
                return False

            now = self._clock()
            duration = settings.auto_stop_duration
            self._session_id += 1
            self._recorder = recorder
            self._session = RecordingSession(
                state=RecordingState.RECORDING,
                started_at=now,
                auto_stop_deadline=now + timedelta(seconds=duration),
                trigger_reason=reason,
            )
            self._auto_stop_task = asyncio.create_task(
                self._auto_stop_after(self._session_id, duration),
                name=f"auto-stop-{self._session_id}",
            )

        logger.info(
            f"Recording started ({reason.value}), auto-stop in {duration:.1f}s"
        )
        if reason is TriggerReason.AUTO and frame is not None:
            best = max(d.score for d in frame.get_by_class(settings.target_class))
            logger.info(f"Triggered by '{settings.target_class}' at {best:.0%}")
        if reason is TriggerReason.AUTO:
            self._audio.beep(settings.notification_volume)
        self._notify_state_change()
        return True

    def _end_session_locked(self) -> tuple[RecordingSession, MediaRecorder] | None:
        """
        Move to IDLE and hand back what needs finalizing.

        Must be called with the lock held. Cancels the auto-stop timer unless
        the caller is that timer.
        """
        if not self._session.is_recording:
            return None

        task = self._auto_stop_task
        self._auto_stop_task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

        ended = (self._session, self._recorder)
        self._session = IDLE_SESSION
        self._recorder = None
        self._notify_state_change()
        return ended

    async def _auto_stop_after(self, session_id: int, delay: float) -> None:
        """Timer task: finalize the session it was armed for."""
        try:
            await asyncio.sleep(delay)
            async with self._lock:
                if session_id != self._session_id or not self._session.is_recording:
                    return
                ended = self._end_session_locked()
        except asyncio.CancelledError:
            logger.debug(f"Auto-stop timer for session {session_id} cancelled")
            raise

        logger.info(f"Auto-stop timer fired after {delay:.1f}s")
        await asyncio.shield(self._spawn_finalize(*ended))

    def _spawn_finalize(
        self, session: RecordingSession, recorder: MediaRecorder
    ) -> asyncio.Task:
        """Run _finalize as a tracked task so shutdown can wait for it."""
        task = asyncio.create_task(self._finalize(session, recorder), name="finalize")
        self._finalizing.add(task)
        task.add_done_callback(self._finalizing.discard)
        return task

    async def _release_unstarted(
        self, recorder: MediaRecorder, start_future: asyncio.Future
    ) -> None:
        """Stop a recorder whose start was interrupted. Its data is discarded."""
        try:
            await start_future
        except Exception:
            return
        logger.warning("Recording start cancelled, releasing recorder")
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, recorder.stop)
        except Exception as e:
            logger.debug(f"Discarding interrupted recording: {e}")

    async def _finalize(
        self, session: RecordingSession, recorder: MediaRecorder
    ) -> Artifact | None:
        """Flush the recorder and export the artifact."""
        finalized_at = self._clock()
        loop = asyncio.get_running_loop()
        try:
            data = await loop.run_in_executor(None, recorder.stop)
        except Exception as e:
            self._failed_count += 1
            logger.error(f"Failed to finalize recording: {e}")
            self._notices.post(f"Recording could not be saved: {e}", NoticeLevel.ERROR)
            return None

        artifact = Artifact(
            data=data,
            suggested_filename=format_export_stem(finalized_at),
            mime_type=recorder.mime_type,
        )
        self._sink.export(artifact.data, artifact.suggested_filename, artifact.mime_type)
        self._finalized_count += 1
        self._last_artifact = artifact

        duration = (finalized_at - session.started_at).total_seconds()
        logger.info(
            f"Recording finalized ({session.trigger_reason.value}, {duration:.1f}s): "
            f"{artifact.filename}"
        )
        return artifact

    # ==================== Lifecycle ====================

    async def shutdown(self) -> None:
        """Finalize any active session and wait for in-flight finalizations."""
        async with self._lock:
            ended = self._end_session_locked()
        if ended is not None:
            logger.info("Finalizing active recording on shutdown")
            self._spawn_finalize(*ended)
        if self._finalizing:
            logger.info(f"Waiting for {len(self._finalizing)} recording(s) to finalize")
            await asyncio.gather(*self._finalizing, return_exceptions=True)

    def on_state_change(self, callback: Callable[[RecordingSession], None]) -> None:
        """Register callback for session transitions."""
        self._on_state_change_callbacks.append(callback)

    def _notify_state_change(self) -> None:
        session = self._session
        logger.debug(f"Recording state: {session.state.name}")
        for callback in self._on_state_change_callbacks:
            try:
                callback(session)
            except Exception as e:
                logger.error(f"State change callback error: {e}")

    def get_status(self) -> dict:
        """Get recording status."""
        return {
            **self._session.to_dict(),
            "time_remaining_seconds": self._session.time_remaining(self._clock()),
            "auto_stop_pending": self.auto_stop_pending,
            "finalized_count": self._finalized_count,
            "failed_count": self._failed_count,
            "last_artifact": self._last_artifact.filename if self._last_artifact else None,
        }
