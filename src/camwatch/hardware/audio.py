"""
Audible Cue

Short notification beep played when auto-recording kicks in, and as a
preview when the operator changes the notification volume.

The tone is synthesized with numpy and played through pygame's mixer.
Playback is fire-and-forget: failures are logged, never raised.
"""

import logging
import os
import threading

import numpy as np

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")
import pygame  # noqa: E402

logger = logging.getLogger(__name__)

SAMPLE_RATE = 44_100

# Module-level lock for pygame.mixer operations (pygame is not thread-safe)
_pygame_lock = threading.Lock()
_pygame_initialized = False


def _ensure_mixer_initialized() -> bool:
    """Initialize pygame.mixer if not already done (thread-safe)."""
    global _pygame_initialized
    with _pygame_lock:
        if not _pygame_initialized:
            try:
                pygame.mixer.init(frequency=SAMPLE_RATE, size=-16, channels=1)
                _pygame_initialized = True
                logger.info("pygame mixer initialized")
            except pygame.error as e:
                logger.error(f"Failed to initialize pygame mixer: {e}")
                return False
    return True


def synthesize_tone(frequency_hz: float, duration_ms: int) -> np.ndarray:
    """
    Build a sine tone as signed 16-bit mono samples.

    A short linear fade at both ends avoids clicks.
    """
    n_samples = max(1, int(SAMPLE_RATE * duration_ms / 1000))
    t = np.arange(n_samples) / SAMPLE_RATE
    wave = np.sin(2 * np.pi * frequency_hz * t)

    fade = min(n_samples // 2, int(SAMPLE_RATE * 0.01))
    if fade > 0:
        ramp = np.linspace(0.0, 1.0, fade)
        wave[:fade] *= ramp
        wave[-fade:] *= ramp[::-1]

    return (wave * 32767 * 0.9).astype(np.int16)


class AudioCue:
    """Notification beep."""

    def __init__(
        self,
        enabled: bool = True,
        frequency_hz: float = 520.0,
        duration_ms: int = 200,
    ):
        self.enabled = enabled
        self.frequency_hz = frequency_hz
        self.duration_ms = duration_ms
        self._samples = synthesize_tone(frequency_hz, duration_ms)
        self._sound: "pygame.mixer.Sound | None" = None
        self._beep_count = 0
        self._last_volume: float | None = None

        logger.info(
            f"AudioCue initialized (enabled={enabled}, "
            f"{frequency_hz:.0f}Hz, {duration_ms}ms)"
        )

    @property
    def beep_count(self) -> int:
        return self._beep_count

    def _get_sound(self) -> "pygame.mixer.Sound | None":
        if self._sound is None and _ensure_mixer_initialized():
            with _pygame_lock:
                try:
                    self._sound = pygame.mixer.Sound(buffer=self._samples.tobytes())
                except pygame.error as e:
                    logger.error(f"Failed to create beep sound: {e}")
        return self._sound

    def beep(self, volume: float) -> None:
        """
        Play the beep once at the given volume (0.0 to 1.0).

        Returns immediately; playback continues in the mixer.
        """
        if not self.enabled:
            logger.debug("Audio disabled, skipping beep")
            return

        volume = max(0.0, min(1.0, volume))
        self._beep_count += 1
        self._last_volume = volume

        sound = self._get_sound()
        if sound is None:
            return

        with _pygame_lock:
            try:
                sound.set_volume(volume)
                sound.play()
                logger.debug(f"Beep at volume {volume:.1f}")
            except pygame.error as e:
                logger.error(f"Failed to play beep: {e}")

    def get_status(self) -> dict:
        """Get audio cue status."""
        return {
            "enabled": self.enabled,
            "frequency_hz": self.frequency_hz,
            "duration_ms": self.duration_ms,
            "beep_count": self._beep_count,
            "last_volume": self._last_volume,
            "mixer_initialized": _pygame_initialized,
        }

    def cleanup(self) -> None:
        """Clean up audio resources."""
        global _pygame_initialized
        with _pygame_lock:
            if _pygame_initialized:
                try:
                    pygame.mixer.quit()
                except pygame.error as e:
                    logger.error(f"Error cleaning up pygame mixer: {e}")
                _pygame_initialized = False
            self._sound = None
        logger.info("Audio resources cleaned up")


def create_audio_cue() -> AudioCue:
    """Create audio cue from config."""
    from camwatch.config import audio_config

    return AudioCue(
        enabled=audio_config.enabled,
        frequency_hz=audio_config.frequency_hz,
        duration_ms=audio_config.duration_ms,
    )
