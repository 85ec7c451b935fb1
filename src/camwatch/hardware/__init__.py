"""
Hardware Abstraction Layer for CamWatch.

Provides:
- AudioCue: notification beep through the local speaker
"""

from .audio import AudioCue, create_audio_cue

__all__ = ["AudioCue", "create_audio_cue"]
