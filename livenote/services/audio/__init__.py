"""
Audio module - Capture, segmented recording, processing and playback backends.
"""

from .capture import BaseAudioSource, MicrophoneSource, PushAudioSource, create_audio_source
from .player import BaseAudioPlayer, LoadedAudio, SoundDevicePlayer
from .processor import AudioProcessor
from .recorder import SegmentedRecorder

__all__ = [
    "AudioProcessor",
    "BaseAudioPlayer",
    "BaseAudioSource",
    "LoadedAudio",
    "MicrophoneSource",
    "PushAudioSource",
    "SegmentedRecorder",
    "SoundDevicePlayer",
    "create_audio_source",
]
