"""
Playback for Echoplay.

This package holds the playback state machine and the audio devices it
drives.
"""

from echoplay.player.controller import PlaybackController, PlaybackState, PlaybackStatus
from echoplay.player.device import AudioDevice, RemoteAudioDevice

__all__ = [
    "AudioDevice",
    "PlaybackController",
    "PlaybackState",
    "PlaybackStatus",
    "RemoteAudioDevice",
]
