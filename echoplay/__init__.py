"""
Echoplay - playback and library state engine for the Echo streaming service.

Echoplay keeps one listener's session against the Echo catalog: it browses and
searches tracks, manages playlist membership optimistically and drives a single
audio output through a small, well-defined playback state machine.
"""

__version__ = "0.1.0"
__author__ = "Echoplay Contributors"
__license__ = "MIT"

from echoplay.app import EchoApp

__all__ = ["EchoApp", "__version__"]
