from __future__ import annotations  # Re-export stt public API

from .deepgram import AudioTooLargeError, SpeechToTextError, Transcript, transcribe

__all__ = ["AudioTooLargeError", "SpeechToTextError", "Transcript", "transcribe"]
