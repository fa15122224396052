"""Tests for remote audio playback and the speaker sink."""
from __future__ import annotations

import asyncio
from typing import Any, List

from aiortc.mediastreams import MediaStreamError

from config.settings import settings
from interview_session.realtime_adapter import RealtimeChannel
from interview_session.realtime_transport import AudioPlayback, SpeakerSink, open_speaker


class RecordingSink:
    def __init__(self) -> None:
        self.frames: List[Any] = []
        self.started = 0
        self.stopped = 0

    async def start(self) -> None:
        self.started += 1

    def write(self, frame: Any) -> None:
        self.frames.append(frame)

    async def stop(self) -> None:
        self.stopped += 1


class QueueTrack:
    kind = "audio"

    def __init__(self) -> None:
        self.frames: "asyncio.Queue[Any]" = asyncio.Queue()

    async def recv(self) -> Any:
        frame = await self.frames.get()
        if frame is None:
            raise MediaStreamError
        return frame


async def _settle() -> None:
    for _ in range(10):
        await asyncio.sleep(0)


def test_playback_writes_frames_to_sink_unless_paused():
    async def scenario():
        sink = RecordingSink()
        playback = AudioPlayback(sink)
        track = QueueTrack()
        playback.attach(track)
        track.frames.put_nowait("f1")
        await _settle()
        playback.pause()
        track.frames.put_nowait("f2")
        await _settle()
        playback.resume()
        track.frames.put_nowait("f3")
        await _settle()
        await playback.close()
        return sink, playback

    sink, playback = asyncio.run(scenario())
    assert sink.started == 1
    assert sink.frames == ["f1", "f3"]
    assert sink.stopped == 1
    assert playback.attached is False


def test_playback_survives_track_end():
    async def scenario():
        sink = RecordingSink()
        playback = AudioPlayback(sink)
        track = QueueTrack()
        playback.attach(track)
        track.frames.put_nowait("f1")
        track.frames.put_nowait(None)
        await _settle()
        return sink

    assert asyncio.run(scenario()).frames == ["f1"]


def test_speaker_is_the_default_sink_when_configured(monkeypatch):
    monkeypatch.setattr(settings, "SPEAKER_DEVICE", "default", raising=False)
    monkeypatch.setattr(settings, "SPEAKER_FORMAT", "pulse", raising=False)
    channel = RealtimeChannel()
    sink = channel.playback.sink
    assert isinstance(sink, SpeakerSink)
    assert (sink.device, sink.format) == ("default", "pulse")


def test_no_speaker_without_a_device(monkeypatch):
    monkeypatch.setattr(settings, "SPEAKER_DEVICE", None, raising=False)
    assert open_speaker() is None
    assert RealtimeChannel().playback.sink is None
