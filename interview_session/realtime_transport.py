"""WebRTC transport for the realtime audio channel (aiortc)."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

from aiortc import MediaStreamTrack, RTCPeerConnection, RTCSessionDescription
from aiortc.contrib.media import MediaPlayer, MediaRecorder
from aiortc.mediastreams import MediaStreamError
from av import AudioFrame

from config.settings import settings

logger = logging.getLogger(__name__)

EVENTS_CHANNEL = "oai-events"

ExchangeFn = Callable[[str], Awaitable[str]]
MessageFn = Callable[[str], None]
StateFn = Callable[[str], None]
OpenFn = Callable[[], None]
TrackFn = Callable[[MediaStreamTrack], None]


class RealtimeTransport(Protocol):  # Bidirectional audio plus JSON control channel
    async def connect(
        self,
        exchange: ExchangeFn,
        *,
        on_open: OpenFn,
        on_message: MessageFn,
        on_state: StateFn,
        on_track: TrackFn,
    ) -> None: ...

    def send(self, payload: Dict[str, Any]) -> bool: ...

    def set_microphone_enabled(self, enabled: bool) -> None: ...

    async def close(self) -> None: ...


class MutableAudioTrack(MediaStreamTrack):  # Forwards mic frames, silenced while disabled
    kind = "audio"

    def __init__(self, source: MediaStreamTrack) -> None:
        super().__init__()
        self._source = source
        self.enabled = True

    async def recv(self) -> AudioFrame:
        frame = await self._source.recv()
        if self.enabled:
            return frame
        silent = AudioFrame(format=frame.format.name, layout=frame.layout.name, samples=frame.samples)
        for plane in silent.planes:
            plane.update(bytes(plane.buffer_size))
        silent.pts = frame.pts
        silent.sample_rate = frame.sample_rate
        silent.time_base = frame.time_base
        return silent

    def stop(self) -> None:
        super().stop()
        self._source.stop()


class FrameSink(Protocol):  # Output for remote assistant audio
    async def start(self) -> None: ...

    def write(self, frame: AudioFrame) -> None: ...

    async def stop(self) -> None: ...


class QueuedAudioTrack(MediaStreamTrack):  # Track fed frame by frame from Python code
    kind = "audio"

    def __init__(self) -> None:
        super().__init__()
        self._frames: "asyncio.Queue[AudioFrame]" = asyncio.Queue()

    def push(self, frame: AudioFrame) -> None:
        self._frames.put_nowait(frame)

    async def recv(self) -> AudioFrame:
        return await self._frames.get()


class SpeakerSink:
    """Plays frames on an output device through aiortc's ``MediaRecorder``.

    The device is opened on :meth:`start`, so a sink can be built up front and
    restarted after :meth:`stop`.
    """

    def __init__(self, device: str, format: Optional[str] = None) -> None:
        self.device = device
        self.format = format
        self._track: Optional[QueuedAudioTrack] = None
        self._recorder: Optional[MediaRecorder] = None

    async def start(self) -> None:
        if self._recorder is not None:
            return
        self._track = QueuedAudioTrack()
        self._recorder = MediaRecorder(self.device, format=self.format)
        self._recorder.addTrack(self._track)
        await self._recorder.start()
        logger.info("Speaker output opened on %s", self.device)

    def write(self, frame: AudioFrame) -> None:
        if self._track is not None:
            self._track.push(frame)

    async def stop(self) -> None:
        recorder, self._recorder = self._recorder, None
        track, self._track = self._track, None
        if track is not None:
            track.stop()
        if recorder is not None:
            await recorder.stop()


def open_speaker() -> Optional[SpeakerSink]:
    """Sink for the configured output device, or ``None`` when none is configured."""

    if not settings.SPEAKER_DEVICE:
        return None
    return SpeakerSink(settings.SPEAKER_DEVICE, format=settings.SPEAKER_FORMAT or None)


class AudioPlayback:
    """Consumes the remote assistant track; frames are dropped while paused."""

    def __init__(self, sink: Optional[FrameSink] = None) -> None:
        self.sink = sink
        self._task: Optional["asyncio.Task[None]"] = None
        self.paused = False
        self.attached = False

    def attach(self, track: MediaStreamTrack) -> None:
        self.stop()
        self.attached = True
        self.paused = False
        self._task = asyncio.get_running_loop().create_task(self._consume(track))

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        if self.paused:
            self.paused = False

    def stop(self) -> None:
        self.paused = True
        self.attached = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def close(self) -> None:
        self.stop()
        if self.sink is not None:
            await self.sink.stop()

    async def _consume(self, track: MediaStreamTrack) -> None:
        sink = self.sink
        if sink is not None:
            await sink.start()
        try:
            while True:
                frame = await track.recv()
                if not self.paused and sink is not None:
                    sink.write(frame)
        except MediaStreamError:
            logger.info("Remote audio track ended")


def open_microphone() -> Optional[MediaStreamTrack]:
    """Open the configured capture device, or ``None`` when none is configured."""

    if not settings.MIC_DEVICE:
        return None
    player = MediaPlayer(settings.MIC_DEVICE, format=settings.MIC_FORMAT or None)
    if player.audio is None:
        raise RuntimeError(f"No audio track on capture device {settings.MIC_DEVICE!r}")
    return player.audio


class AiortcTransport:
    def __init__(self, microphone: Optional[Callable[[], Optional[MediaStreamTrack]]] = None) -> None:
        self._open_microphone = microphone or open_microphone
        self._pc: Optional[RTCPeerConnection] = None
        self._channel: Any = None
        self._mic: Optional[MutableAudioTrack] = None

    async def connect(
        self,
        exchange: ExchangeFn,
        *,
        on_open: OpenFn,
        on_message: MessageFn,
        on_state: StateFn,
        on_track: TrackFn,
    ) -> None:
        pc = RTCPeerConnection()
        self._pc = pc
        channel = pc.createDataChannel(EVENTS_CHANNEL)
        self._channel = channel

        @channel.on("open")
        def _on_open() -> None:
            on_open()

        @channel.on("message")
        def _on_message(message: Any) -> None:
            if isinstance(message, bytes):
                message = message.decode("utf-8", errors="replace")
            on_message(message)

        @pc.on("track")
        def _on_track(track: MediaStreamTrack) -> None:
            if track.kind == "audio":
                on_track(track)

        @pc.on("connectionstatechange")
        def _on_state() -> None:
            on_state(pc.connectionState)

        source = self._open_microphone()
        if source is not None:
            self._mic = MutableAudioTrack(source)
            pc.addTrack(self._mic)
        else:
            pc.addTransceiver("audio", direction="recvonly")

        offer = await pc.createOffer()
        await pc.setLocalDescription(offer)
        answer_sdp = await exchange(pc.localDescription.sdp)
        await pc.setRemoteDescription(RTCSessionDescription(sdp=answer_sdp, type="answer"))
        logger.info("Realtime peer connection negotiated")

    def send(self, payload: Dict[str, Any]) -> bool:
        channel = self._channel
        if channel is None or channel.readyState != "open":
            return False
        channel.send(json.dumps(payload))
        return True

    def set_microphone_enabled(self, enabled: bool) -> None:
        if self._mic is not None:
            self._mic.enabled = enabled

    async def close(self) -> None:
        if self._channel is not None:
            self._channel.close()
        if self._mic is not None:
            self._mic.stop()
        if self._pc is not None:
            await self._pc.close()
        self._channel = None
        self._mic = None
        self._pc = None


__all__ = [
    "AiortcTransport",
    "AudioPlayback",
    "EVENTS_CHANNEL",
    "FrameSink",
    "MutableAudioTrack",
    "QueuedAudioTrack",
    "RealtimeTransport",
    "SpeakerSink",
    "open_microphone",
    "open_speaker",
]
