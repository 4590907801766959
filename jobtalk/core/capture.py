"""
Microphone capture and live word feedback.

``MicrophoneRecorder`` turns one recording session into a single WAV payload
and always releases the input stream, whichever way the session ends.
``FeedbackStream`` follows a best-effort interim recognizer and reports the
last word heard; it is purely cosmetic and never feeds the transcript.
"""

import asyncio
import io
import logging
import wave
from enum import Enum
from typing import Any, AsyncIterable, Callable, Dict, List, Optional

import numpy as np

from .errors import ValidationError
from .speech import validate_payload
from .types import AudioPayload

logger = logging.getLogger(__name__)


class CaptureError(Exception):
    """Raised when the microphone cannot be opened."""

    pass


def _sounddevice():
    try:
        import sounddevice as sd
    except Exception as exc:  # pragma: no cover - environment-dependent
        raise CaptureError("sounddevice (and the PortAudio library) is required for recording.") from exc
    return sd


def list_input_devices() -> List[Dict[str, Any]]:
    devices = _sounddevice().query_devices()
    return [dict(d, index=i) for i, d in enumerate(devices) if d.get("max_input_channels", 0) > 0]


def select_input_device(candidates: List[Dict[str, Any]], prefer_name: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Pick the first device whose name contains prefer_name; None means the system default."""
    if not prefer_name:
        return None
    for device in candidates:
        if prefer_name.lower() in device.get("name", "").lower():
            return device
    raise CaptureError(f"No input device matching '{prefer_name}'")


def encode_wav(frames: List[np.ndarray], sample_rate_hz: int, channels: int) -> bytes:
    """Pack int16 frames into an in-memory WAV file."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as handle:
        handle.setnchannels(channels)
        handle.setsampwidth(2)
        handle.setframerate(sample_rate_hz)
        for chunk in frames:
            if chunk.dtype != np.int16:
                chunk = chunk.astype(np.int16)
            handle.writeframes(chunk.tobytes())
    return buffer.getvalue()


class MicrophoneRecorder:
    """
    Records one session from the microphone.

    Use as an async context manager; the stream is opened on entry and closed
    on exit, including on errors and task cancellation::

        async with MicrophoneRecorder() as recorder:
            await wait_for_enter()
        payload = recorder.payload
    """

    def __init__(
        self,
        device_name: Optional[str] = None,
        sample_rate_hz: int = 16000,
        channels: int = 1,
        stream_factory: Optional[Callable[..., Any]] = None,
    ):
        self.device_name = device_name
        self.sample_rate_hz = sample_rate_hz
        self.channels = channels
        self._stream_factory = stream_factory
        self._stream: Optional[Any] = None
        self._frames: List[np.ndarray] = []
        self.payload: Optional[AudioPayload] = None

    @property
    def is_recording(self) -> bool:
        return self._stream is not None

    def _callback(self, indata, _frames, _time, status) -> None:
        if status:
            logger.debug("Input stream status: %s", status)
        self._frames.append(indata.copy())

    def start(self) -> None:
        if self._stream is not None:
            return
        self._frames = []
        self.payload = None
        device = select_input_device(list_input_devices(), self.device_name) if self.device_name else None
        factory = self._stream_factory or _sounddevice().InputStream
        try:
            stream = factory(
                samplerate=self.sample_rate_hz,
                channels=self.channels,
                dtype="int16",
                device=device.get("index") if device else None,
                callback=self._callback,
            )
            stream.start()
        except Exception as e:
            raise CaptureError(f"Could not access the microphone: {e}") from e
        self._stream = stream
        logger.info("Recording started")

    def release(self) -> None:
        """Stop and close the input stream; safe to call more than once."""
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()
            logger.info("Microphone released")

    def stop(self) -> AudioPayload:
        """
        End the session and encode everything captured so far.

        Raises:
            ValidationError: If nothing was captured
        """
        self.release()
        if not self._frames:
            raise ValidationError("No audio data received.")
        data = encode_wav(self._frames, self.sample_rate_hz, self.channels)
        self._frames = []
        self.payload = validate_payload(data, "wav")
        return self.payload

    async def __aenter__(self) -> "MicrophoneRecorder":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.stop()
        else:
            self.release()


class FeedbackState(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    ERRORED = "errored"
    CANCELLED = "cancelled"


def last_word(text: Optional[str]) -> Optional[str]:
    """Return the last whitespace-separated word of text, if any."""
    words = (text or "").split()
    return words[-1] if words else None


class FeedbackStream:
    """
    Follows an async iterable of interim recognition results.

    Every change of the last heard word is passed to on_word. The stream ends
    in exactly one terminal state; errors from the recognizer are logged and
    recorded, never raised to the recording session.
    """

    def __init__(self, source: AsyncIterable[str], on_word: Optional[Callable[[str], None]] = None):
        self.source = source
        self.on_word = on_word
        self.state = FeedbackState.RUNNING
        self.last_word: Optional[str] = None
        self.error: Optional[BaseException] = None
        self._task: Optional[asyncio.Task] = None

    def start(self) -> asyncio.Task:
        if self._task is None:
            self._task = asyncio.ensure_future(self._run())
        return self._task

    async def _run(self) -> FeedbackState:
        try:
            async for interim in self.source:
                word = last_word(interim)
                if word and word != self.last_word:
                    self.last_word = word
                    if self.on_word is not None:
                        self.on_word(word)
        except asyncio.CancelledError:
            self._finish(FeedbackState.CANCELLED)
            raise
        except Exception as e:
            logger.warning("Live speech feedback stopped: %s", e)
            self.error = e
            self._finish(FeedbackState.ERRORED)
            return self.state
        self._finish(FeedbackState.COMPLETED)
        return self.state

    def _finish(self, state: FeedbackState) -> None:
        if self.state is FeedbackState.RUNNING:
            self.state = state
        self.last_word = None

    async def cancel(self) -> FeedbackState:
        """Cancel the stream and wait until it has settled."""
        if self._task is None:
            self._finish(FeedbackState.CANCELLED)
            return self.state
        if not self._task.done():
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        if self.state is FeedbackState.RUNNING:
            self._finish(FeedbackState.CANCELLED)
        return self.state


class RecordingSession:
    """
    One recording attempt: microphone capture plus optional live feedback.

    Starting a new session cancels the feedback stream of the previous one and
    releases its microphone before opening a new one.
    """

    def __init__(self, recorder: MicrophoneRecorder, feedback: Optional[FeedbackStream] = None):
        self.recorder = recorder
        self.feedback = feedback

    async def start(self) -> None:
        self.recorder.start()
        if self.feedback is not None:
            self.feedback.start()

    async def stop(self) -> AudioPayload:
        try:
            if self.feedback is not None:
                await self.feedback.cancel()
        finally:
            payload = self.recorder.stop()
        return payload

    async def abort(self) -> None:
        try:
            if self.feedback is not None:
                await self.feedback.cancel()
        finally:
            self.recorder.release()

    async def replace(self, recorder: MicrophoneRecorder, feedback: Optional[FeedbackStream] = None) -> "RecordingSession":
        """Tear this session down and start a new one."""
        await self.abort()
        session = RecordingSession(recorder, feedback)
        await session.start()
        return session
