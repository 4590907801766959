"""
Speech-to-text functionality using OpenAI Whisper.

This module validates recorded audio (raw files or base64 data URIs) and wraps
OpenAI's transcription API for converting it to a plain-text transcript.
"""

import base64
import binascii
import logging
import re
from pathlib import Path
from typing import Any, Optional, Union

from .config import config, get_client
from .errors import TranscriptionError, ValidationError
from .timing import timer
from .types import SUPPORTED_ENCODINGS, AudioPayload, Transcript

logger = logging.getLogger(__name__)

DATA_URI_PATTERN = re.compile(r"^data:audio/(webm|wav|ogg|mp3);base64,([a-zA-Z0-9+/]+=*)$")

# Whisper rejects uploads above 25MB
MAX_AUDIO_BYTES = 25 * 1024 * 1024

EXTENSION_ENCODINGS = {
    ".webm": "webm",
    ".wav": "wav",
    ".ogg": "ogg",
    ".oga": "ogg",
    ".mp3": "mp3",
    ".mpga": "mp3",
}


def parse_audio_data_uri(data_uri: str) -> AudioPayload:
    """
    Decode a ``data:audio/<type>;base64,<data>`` URI into an audio payload.

    Args:
        data_uri: The data URI produced by the recorder

    Returns:
        AudioPayload with decoded bytes and encoding tag

    Raises:
        ValidationError: If the URI does not match the supported format
    """
    if not isinstance(data_uri, str):
        raise ValidationError("Invalid audio data URI format. Must be in format: data:audio/<type>;base64,<data>")

    match = DATA_URI_PATTERN.match(data_uri)
    if not match:
        raise ValidationError("Invalid audio data URI format. Must be in format: data:audio/<type>;base64,<data>")

    encoding, encoded = match.group(1), match.group(2)
    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Invalid base64 audio data: {e}") from e

    return validate_payload(data, encoding)


def encode_audio_data_uri(payload: AudioPayload) -> str:
    """Encode an audio payload as a base64 data URI."""
    encoded = base64.b64encode(payload.data).decode("ascii")
    return f"data:{payload.mime_type};base64,{encoded}"


def validate_payload(data: bytes, encoding: str) -> AudioPayload:
    """
    Build an AudioPayload after checking size and encoding.

    Raises:
        ValidationError: If the data is empty, too large, or the encoding unsupported
    """
    if encoding not in SUPPORTED_ENCODINGS:
        raise ValidationError(f"Unsupported audio encoding: {encoding}. Supported: {', '.join(SUPPORTED_ENCODINGS)}")
    if not data:
        raise ValidationError("Audio payload is empty")
    if len(data) > MAX_AUDIO_BYTES:
        raise ValidationError(f"Audio too large: {len(data) / 1024 / 1024:.1f}MB (max: 25MB)")
    return AudioPayload(data=data, encoding=encoding)


def load_audio_file(path: Union[str, Path]) -> AudioPayload:
    """
    Read an audio file from disk into a payload.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the format is unsupported or the file is empty/too large
    """
    audio_path = Path(path)

    if not audio_path.exists():
        raise FileNotFoundError(f"Audio file not found: {path}")

    if not audio_path.is_file():
        raise ValidationError(f"Path is not a file: {path}")

    encoding = EXTENSION_ENCODINGS.get(audio_path.suffix.lower())
    if encoding is None:
        raise ValidationError(f"Unsupported audio format: {audio_path.suffix}. Supported formats: {', '.join(sorted(EXTENSION_ENCODINGS))}")

    file_size = audio_path.stat().st_size
    if file_size > MAX_AUDIO_BYTES:
        raise ValidationError(f"Audio file too large: {file_size / 1024 / 1024:.1f}MB (max: 25MB)")

    return validate_payload(audio_path.read_bytes(), encoding)


def coerce_audio(audio: Union[AudioPayload, str]) -> AudioPayload:
    """Accept either a payload or a data URI; anything else is a validation failure."""
    if isinstance(audio, AudioPayload):
        return audio
    if isinstance(audio, str):
        return parse_audio_data_uri(audio)
    raise ValidationError(f"Unsupported audio input type: {type(audio).__name__}")


class SpeechProcessor:
    """
    Handles speech-to-text conversion using OpenAI Whisper.

    Uses automatic language detection and transcription only (no translation).
    """

    def __init__(self, client: Optional[Any] = None, model: Optional[str] = None):
        self.client = client if client is not None else get_client()
        self.model = model or config.asr_model

    @timer
    async def transcribe(self, audio: Union[AudioPayload, str]) -> Transcript:
        """
        Transcribe a recording to text.

        Args:
            audio: An AudioPayload or a base64 audio data URI

        Returns:
            Transcript with non-empty text and detected language

        Raises:
            ValidationError: If the audio input is malformed (raised before any network call)
            TranscriptionError: If the service call fails or returns empty text
        """
        payload = coerce_audio(audio)
        logger.info("Transcribing %d bytes of %s audio", len(payload.data), payload.encoding)

        try:
            response = await self.client.audio.transcriptions.create(
                model=self.model,
                file=(payload.filename, payload.data, payload.mime_type),
                response_format="verbose_json",
            )
        except Exception as e:
            raise TranscriptionError(f"Failed to transcribe audio: {e}") from e

        if hasattr(response, "text"):
            text = (response.text or "").strip()
            lang_detected = getattr(response, "language", None) or "auto"
        else:
            text = str(response or "").strip()
            lang_detected = "auto"

        if not text:
            raise TranscriptionError("Transcription failed or returned empty.")

        logger.debug("Transcription returned %d characters (language: %s)", len(text), lang_detected)
        return Transcript(text=text, lang_hint=lang_detected)


async def transcribe_audio(audio: Union[AudioPayload, str], client: Optional[Any] = None) -> Transcript:
    """
    Convenience function to transcribe a recording.

    Args:
        audio: An AudioPayload or a base64 audio data URI
        client: Optional pre-built async OpenAI client

    Returns:
        Transcript object

    Raises:
        ValidationError: If the audio input is malformed
        TranscriptionError: If transcription fails
    """
    payload = coerce_audio(audio)
    processor = SpeechProcessor(client=client)
    return await processor.transcribe(payload)
