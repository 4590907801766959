"""
Intake pipeline: audio → transcript → categorized fields.

The two stages run strictly in sequence on the event loop. Status changes are
pushed to subscribed listeners so a front end can show what is happening.
"""

import logging
from typing import Callable, List, Optional, Union

from .categorize import Categorizer
from .errors import CategorizationError, IntakeError, TranscriptionError
from .speech import SpeechProcessor, coerce_audio
from .types import AudioPayload, CategorizedFields, PipelineStatus, Transcript

logger = logging.getLogger(__name__)

StatusListener = Callable[[PipelineStatus, Optional[str]], None]


class IntakePipeline:
    """
    Orchestrates transcription followed by categorization.

    Holds the transcript and fields of the most recent successful run; both are
    cleared when a new run starts, so a failed run never leaves stale results.
    """

    def __init__(
        self,
        speech: Optional[SpeechProcessor] = None,
        categorizer: Optional[Categorizer] = None,
    ):
        self._speech = speech
        self.categorizer = categorizer or Categorizer()
        self.status = PipelineStatus.IDLE
        self.transcript: Optional[Transcript] = None
        self.fields: Optional[CategorizedFields] = None
        self._listeners: List[StatusListener] = []

    @property
    def speech(self) -> SpeechProcessor:
        if self._speech is None:
            self._speech = SpeechProcessor()
        return self._speech

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register a status listener and return a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, status: PipelineStatus, detail: Optional[str] = None) -> None:
        self.status = status
        logger.debug("Pipeline status: %s%s", status.value, f" ({detail})" if detail else "")
        for listener in list(self._listeners):
            listener(status, detail)

    def reset(self) -> None:
        self.transcript = None
        self.fields = None
        self.status = PipelineStatus.IDLE

    async def transcribe(self, audio: Union[AudioPayload, str]) -> Transcript:
        """Stage 1. Raises ValidationError or TranscriptionError."""
        payload = coerce_audio(audio)
        self._emit(PipelineStatus.TRANSCRIBING, "Analyzing your speech")
        try:
            return await self.speech.transcribe(payload)
        except IntakeError:
            raise
        except Exception as e:
            raise TranscriptionError(f"Failed to transcribe audio: {e}") from e

    async def categorize(self, transcript: Union[Transcript, str]) -> CategorizedFields:
        """Stage 2. Raises CategorizationError."""
        text = transcript.text if isinstance(transcript, Transcript) else transcript
        self._emit(PipelineStatus.CATEGORIZING, "Categorizing information")
        try:
            return await self.categorizer.categorize(text)
        except IntakeError:
            raise
        except Exception as e:
            raise CategorizationError(f"Failed to categorize information: {e}") from e

    async def run_intake(self, audio: Union[AudioPayload, str]) -> CategorizedFields:
        """
        Run both stages for one recording.

        Args:
            audio: An AudioPayload or a base64 audio data URI

        Returns:
            The categorized fields

        Raises:
            ValidationError: If the audio is malformed (before any network call)
            TranscriptionError: If stage 1 fails
            CategorizationError: If stage 2 fails
        """
        self.reset()
        try:
            transcript = await self.transcribe(audio)
            self.transcript = transcript
            fields = await self.categorize(transcript)
        except IntakeError as e:
            self.reset()
            logger.warning("Intake failed during %s: %s", e.stage, e)
            self._emit(PipelineStatus.ERROR, f"{e.stage}: {e}")
            raise

        self.fields = fields
        self._emit(PipelineStatus.DONE, "Job details sorted")
        return fields


async def run_intake(audio: Union[AudioPayload, str], pipeline: Optional[IntakePipeline] = None) -> CategorizedFields:
    """Convenience wrapper running a single intake with a fresh pipeline."""
    return await (pipeline or IntakePipeline()).run_intake(audio)
