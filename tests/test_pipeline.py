"""
Tests for the intake pipeline: ordering, status notifications and failure handling.
"""

import asyncio
import base64

import pytest

import jobtalk.core.categorize as categorize_mod
import jobtalk.core.pipeline as pipeline_mod
from jobtalk.core.categorize import Categorizer
from jobtalk.core.config import ConfigError
from jobtalk.core.errors import CategorizationError, TranscriptionError, ValidationError
from jobtalk.core.llm_handler import LLMHandler
from jobtalk.core.pipeline import IntakePipeline, run_intake
from jobtalk.core.speech import SpeechProcessor
from jobtalk.core.types import SENTINEL, AudioPayload, PipelineStatus
from tests.helpers import JANE_DOE_RESPONSE, JANE_DOE_TRANSCRIPT, DummyAsyncOpenAI

AUDIO_URI = "data:audio/wav;base64," + base64.b64encode(b"RIFF audio").decode("ascii")


@pytest.fixture(autouse=True)
def no_debug(monkeypatch):
    monkeypatch.delenv("JT_DEBUG", raising=False)


def make_pipeline(tmp_path, **client_kwargs):
    client = DummyAsyncOpenAI(**client_kwargs)
    handler = LLMHandler(project_root=str(tmp_path), client=client)
    pipeline = IntakePipeline(speech=SpeechProcessor(client=client), categorizer=Categorizer(handler=handler))
    statuses = []
    pipeline.subscribe(lambda status, detail: statuses.append(status))
    return pipeline, client, statuses


class TestIntakePipeline:
    """Test the two-stage intake run."""

    def test_successful_run(self, tmp_path):
        pipeline, client, statuses = make_pipeline(tmp_path, transcript=JANE_DOE_TRANSCRIPT, completion=JANE_DOE_RESPONSE)

        fields = asyncio.run(pipeline.run_intake(AUDIO_URI))

        assert fields.contact_information.name == "Jane Doe"
        assert pipeline.fields == fields
        assert pipeline.transcript.text == JANE_DOE_TRANSCRIPT
        assert statuses == [PipelineStatus.TRANSCRIBING, PipelineStatus.CATEGORIZING, PipelineStatus.DONE]
        assert pipeline.status is PipelineStatus.DONE

    def test_transcript_is_passed_to_categorization(self, tmp_path):
        pipeline, client, _ = make_pipeline(tmp_path, transcript="Fix the gutters", completion={})
        asyncio.run(pipeline.run_intake(AudioPayload(data=b"abc", encoding="ogg")))

        assert "Fix the gutters" in client.completions.calls[0]["messages"][1]["content"]

    def test_malformed_uri_fails_before_any_request(self, tmp_path):
        pipeline, client, statuses = make_pipeline(tmp_path, transcript="unused", completion={})

        with pytest.raises(ValidationError):
            asyncio.run(pipeline.run_intake("audio/wav;base64,AAAA"))

        assert client.call_count == 0
        assert statuses == [PipelineStatus.ERROR]

    def test_transcription_failure_skips_categorization(self, tmp_path):
        pipeline, client, statuses = make_pipeline(tmp_path, transcript="", completion=JANE_DOE_RESPONSE)

        with pytest.raises(TranscriptionError) as exc_info:
            asyncio.run(pipeline.run_intake(AUDIO_URI))

        assert exc_info.value.stage == "transcription"
        assert client.completions.calls == []
        assert statuses == [PipelineStatus.TRANSCRIBING, PipelineStatus.ERROR]

    def test_failure_clears_previous_result(self, tmp_path):
        pipeline, client, statuses = make_pipeline(tmp_path, transcript=JANE_DOE_TRANSCRIPT, completion=JANE_DOE_RESPONSE)
        asyncio.run(pipeline.run_intake(AUDIO_URI))
        assert pipeline.fields is not None

        client.completions.content = "null"
        with pytest.raises(CategorizationError):
            asyncio.run(pipeline.run_intake(AUDIO_URI))

        assert pipeline.fields is None
        assert pipeline.transcript is None
        assert pipeline.status is PipelineStatus.ERROR
        assert statuses[-2:] == [PipelineStatus.CATEGORIZING, PipelineStatus.ERROR]

    def test_error_detail_names_stage(self, tmp_path):
        pipeline, _, _ = make_pipeline(tmp_path, transcription_error=RuntimeError("offline"))
        details = []
        pipeline.subscribe(lambda status, detail: details.append((status, detail)))

        with pytest.raises(TranscriptionError):
            asyncio.run(pipeline.run_intake(AUDIO_URI))

        status, detail = details[-1]
        assert status is PipelineStatus.ERROR
        assert detail.startswith("transcription:")

    def test_unsubscribe(self, tmp_path):
        pipeline, _, statuses = make_pipeline(tmp_path, transcript="", completion={})
        seen = []
        unsubscribe = pipeline.subscribe(lambda status, detail: seen.append(status))
        unsubscribe()

        with pytest.raises(TranscriptionError):
            asyncio.run(pipeline.run_intake(AUDIO_URI))

        assert seen == []
        assert statuses

    def test_run_intake_with_empty_categorization(self, tmp_path):
        pipeline, _, _ = make_pipeline(tmp_path, transcript="Just saying hello", completion={})
        fields = asyncio.run(run_intake(AUDIO_URI, pipeline=pipeline))
        assert fields.scope_of_work == SENTINEL
        assert fields.contact_information.email == SENTINEL


class TestCollaboratorFailures:
    """Failures while building a stage's client are reported as that stage's error."""

    @staticmethod
    def missing_key(*args, **kwargs):
        raise ConfigError("OPENAI_API_KEY not found in environment.")

    def test_client_setup_failure_in_transcription(self, monkeypatch):
        monkeypatch.setattr(pipeline_mod, "SpeechProcessor", self.missing_key)
        pipeline = IntakePipeline()
        statuses = []
        pipeline.subscribe(lambda status, detail: statuses.append(status))

        with pytest.raises(TranscriptionError, match="OPENAI_API_KEY") as exc_info:
            asyncio.run(pipeline.run_intake(AUDIO_URI))

        assert isinstance(exc_info.value.__cause__, ConfigError)
        assert statuses == [PipelineStatus.TRANSCRIBING, PipelineStatus.ERROR]
        assert pipeline.status is PipelineStatus.ERROR
        assert pipeline.transcript is None

    def test_client_setup_failure_in_categorization(self, tmp_path, monkeypatch):
        monkeypatch.setattr(categorize_mod, "LLMHandler", self.missing_key)
        client = DummyAsyncOpenAI(transcript=JANE_DOE_TRANSCRIPT)
        pipeline = IntakePipeline(speech=SpeechProcessor(client=client), categorizer=Categorizer(project_root=str(tmp_path)))
        details = []
        pipeline.subscribe(lambda status, detail: details.append((status, detail)))

        with pytest.raises(CategorizationError) as exc_info:
            asyncio.run(pipeline.run_intake(AUDIO_URI))

        assert exc_info.value.stage == "categorization"
        assert [status for status, _ in details] == [
            PipelineStatus.TRANSCRIBING,
            PipelineStatus.CATEGORIZING,
            PipelineStatus.ERROR,
        ]
        assert details[-1][1].startswith("categorization:")
        assert pipeline.fields is None
        assert pipeline.transcript is None
