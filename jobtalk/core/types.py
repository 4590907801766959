"""
Type definitions for JobTalk.

This module defines the data structures that flow through the intake pipeline:
recorded audio, transcripts, the categorized job fields, and the auxiliary
budget line items and image attachments a user adds while editing.
"""

from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

SENTINEL = "Not mentioned"
NOT_PROVIDED = "Not provided"
MAX_IMAGES = 5

AudioEncoding = Literal["webm", "wav", "ogg", "mp3"]
SUPPORTED_ENCODINGS = ("webm", "wav", "ogg", "mp3")


def _or_sentinel(value: object) -> str:
    if value is None:
        return SENTINEL
    text = str(value).strip()
    return text or SENTINEL


class AudioPayload(BaseModel):
    """
    A single encoded recording, consumed once by the transcription service.
    """

    data: bytes = Field(..., min_length=1, description="Encoded audio bytes")
    encoding: AudioEncoding = Field(..., description="Container format of the audio")

    @property
    def mime_type(self) -> str:
        return f"audio/{self.encoding}"

    @property
    def filename(self) -> str:
        return f"recording.{self.encoding}"


class Transcript(BaseModel):
    """
    Result of automatic speech recognition.
    """

    text: str = Field(..., description="Transcribed text")
    lang_hint: str = Field(default="auto", description="Detected or hinted language code")


class ContactInformation(BaseModel):
    """
    Contact details extracted from a job conversation.

    Each sub-field falls back to the sentinel independently, so a transcript
    that only mentions a phone number still yields a complete object.
    """

    name: str = Field(default=SENTINEL, description="Contact name(s)")
    address: str = Field(default=SENTINEL, description="Full (possibly completed) address")
    phone: str = Field(default=SENTINEL, description="Phone number(s)")
    email: str = Field(default=SENTINEL, description="Email address(es)")

    @field_validator("name", "address", "phone", "email", mode="before")
    @classmethod
    def _default_missing(cls, value: object) -> str:
        return _or_sentinel(value)


class CategorizedFields(BaseModel):
    """
    Structured job details produced by the categorization model.

    Field names follow Python conventions; the camelCase names used on the wire
    are accepted as aliases and produced by ``model_dump(by_alias=True)``.
    """

    model_config = ConfigDict(populate_by_name=True)

    scope_of_work: str = Field(default=SENTINEL, alias="scopeOfWork", description="Rewritten scope of work")
    contact_information: ContactInformation = Field(
        default_factory=ContactInformation, alias="contactInformation", description="Structured contact details"
    )
    timeline: str = Field(default=SENTINEL, description="Rewritten project timeline")
    budget: str = Field(default=SENTINEL, description="Extracted budget information")

    @field_validator("scope_of_work", "timeline", "budget", mode="before")
    @classmethod
    def _default_missing(cls, value: object) -> str:
        return _or_sentinel(value)

    @field_validator("contact_information", mode="before")
    @classmethod
    def _default_contact(cls, value: object) -> object:
        if not isinstance(value, (dict, ContactInformation)):
            return ContactInformation()
        return value


class LineItem(BaseModel):
    """One row of a budget breakdown."""

    model_config = ConfigDict(frozen=True)

    id: int
    quantity: float = Field(..., gt=0)
    item_name: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)

    @property
    def subtotal(self) -> float:
        return self.quantity * self.price


class ImageAttachment(BaseModel):
    """A reference image attached to the scope of work."""

    model_config = ConfigDict(frozen=True)

    id: int
    filename: str
    content_type: str
    data: bytes = Field(..., min_length=1)
    description: str = ""


class PipelineStatus(str, Enum):
    """Status transitions emitted by the intake pipeline."""

    IDLE = "idle"
    TRANSCRIBING = "transcribing"
    CATEGORIZING = "categorizing"
    DONE = "done"
    ERROR = "error"


class ReadOnly(BaseModel):
    """A field displayed as plain text."""

    kind: Literal["read_only"] = "read_only"
    text: str


class Editable(BaseModel):
    """A field the user edits as a single block of text."""

    kind: Literal["editable"] = "editable"
    text: str


class Custom(BaseModel):
    """A field edited through its own sub-form (e.g. the contact block)."""

    kind: Literal["custom"] = "custom"
    subform: List[str] = Field(default_factory=list, description="Names of the sub-fields, in display order")


FieldView = Union[ReadOnly, Editable, Custom]


class FieldCard(BaseModel):
    """A titled field together with how it is presented."""

    title: str
    view: FieldView = Field(..., discriminator="kind")
    hint: Optional[str] = None
