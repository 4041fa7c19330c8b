from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

# -----------------------
# Inbound notifications
# -----------------------

class Existence(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"

class ChangeNotification(BaseModel):
    model_config = ConfigDict(frozen=True)

    object_name: str = Field(min_length=1)
    generation: str = ""
    existence: Existence
    bucket: Optional[str] = None
    metageneration: Optional[str] = None

class Action(str, Enum):
    SKIP = "skip"
    PROCESS = "process"

class PubSubMessage(BaseModel):
    messageId: str
    data: str
    publishTime: Optional[str] = None  # RFC3339
    attributes: Optional[Dict[str, str]] = None

class PubSubEnvelope(BaseModel):
    message: PubSubMessage
    subscription: Optional[str] = None

# -----------------------
# Recognition
# -----------------------

class AudioEncoding(str, Enum):
    """Names of google.cloud.speech RecognitionConfig.AudioEncoding."""
    LINEAR16 = "LINEAR16"
    FLAC = "FLAC"
    MULAW = "MULAW"
    AMR = "AMR"
    AMR_WB = "AMR_WB"
    OGG_OPUS = "OGG_OPUS"
    SPEEX_WITH_HEADER_BYTE = "SPEEX_WITH_HEADER_BYTE"
    MP3 = "MP3"
    WEBM_OPUS = "WEBM_OPUS"

class RecognitionRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_uri: str
    encoding: AudioEncoding
    sample_rate_hz: int = Field(gt=0)
    language_code: str

class JobState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def rank(self) -> int:
        return _STATE_RANK[self]

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.SUCCEEDED, JobState.FAILED)

_STATE_RANK = {
    JobState.PENDING: 0,
    JobState.RUNNING: 1,
    JobState.SUCCEEDED: 2,
    JobState.FAILED: 2,
}

class Segment(BaseModel):
    model_config = ConfigDict(frozen=True)

    order: int
    text: str = ""

class RecognitionJob(BaseModel):
    model_config = ConfigDict(frozen=True)

    job_id: str
    state: JobState = JobState.PENDING
    segments: List[Segment] = []
    error: Optional[str] = None
    progress_percent: Optional[int] = None

    @model_validator(mode="after")
    def _segments_only_when_succeeded(self) -> "RecognitionJob":
        if self.segments and self.state != JobState.SUCCEEDED:
            raise ValueError(f"job {self.job_id} in state {self.state.value} cannot carry segments")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

# -----------------------
# Output
# -----------------------

class Transcript(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str

class OutputArtifact(BaseModel):
    model_config = ConfigDict(frozen=True)

    destination_name: str
    content: Transcript

class OutcomeStatus(str, Enum):
    IGNORED = "ignored"
    COMPLETED = "completed"
    FAILED = "failed"

class Outcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: OutcomeStatus
    reason: Optional[str] = None
    detail: Optional[str] = None
    retryable: bool = False
    object_name: Optional[str] = None
    job_id: Optional[str] = None
    destination_name: Optional[str] = None

    @classmethod
    def ignored(cls, object_name: Optional[str] = None, reason: Optional[str] = None, detail: Optional[str] = None) -> "Outcome":
        return cls(status=OutcomeStatus.IGNORED, object_name=object_name, reason=reason, detail=detail)

    @classmethod
    def completed(cls, object_name: str, job_id: str, destination_name: str) -> "Outcome":
        return cls(
            status=OutcomeStatus.COMPLETED,
            object_name=object_name,
            job_id=job_id,
            destination_name=destination_name,
        )

    @classmethod
    def failed(
        cls,
        reason: str,
        detail: str,
        retryable: bool,
        object_name: Optional[str] = None,
        job_id: Optional[str] = None,
    ) -> "Outcome":
        return cls(
            status=OutcomeStatus.FAILED,
            reason=reason,
            detail=detail,
            retryable=retryable,
            object_name=object_name,
            job_id=job_id,
        )
