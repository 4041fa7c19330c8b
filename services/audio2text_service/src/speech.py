from typing import Optional

from google.cloud import speech
from google.longrunning import operations_pb2

from .schemas import JobState, RecognitionJob, RecognitionRequest, Segment

class SpeechRecognizer:
    """
    Long-running recognition on Cloud Speech-to-Text v1.

    ``submit`` returns the operation name as the job id; ``poll`` looks the
    operation up by name, so nothing is kept between the two calls.
    """

    def __init__(self, client: Optional[speech.SpeechClient] = None, timeout_s: float = 60.0):
        self._client = client or speech.SpeechClient()
        self._timeout_s = timeout_s

    def submit(self, request: RecognitionRequest) -> str:
        config = speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding[request.encoding.value],
            sample_rate_hertz=request.sample_rate_hz,
            language_code=request.language_code,
        )
        audio = speech.RecognitionAudio(uri=request.source_uri)
        operation = self._client.long_running_recognize(config=config, audio=audio, timeout=self._timeout_s)
        return operation.operation.name

    def poll(self, job_id: str) -> RecognitionJob:
        op = self._client.transport.operations_client.get_operation(job_id, timeout=self._timeout_s)
        return job_from_operation(op)

def job_from_operation(op: operations_pb2.Operation) -> RecognitionJob:
    progress: Optional[int] = None
    if op.HasField("metadata"):
        progress = speech.LongRunningRecognizeMetadata.deserialize(op.metadata.value).progress_percent

    if not op.done:
        state = JobState.RUNNING if progress else JobState.PENDING
        return RecognitionJob(job_id=op.name, state=state, progress_percent=progress)

    if op.HasField("error"):
        return RecognitionJob(
            job_id=op.name,
            state=JobState.FAILED,
            error=f"code={op.error.code} {op.error.message}".strip(),
            progress_percent=progress,
        )

    response = speech.LongRunningRecognizeResponse.deserialize(op.response.value)
    # A result without alternatives still holds its place in the transcript.
    segments = [
        Segment(order=i, text=r.alternatives[0].transcript if r.alternatives else "")
        for i, r in enumerate(response.results, start=1)
    ]
    return RecognitionJob(job_id=op.name, state=JobState.SUCCEEDED, segments=segments, progress_percent=progress)
