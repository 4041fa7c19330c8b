import time
from typing import Callable, Protocol

from google.api_core import exceptions as gax_exceptions
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    retry_if_result,
    stop_after_delay,
    wait_exponential,
)

from .config import Settings
from .exceptions import JobFailed, JobTimedOut, SubmissionError
from .logging import jlog
from .schemas import ChangeNotification, JobState, RecognitionJob, RecognitionRequest

# Transient failures from the Speech API; anything else the service raises is permanent
RETRYABLE_GAX_EXC = (
    gax_exceptions.ServiceUnavailable,
    gax_exceptions.DeadlineExceeded,
    gax_exceptions.InternalServerError,
    gax_exceptions.Aborted,
    gax_exceptions.ResourceExhausted,
    gax_exceptions.Unknown,
    gax_exceptions.Cancelled,
    ConnectionError,
    TimeoutError,
)

class Recognizer(Protocol):
    def submit(self, request: RecognitionRequest) -> str: ...
    def poll(self, job_id: str) -> RecognitionJob: ...

def source_uri(bucket: str, object_name: str) -> str:
    return f"gs://{bucket}/{object_name}"

def build_request(notification: ChangeNotification, settings: Settings) -> RecognitionRequest:
    return RecognitionRequest(
        source_uri=source_uri(settings.audio_bucket, notification.object_name),
        encoding=settings.audio_encoding,
        sample_rate_hz=settings.sample_rate_hz,
        language_code=settings.language_code,
    )

def submit_job(
    recognizer: Recognizer,
    notification: ChangeNotification,
    settings: Settings,
) -> RecognitionJob:
    request = build_request(notification, settings)
    try:
        job_id = recognizer.submit(request)
    except RETRYABLE_GAX_EXC as e:
        raise SubmissionError(notification.object_name, transient=True, cause=e) from e
    except Exception as e:
        raise SubmissionError(notification.object_name, transient=False, cause=e) from e

    jlog(
        event="job_submitted",
        job_id=job_id,
        source_uri=request.source_uri,
        encoding=request.encoding.value,
        sample_rate_hz=request.sample_rate_hz,
        language_code=request.language_code,
    )
    return RecognitionJob(job_id=job_id, state=JobState.PENDING)

def _advance(current: RecognitionJob, observed: RecognitionJob) -> RecognitionJob:
    if observed.state.rank < current.state.rank:
        jlog(
            event="job_state_regression_ignored",
            severity="WARNING",
            job_id=current.job_id,
            current=current.state.value,
            observed=observed.state.value,
        )
        return current
    if observed.state != current.state:
        jlog(
            event="job_state_changed",
            job_id=current.job_id,
            from_state=current.state.value,
            to_state=observed.state.value,
            progress_percent=observed.progress_percent,
        )
    return observed

def wait_for_completion(
    recognizer: Recognizer,
    job: RecognitionJob,
    *,
    budget_s: float,
    poll_interval_s: float,
    poll_cap_s: float,
    sleep: Callable[[float], None] = time.sleep,
) -> RecognitionJob:
    """
    Block until ``job`` is terminal and return it in state ``succeeded``.
    Raises JobFailed on a failed job or a permanent polling error, and
    JobTimedOut once ``budget_s`` is spent. The remote job is left running.
    """
    current = job

    def _poll() -> RecognitionJob:
        nonlocal current
        current = _advance(current, recognizer.poll(current.job_id))
        return current

    retrying = Retrying(
        retry=retry_if_result(lambda j: not j.is_terminal) | retry_if_exception_type(RETRYABLE_GAX_EXC),
        stop=stop_after_delay(budget_s),
        wait=wait_exponential(multiplier=poll_interval_s, min=poll_interval_s, max=max(poll_interval_s, poll_cap_s)),
        sleep=sleep,
        before_sleep=lambda rs: jlog(
            event="job_poll_wait",
            job_id=job.job_id,
            attempt=rs.attempt_number,
            wait_s=getattr(getattr(rs, "next_action", None), "sleep", None),
            state=current.state.value,
            error=str(rs.outcome.exception()) if rs.outcome and rs.outcome.failed else None,
        ),
    )

    try:
        final = retrying(_poll)
    except RetryError as e:
        raise JobTimedOut(job.job_id, budget_s) from e
    except gax_exceptions.GoogleAPICallError as e:
        raise JobFailed(job.job_id, f"poll: {e}") from e

    if final.state == JobState.FAILED:
        raise JobFailed(final.job_id, final.error)
    return final
