import time
from typing import Any, Callable, Dict, Optional

from tenacity import Retrying, retry_if_exception, retry_if_exception_type, stop_after_attempt, wait_random_exponential

from .classifier import classify, parse_notification
from .config import Settings
from .exceptions import MalformedNotification, PipelineError, SubmissionError, WriteError
from .jobs import Recognizer, submit_job, wait_for_completion
from .logging import jlog
from .schemas import Action, ChangeNotification, Outcome, OutputArtifact, RecognitionJob, Transcript
from .transcript import TextStore, aggregate, write_transcript

def _is_transient_submission(e: BaseException) -> bool:
    return isinstance(e, SubmissionError) and e.transient

class TranscriptionPipeline:
    """
    One notification in, one Outcome out.

    classify -> submit -> wait -> aggregate -> write. The first failing step
    ends the run; the Outcome is only built once every step has settled.
    """

    def __init__(
        self,
        settings: Settings,
        recognizer: Recognizer,
        store: TextStore,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._settings = settings
        self._recognizer = recognizer
        self._store = store
        self._sleep = sleep

    def handle_event(
        self,
        payload: Any,
        attributes: Optional[Dict[str, str]] = None,
        event_type: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> Outcome:
        try:
            notification = parse_notification(payload, attributes, event_type)
        except MalformedNotification as e:
            jlog(event="notification_malformed", severity="WARNING", error=str(e), correlation_id=correlation_id)
            return Outcome.ignored(reason=e.kind, detail=str(e))
        return self.handle(notification, correlation_id=correlation_id)

    def handle(self, notification: ChangeNotification, correlation_id: Optional[str] = None) -> Outcome:
        name = notification.object_name
        if classify(notification) == Action.SKIP:
            jlog(event="pipeline_ignored", name=name, correlation_id=correlation_id)
            return Outcome.ignored(object_name=name)

        start = time.time()
        job: Optional[RecognitionJob] = None
        try:
            job = self._submit(notification, correlation_id)
            job = wait_for_completion(
                self._recognizer,
                job,
                budget_s=self._settings.job_wait_budget_s,
                poll_interval_s=self._settings.job_poll_interval_s,
                poll_cap_s=self._settings.job_poll_cap_s,
                sleep=self._sleep,
            )
            transcript = aggregate(job)
            artifact = self._write(name, transcript, correlation_id)
        except PipelineError as e:
            jlog(
                event="pipeline_failed",
                severity="ERROR",
                name=name,
                reason=e.kind,
                retryable=e.retryable,
                error=str(e),
                job_id=job.job_id if job else None,
                correlation_id=correlation_id,
            )
            return Outcome.failed(e.kind, str(e), e.retryable, object_name=name, job_id=job.job_id if job else None)
        except Exception as e:
            # Unknown error - prefer retry to avoid data loss
            jlog(
                event="pipeline_failed",
                severity="ERROR",
                name=name,
                reason="UnexpectedError",
                retryable=True,
                error=str(e),
                job_id=job.job_id if job else None,
                correlation_id=correlation_id,
            )
            return Outcome.failed("UnexpectedError", str(e), True, object_name=name, job_id=job.job_id if job else None)

        jlog(
            event="pipeline_completed",
            name=name,
            job_id=job.job_id,
            destination=artifact.destination_name,
            segments=len(job.segments),
            duration_ms=int((time.time() - start) * 1000),
            correlation_id=correlation_id,
        )
        return Outcome.completed(name, job.job_id, artifact.destination_name)

    def _submit(self, notification: ChangeNotification, correlation_id: Optional[str]) -> RecognitionJob:
        s = self._settings
        backoff_base_s = max(0.01, s.submit_backoff_base_ms / 1000.0)
        backoff_cap_s = max(backoff_base_s, s.submit_backoff_cap_ms / 1000.0)
        retrying = Retrying(
            retry=retry_if_exception(_is_transient_submission),
            stop=stop_after_attempt(max(1, s.submit_max_retries + 1)),
            wait=wait_random_exponential(multiplier=backoff_base_s, max=backoff_cap_s),
            sleep=self._sleep,
            reraise=True,
            before_sleep=lambda rs: jlog(
                event="submit_retry",
                attempt=rs.attempt_number,
                wait_s=getattr(getattr(rs, "next_action", None), "sleep", None),
                error=str(rs.outcome.exception()) if rs.outcome and rs.outcome.failed else None,
                name=notification.object_name,
                correlation_id=correlation_id,
            ),
        )
        return retrying(submit_job, self._recognizer, notification, s)

    def _write(self, source_name: str, transcript: Transcript, correlation_id: Optional[str]) -> OutputArtifact:
        s = self._settings
        retrying = Retrying(
            retry=retry_if_exception_type(WriteError),
            stop=stop_after_attempt(max(1, s.write_max_retries + 1)),
            sleep=self._sleep,
            reraise=True,
            before_sleep=lambda rs: jlog(
                event="write_retry",
                attempt=rs.attempt_number,
                name=source_name,
                correlation_id=correlation_id,
            ),
        )
        return retrying(
            write_transcript,
            self._store,
            source_name,
            transcript,
            extension=s.transcript_extension,
            content_type=s.transcript_content_type,
        )
