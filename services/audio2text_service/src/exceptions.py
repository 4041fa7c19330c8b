from typing import Optional


class PipelineError(Exception):
    retryable = False

    @property
    def kind(self) -> str:
        return type(self).__name__

class RetryableError(PipelineError):
    """Temporary: redelivery of the same notification may succeed."""
    retryable = True

class PermanentError(PipelineError):
    """Won't improve with retry: bad event, rejected audio, failed recognition."""
    retryable = False

class MalformedNotification(PermanentError):
    """The inbound change notification could not be interpreted."""

class SubmissionError(PipelineError):
    """The recognition service rejected or never received the job."""

    def __init__(self, object_name: str, transient: bool, cause: Optional[Exception] = None):
        self.object_name = object_name
        self.transient = transient
        self.cause = cause
        super().__init__(f"submit '{object_name}' failed ({'transient' if transient else 'permanent'}): {cause}")

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.transient

class JobFailed(PermanentError):
    """The recognition job reached the failed state."""

    def __init__(self, job_id: str, error: Optional[str] = None):
        self.job_id = job_id
        self.error = error
        super().__init__(f"recognition job {job_id} failed: {error or 'unknown error'}")

class JobTimedOut(RetryableError):
    """The recognition job did not finish inside the wait budget."""

    def __init__(self, job_id: str, budget_s: float):
        self.job_id = job_id
        self.budget_s = budget_s
        super().__init__(f"recognition job {job_id} not finished after {budget_s}s")

class WriteError(RetryableError):
    """The destination store did not accept the transcript."""

    def __init__(self, destination_name: str, cause: Optional[Exception] = None):
        self.destination_name = destination_name
        self.cause = cause
        super().__init__(f"write '{destination_name}' failed: {cause}")
