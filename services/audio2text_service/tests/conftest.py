import os

# Settings and tracing are read at import time
os.environ.setdefault("AUDIO_BUCKET", "audio-bucket")
os.environ.setdefault("TEXT_BUCKET", "text-bucket")
os.environ.setdefault("USE_CLOUD_TRACE", "false")

import pytest
from google.api_core import exceptions as gax_exceptions

from services.audio2text_service.src.config import Settings
from services.audio2text_service.src.pipeline import TranscriptionPipeline
from services.audio2text_service.src.schemas import JobState, RecognitionJob, Segment


class FakeRecognizer:
    """
    Scripted recognition service. ``poll_script`` is consumed one entry per
    poll; the last entry repeats. Entries are RecognitionJob-building
    (state, segments) tuples or exceptions to raise.
    """

    def __init__(self, poll_script=None, submit_errors=None, job_id="operations/123"):
        self.poll_script = list(poll_script or [])
        self.submit_errors = list(submit_errors or [])
        self.job_id = job_id
        self.submitted = []
        self.polls = 0

    def submit(self, request):
        self.submitted.append(request)
        if self.submit_errors:
            raise self.submit_errors.pop(0)
        return self.job_id

    def poll(self, job_id):
        self.polls += 1
        entry = self.poll_script.pop(0) if len(self.poll_script) > 1 else self.poll_script[0]
        if isinstance(entry, Exception):
            raise entry
        state, segments = entry
        error = "code=3 bad audio" if state == JobState.FAILED else None
        return RecognitionJob(job_id=job_id, state=state, segments=segments, error=error)


class FakeStore:
    def __init__(self, fail_times=0):
        self.objects = {}
        self.writes = 0
        self.fail_times = fail_times

    def write(self, name, data, content_type):
        self.writes += 1
        if self.fail_times:
            self.fail_times -= 1
            raise gax_exceptions.ServiceUnavailable("bucket unavailable")
        self.objects[name] = data


def succeeded(*texts):
    return (JobState.SUCCEEDED, [Segment(order=i, text=t) for i, t in enumerate(texts, start=1)])


@pytest.fixture
def settings():
    return Settings(
        audio_bucket="audio-bucket",
        text_bucket="text-bucket",
        job_wait_budget_s=5,
        job_poll_interval_s=0.01,
        job_poll_cap_s=0.02,
        submit_backoff_base_ms=1,
        submit_backoff_cap_ms=2,
    )


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_pipeline(settings, sleeps):
    def _make(recognizer, store=None, sleep=None, **overrides):
        cfg = settings.model_copy(update=overrides) if overrides else settings
        return TranscriptionPipeline(
            cfg,
            recognizer,
            store if store is not None else FakeStore(),
            sleep=sleep or sleeps.append,
        )
    return _make
