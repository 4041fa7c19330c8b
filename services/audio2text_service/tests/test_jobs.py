import time

import pytest
from google.api_core import exceptions as gax_exceptions

from services.audio2text_service.src.config import Settings
from services.audio2text_service.src.exceptions import JobFailed, JobTimedOut, SubmissionError
from services.audio2text_service.src.jobs import build_request, submit_job, wait_for_completion
from services.audio2text_service.src.schemas import (
    AudioEncoding,
    ChangeNotification,
    Existence,
    JobState,
    RecognitionJob,
)

from conftest import FakeRecognizer, succeeded


def _notification(name="call.flac"):
    return ChangeNotification(object_name=name, generation="1", existence=Existence.CREATED)


def _wait(recognizer, sleeps, budget_s=5, sleep=None):
    return wait_for_completion(
        recognizer,
        RecognitionJob(job_id="operations/123"),
        budget_s=budget_s,
        poll_interval_s=0.01,
        poll_cap_s=0.02,
        sleep=sleep or sleeps.append,
    )


def test_build_request_joins_configured_bucket_and_name(settings):
    req = build_request(_notification("audio/meeting 1.flac"), settings)
    assert req.source_uri == "gs://audio-bucket/audio/meeting 1.flac"
    assert req.encoding == AudioEncoding.FLAC
    assert req.sample_rate_hz == 44100
    assert req.language_code == "en-US"


def test_build_request_is_recomputed_per_notification(settings):
    assert build_request(_notification("a.flac"), settings).source_uri.endswith("/a.flac")
    assert build_request(_notification("b.flac"), settings).source_uri.endswith("/b.flac")


def test_submit_job_returns_pending_job_and_submits_once(settings):
    rec = FakeRecognizer(poll_script=[succeeded("x")])
    job = submit_job(rec, _notification(), settings)
    assert job.job_id == "operations/123"
    assert job.state == JobState.PENDING
    assert [r.source_uri for r in rec.submitted] == ["gs://audio-bucket/call.flac"]
    assert rec.polls == 0


@pytest.mark.parametrize(
    "error,transient",
    [
        (gax_exceptions.ServiceUnavailable("down"), True),
        (gax_exceptions.ResourceExhausted("quota"), True),
        (ConnectionError("reset"), True),
        (gax_exceptions.InvalidArgument("bad sample rate"), False),
        (gax_exceptions.NotFound("no such object"), False),
    ],
)
def test_submit_job_classifies_errors(settings, error, transient):
    rec = FakeRecognizer(submit_errors=[error])
    with pytest.raises(SubmissionError) as exc:
        submit_job(rec, _notification(), settings)
    assert exc.value.transient is transient
    assert exc.value.retryable is transient
    assert exc.value.cause is error


def test_wait_returns_succeeded_job_with_segments(sleeps):
    rec = FakeRecognizer(poll_script=[(JobState.PENDING, []), (JobState.RUNNING, []), succeeded("hello", "world")])
    job = _wait(rec, sleeps)
    assert job.state == JobState.SUCCEEDED
    assert [s.text for s in job.segments] == ["hello", "world"]
    assert rec.polls == 3
    assert len(sleeps) == 2


def test_wait_ignores_backward_transitions(sleeps):
    rec = FakeRecognizer(poll_script=[(JobState.RUNNING, []), (JobState.PENDING, []), succeeded("ok")])
    job = _wait(rec, sleeps)
    assert job.state == JobState.SUCCEEDED
    assert rec.polls == 3


def test_wait_raises_job_failed(sleeps):
    rec = FakeRecognizer(poll_script=[(JobState.RUNNING, []), (JobState.FAILED, [])])
    with pytest.raises(JobFailed) as exc:
        _wait(rec, sleeps)
    assert exc.value.job_id == "operations/123"
    assert "bad audio" in str(exc.value)


def test_wait_retries_transient_poll_errors(sleeps):
    rec = FakeRecognizer(poll_script=[gax_exceptions.ServiceUnavailable("blip"), succeeded("ok")])
    assert _wait(rec, sleeps).state == JobState.SUCCEEDED


def test_wait_permanent_poll_error_is_job_failed(sleeps):
    rec = FakeRecognizer(poll_script=[gax_exceptions.NotFound("operation gone")])
    with pytest.raises(JobFailed):
        _wait(rec, sleeps)
    assert rec.polls == 1


def test_wait_times_out_instead_of_hanging(sleeps):
    rec = FakeRecognizer(poll_script=[(JobState.RUNNING, [])])
    start = time.monotonic()
    with pytest.raises(JobTimedOut) as exc:
        _wait(rec, sleeps, budget_s=0.05, sleep=time.sleep)
    assert time.monotonic() - start < 1
    assert exc.value.budget_s == 0.05
    assert rec.polls >= 2


def test_segments_are_rejected_before_success():
    with pytest.raises(ValueError):
        RecognitionJob(job_id="j", state=JobState.RUNNING, segments=succeeded("early")[1])


def test_default_wait_budget_fits_push_ack_deadline():
    defaults = Settings(audio_bucket="a", text_bucket="t")
    assert defaults.job_wait_budget_s < 600
