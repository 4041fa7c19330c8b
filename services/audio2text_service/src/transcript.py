import posixpath
from typing import Protocol

from .exceptions import WriteError
from .logging import hash_preview, jlog
from .schemas import JobState, OutputArtifact, RecognitionJob, Transcript

class TextStore(Protocol):
    def write(self, name: str, data: str, content_type: str) -> None: ...

def aggregate(job: RecognitionJob) -> Transcript:
    if job.state != JobState.SUCCEEDED:
        raise ValueError(f"cannot aggregate job {job.job_id} in state {job.state.value}")
    ordered = sorted(job.segments, key=lambda s: s.order)
    return Transcript(text="\n".join(s.text for s in ordered))

def destination_name(source_name: str, extension: str = ".txt") -> str:
    """
    Swap the extension of the last path component for ``extension``.

    ``audio/meeting1.flac`` -> ``audio/meeting1.txt``; a name without an
    extension (``clip``, ``.clip``, ``v1.2/clip``) gets ``extension`` appended.
    """
    head, tail = posixpath.split(source_name)
    stem, _ = posixpath.splitext(tail)
    return posixpath.join(head, stem + extension) if head else stem + extension

def write_transcript(
    store: TextStore,
    source_name: str,
    transcript: Transcript,
    *,
    extension: str = ".txt",
    content_type: str = "text/plain; charset=utf-8",
) -> OutputArtifact:
    name = destination_name(source_name, extension)
    try:
        store.write(name, transcript.text, content_type)
    except Exception as e:
        jlog(event="write_failed", severity="ERROR", destination=name, error=str(e))
        raise WriteError(name, e) from e

    jlog(event="transcript_written", source=source_name, destination=name, text=hash_preview(transcript.text))
    return OutputArtifact(destination_name=name, content=transcript)
