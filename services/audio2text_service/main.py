import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from .src.routers import events
from .src.config import settings
from .otel import init_tracing

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Configuration and clients are built once per process, never per event
    from .src.pipeline import TranscriptionPipeline
    from .src.speech import SpeechRecognizer
    from .src.storage import TranscriptStore

    app.state.pipeline = TranscriptionPipeline(
        settings,
        recognizer=SpeechRecognizer(),
        store=TranscriptStore(settings.text_bucket, project=settings.project_id),
    )
    try:
        yield
    finally:
        app.state.pipeline = None

app = FastAPI(title="Audio to Text Service API", version="1.0.0", lifespan=lifespan)

# Routers
app.include_router(events.router)

os.environ.setdefault("SERVICE_NAME", settings.service_name)
tracer = init_tracing(app, service_name=settings.service_name, service_version="v1", project_id=settings.project_id)

@app.get("/health")
def health():
    return {
        "status": "ok",
        "service": settings.service_name,
        "audio_bucket": settings.audio_bucket,
        "text_bucket": settings.text_bucket,
    }
