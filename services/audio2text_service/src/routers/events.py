import base64
import json
from typing import Any, Dict, Optional

from anyio import to_thread
from fastapi import APIRouter, HTTPException, Request

from ..logging import jlog
from ..pipeline import TranscriptionPipeline
from ..schemas import Outcome, OutcomeStatus, PubSubEnvelope

router = APIRouter()

def _pipeline(request: Request) -> TranscriptionPipeline:
    pipeline: Optional[TranscriptionPipeline] = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="pipeline not initialised")
    return pipeline

def _decode_data(data: str) -> Any:
    try:
        return json.loads(base64.b64decode(data).decode("utf-8"))
    except Exception as e:
        # Undecodable data is handed on as-is and reported as a malformed notification
        jlog(event="pubsub_data_undecodable", severity="WARNING", error=str(e))
        return None

def _malformed(detail: str, **fields) -> Dict[str, Any]:
    # Acked: redelivering an unreadable request cannot succeed
    jlog(event="notification_malformed", severity="WARNING", error=detail, **fields)
    return Outcome.ignored(reason="MalformedNotification", detail=detail).model_dump(mode="json")

def _respond(outcome: Outcome) -> Dict[str, Any]:
    """
    Map the single Outcome of a run onto the push acknowledgement.
    Retryable failures answer 503 so the delivery is retried; everything else is acked.
    """
    if outcome.status == OutcomeStatus.FAILED and outcome.retryable:
        raise HTTPException(status_code=503, detail=outcome.model_dump(mode="json"))
    return outcome.model_dump(mode="json")

@router.post("/events/pubsub")
async def pubsub_push(request: Request) -> Dict[str, Any]:
    """
    Pub/Sub push handler for Cloud Storage notifications on the audio bucket.
    """
    pipeline = _pipeline(request)
    try:
        envelope = PubSubEnvelope(**(await request.json()))
    except Exception as e:
        return _malformed(f"Invalid Pub/Sub envelope: {e}")

    msg = envelope.message
    delivery_attempt = request.headers.get("X-Goog-Delivery-Attempt")
    jlog(
        event="pubsub_event_received",
        message_id=msg.messageId,
        attributes=msg.attributes or {},
        delivery_attempt=delivery_attempt,
    )

    outcome = await to_thread.run_sync(
        lambda: pipeline.handle_event(_decode_data(msg.data), msg.attributes, correlation_id=msg.messageId)
    )
    return _respond(outcome)

@router.post("/events/storage")
async def storage_event(request: Request) -> Dict[str, Any]:
    """
    Eventarc (CloudEvent binary mode) or legacy storage trigger: the body is the object resource.
    """
    pipeline = _pipeline(request)
    event_type = request.headers.get("ce-type")
    event_id = request.headers.get("ce-id")
    try:
        payload = await request.json()
    except Exception as e:
        return _malformed(f"Invalid JSON body: {e}", event_type=event_type, correlation_id=event_id)

    jlog(event="storage_event_received", event_type=event_type, event_id=event_id)

    outcome = await to_thread.run_sync(
        lambda: pipeline.handle_event(payload, event_type=event_type, correlation_id=event_id)
    )
    return _respond(outcome)
