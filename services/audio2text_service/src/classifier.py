"""
Interpretation of Cloud Storage change notifications.

Three delivery shapes are understood:

* Pub/Sub notifications for Cloud Storage (``eventType`` message attribute),
* Eventarc CloudEvents (``ce-type`` header),
* legacy background-function events (``resourceState`` / ``metageneration``).
"""
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .exceptions import MalformedNotification
from .logging import jlog
from .schemas import Action, ChangeNotification, Existence

PUBSUB_EVENT_TYPES: Dict[str, Existence] = {
    "OBJECT_FINALIZE": Existence.CREATED,
    "OBJECT_METADATA_UPDATE": Existence.UPDATED,
    "OBJECT_DELETE": Existence.DELETED,
    "OBJECT_ARCHIVE": Existence.DELETED,
}

CLOUDEVENT_TYPES: Dict[str, Existence] = {
    "google.cloud.storage.object.v1.finalized": Existence.CREATED,
    "google.cloud.storage.object.v1.metadataUpdated": Existence.UPDATED,
    "google.cloud.storage.object.v1.deleted": Existence.DELETED,
    "google.cloud.storage.object.v1.archived": Existence.DELETED,
}

def _legacy_existence(payload: Dict[str, Any]) -> Existence:
    if payload.get("resourceState") == "not_exists":
        return Existence.DELETED
    if str(payload.get("metageneration", "1")) == "1":
        return Existence.CREATED
    return Existence.UPDATED

def parse_notification(
    payload: Any,
    attributes: Optional[Dict[str, str]] = None,
    event_type: Optional[str] = None,
) -> ChangeNotification:
    if not isinstance(payload, dict):
        raise MalformedNotification(f"payload must be an object, got {type(payload).__name__}")

    attributes = attributes or {}
    if event_type:
        if event_type not in CLOUDEVENT_TYPES:
            raise MalformedNotification(f"unsupported event type: {event_type}")
        existence = CLOUDEVENT_TYPES[event_type]
    elif "eventType" in attributes:
        if attributes["eventType"] not in PUBSUB_EVENT_TYPES:
            raise MalformedNotification(f"unsupported event type: {attributes['eventType']}")
        existence = PUBSUB_EVENT_TYPES[attributes["eventType"]]
    else:
        existence = _legacy_existence(payload)

    name = payload.get("name") or attributes.get("objectId")
    generation = payload.get("generation") or attributes.get("objectGeneration") or ""
    metageneration = payload.get("metageneration")
    try:
        return ChangeNotification(
            object_name=name or "",
            generation=str(generation),
            existence=existence,
            bucket=payload.get("bucket") or attributes.get("bucketId"),
            metageneration=str(metageneration) if metageneration is not None else None,
        )
    except ValidationError as e:
        raise MalformedNotification(f"invalid notification: {e.errors()[0]['msg']}") from e

def classify(notification: ChangeNotification) -> Action:
    if notification.existence == Existence.DELETED:
        jlog(event="classify_skip", reason="deleted", name=notification.object_name)
        return Action.SKIP

    # Creations and metadata updates are handled the same way; the branch is informational.
    jlog(
        event="classify_process",
        existence=notification.existence.value,
        name=notification.object_name,
        generation=notification.generation,
    )
    return Action.PROCESS
