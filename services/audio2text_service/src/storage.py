from typing import Optional
from google.cloud import storage

class TranscriptStore:
    """Destination bucket for transcripts; uploads overwrite same-name objects."""

    def __init__(self, bucket_name: str, client: Optional[storage.Client] = None, project: Optional[str] = None):
        self.bucket_name = bucket_name
        self._client = client or storage.Client(project=project)
        self._bucket = self._client.bucket(bucket_name)

    def write(self, name: str, data: str, content_type: str) -> None:
        blob = self._bucket.blob(name)
        blob.upload_from_string(data.encode("utf-8"), content_type=content_type)

    def uri(self, name: str) -> str:
        return f"gs://{self.bucket_name}/{name}"
