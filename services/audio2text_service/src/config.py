from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

from .schemas import AudioEncoding

# -----------------------
# Settings and constants
# -----------------------

class Settings(BaseSettings):

    # Core
    project_id: Optional[str] = None
    service_name: str = "audio2text-service"

    # Buckets: audio is read by the Speech API via gs:// URI, text is written here
    audio_bucket: str
    text_bucket: str

    # Fixed audio parameters for every recognition request
    audio_encoding: AudioEncoding = AudioEncoding.FLAC
    sample_rate_hz: int = 44100
    language_code: str = "en-US"

    # Output naming
    transcript_extension: str = ".txt"
    transcript_content_type: str = "text/plain; charset=utf-8"

    # Completion wait (poll with exponential backoff inside a hard budget)
    # Kept under the 600s Pub/Sub push ack deadline so a slow job is not redelivered mid-wait
    job_wait_budget_s: float = 540
    job_poll_interval_s: float = 5
    job_poll_cap_s: float = 30

    # Submission retry tuning (transient errors only)
    submit_max_retries: int = 3
    submit_backoff_base_ms: int = 500
    submit_backoff_cap_ms: int = 8000

    # Destination write retries
    write_max_retries: int = 1

    # Global settings configuration (Pydantic v2)
    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

settings = Settings() # type: ignore
