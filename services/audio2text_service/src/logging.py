from opentelemetry import trace
import hashlib, os, logging, time, json

SERVICE_NAME = os.getenv("SERVICE_NAME", "audio2text-service")
ENV = os.getenv("ENVIRONMENT", "local")
PROJECT_ID = os.getenv("PROJECT_ID") or os.getenv("GOOGLE_CLOUD_PROJECT")

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"), format="%(message)s")
_logger = logging.getLogger(SERVICE_NAME)

def hash_preview(s: str, n: int = 12) -> str:
    """Stand-in for transcript text in log records."""
    return f"sha256={hashlib.sha256(s.encode('utf-8')).hexdigest()[:n]},len={len(s)}"

def jlog(event: str = "", severity: str = "INFO", **fields):
    """
    One JSON line per event. ``severity`` and ``message`` are picked up by
    Cloud Logging; with a project id the trace key links the line to Cloud Trace.
    """
    span = trace.get_current_span()
    ctx = span.get_span_context() if span else None
    trace_id = f"{ctx.trace_id:032x}" if ctx and ctx.trace_id else None
    span_id = f"{ctx.span_id:016x}" if ctx and ctx.span_id else None

    record = {
        "message": event,
        "event": event,
        "severity": severity,
        "service": SERVICE_NAME,
        "env": ENV,
        "ts": time.time(),
        "trace_id": trace_id,
        "span_id": span_id,
    }
    if PROJECT_ID and trace_id:
        record["logging.googleapis.com/trace"] = f"projects/{PROJECT_ID}/traces/{trace_id}"
        record["logging.googleapis.com/spanId"] = span_id
    # Fields never override the envelope keys above
    record.update({k: v for k, v in fields.items() if k not in record})
    _logger.log(getattr(logging, severity, logging.INFO), json.dumps(record, ensure_ascii=False, default=str))
