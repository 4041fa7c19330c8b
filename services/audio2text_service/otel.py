import os
from typing import Optional

from opentelemetry import trace
from opentelemetry.propagate import set_global_textmap
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

USE_CLOUD_TRACE = os.getenv("USE_CLOUD_TRACE", "true").lower() == "true"

def init_tracing(app, service_name: str, service_version: str = "v1", project_id: Optional[str] = None):
    resource = Resource.create({
        "service.name": service_name,
        "service.version": service_version,
        "deployment.environment": os.getenv("ENVIRONMENT", "dev"),
    })
    provider = TracerProvider(resource=resource)
    if USE_CLOUD_TRACE:
        from opentelemetry.exporter.cloud_trace import CloudTraceSpanExporter
        from opentelemetry.propagators.cloud_trace_propagator import CloudTraceFormatPropagator
        exporter = CloudTraceSpanExporter(project_id=project_id)
        # Pub/Sub push and Eventarc deliveries arrive with X-Cloud-Trace-Context
        set_global_textmap(CloudTraceFormatPropagator())
    else:
        exporter = ConsoleSpanExporter()

    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor().instrument_app(app, excluded_urls="health")

    return trace.get_tracer(service_name)
