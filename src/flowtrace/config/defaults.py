"""Default values for flowtrace configuration."""

from __future__ import annotations


_DEFAULTS: dict[str, object] = {
    "DISABLE_ALL_TRACING": False,
    "RETRY_FAILED_INITIALIZATION": False,
    "SERVICE_NAME": "flowtrace-app",
    "SERVICE_NAMESPACE": None,
    "SERVICE_VERSION": None,
    "SERVICE_INSTANCE_ID": None,
    "DEPLOYMENT_ENVIRONMENT": None,
    "RESOURCE_ATTRIBUTES": {},
    "EXPORTER_PROTOCOL": "http/protobuf",
    "EXPORTER_ENDPOINT": None,
    "EXPORTER_HEADERS": {},
    "EXPORTER_TIMEOUT": 10.0,
    "EXPORTER_COMPRESSION": "none",
    "EXPORTER_INSECURE": False,
    "BATCH_MAX_QUEUE_SIZE": 2048,
    "BATCH_MAX_EXPORT_BATCH_SIZE": 512,
    "BATCH_SCHEDULE_DELAY_MILLIS": 5000,
    "BATCH_EXPORT_TIMEOUT_MILLIS": 30000,
    "GENERATE_PROCESSOR_SPANS": True,
    "IGNORED_PROCESSORS": [],
}


__all__ = ["_DEFAULTS"]
