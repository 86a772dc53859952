import atexit
import socket
import uuid
from typing import TYPE_CHECKING, Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor
from opentelemetry.semconv.resource import ResourceAttributes

from attachgate.config import TelemetryConfig

if TYPE_CHECKING:
    from opentelemetry.trace import Tracer

DEFAULT_SERVICE_NAME = "attachgate"

# Error messages
_MISSING_EXPORTERS_MSG = (
    "Telemetry is enabled but no exporters are configured. "
    "Set endpoint or console_export=True to export traces."
)


def get_tracer() -> "Tracer":
    """Tracer used around calls to the attachment service (no-op until configured)."""
    return trace.get_tracer("attachgate")


def setup_telemetry(
    telemetry_config: TelemetryConfig, service_name: str = DEFAULT_SERVICE_NAME
) -> Optional["Tracer"]:
    """Setup OpenTelemetry tracing for calls to the attachment service.

    Configures and installs a global tracer provider with OTLP and/or console
    exporters. Spans created by :mod:`attachgate.client` are exported through it.

    Args:
        telemetry_config: Telemetry configuration specifying endpoint and export options
        service_name: Value of the ``service.name`` resource attribute

    Returns:
        OpenTelemetry tracer instance if enabled, None otherwise
    """

    if not telemetry_config.enabled:
        return None

    resource_attrs: dict[str, str] = {
        ResourceAttributes.SERVICE_NAME: service_name,
    }

    # Auto-detect service version from package metadata
    from importlib.metadata import PackageNotFoundError
    from importlib.metadata import version as get_version

    try:
        resource_attrs[ResourceAttributes.SERVICE_VERSION] = get_version("attachgate")
    except PackageNotFoundError:
        pass  # Version not available

    if telemetry_config.deployment_environment:
        resource_attrs[ResourceAttributes.DEPLOYMENT_ENVIRONMENT] = (
            telemetry_config.deployment_environment
        )

    if telemetry_config.service_instance_id:
        resource_attrs[ResourceAttributes.SERVICE_INSTANCE_ID] = (
            telemetry_config.service_instance_id
        )
    else:
        # hostname + short UUID
        hostname = socket.gethostname()
        instance_uuid = str(uuid.uuid4())[:8]
        resource_attrs[ResourceAttributes.SERVICE_INSTANCE_ID] = f"{hostname}-{instance_uuid}"

    # Reject telemetry enabled without exporters (creates overhead without benefit)
    if not telemetry_config.endpoint and not telemetry_config.console_export:
        raise ValueError(_MISSING_EXPORTERS_MSG)

    resource = Resource.create(resource_attrs)
    provider = TracerProvider(resource=resource)

    if telemetry_config.endpoint:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        exporter = OTLPSpanExporter(
            endpoint=telemetry_config.endpoint, timeout=telemetry_config.timeout
        )
        provider.add_span_processor(BatchSpanProcessor(exporter))

    if telemetry_config.console_export:
        from opentelemetry.sdk.trace.export import ConsoleSpanExporter

        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)

    # Shutdown provider once at process exit
    atexit.register(provider.shutdown)

    return trace.get_tracer(__name__)
