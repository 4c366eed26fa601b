import kopf
import logging
import os
from conversion import build_converters, load_descriptors
from versioning.errors import SchemaError
from webhook_server import ServiceModeWebhookServer

# Configure logging
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

# Configure webhook server
webhook_host = os.getenv("WEBHOOK_HOST", "0.0.0.0")
webhook_port = int(os.getenv("WEBHOOK_PORT", "443"))
webhook_cert_path = os.getenv("WEBHOOK_CERT_PATH", "/etc/webhook/tls.crt")
webhook_key_path = os.getenv("WEBHOOK_KEY_PATH", "/etc/webhook/tls.key")
webhook_ca_path = os.getenv("WEBHOOK_CA_PATH", "/etc/webhook/ca.crt")

# Service configuration for webhook
service_namespace = os.getenv("SERVICE_NAMESPACE", "default")
service_name = os.getenv("SERVICE_NAME", "crd-conversion-webhook")

# Versioned resource schemas
schema_dir = os.getenv("SCHEMA_DIR", "/etc/conversion/schemas")
disable_crd_maintenance = os.getenv("DISABLE_CRD_MAINTENANCE", "false").lower() in (
    "1",
    "true",
    "yes",
)


def load_converters(directory):
    """Load every schema descriptor and build its converter.

    Invalid schemas are fatal: they cannot be fixed by retrying.
    """
    try:
        schemas = load_descriptors(directory)
        converters = build_converters(schemas.values())
    except SchemaError as e:
        raise kopf.PermanentError(f"Invalid resource schema: {e}") from e
    if not converters:
        logger.warning(f"No resource schemas found in {directory}")
    return converters


@kopf.on.startup()
def configure_webhook(settings: kopf.OperatorSettings, memo: kopf.Memo, *args, **kwargs):
    """
    Configure the conversion webhook server on operator startup.
    Schemas are loaded and their conversion graphs built before the server
    starts, and are only read while serving requests.
    """
    logger.info(f"Loading resource schemas from {schema_dir}")
    converters = load_converters(schema_dir)
    memo.converters = converters

    # Check if webhook certificates exist
    if os.path.exists(webhook_cert_path) and os.path.exists(webhook_key_path):
        logger.info(
            f"Found webhook certificates at {webhook_cert_path} and {webhook_key_path}"
        )
        settings.admission.server = ServiceModeWebhookServer(
            port=webhook_port,
            certfile=webhook_cert_path,
            pkeyfile=webhook_key_path,
            cafile=webhook_ca_path,
            service_name=service_name,
            service_namespace=service_namespace,
            converters=converters,
            maintain_crds=not disable_crd_maintenance,
        )  # type: ignore
        logger.info("Webhook server configured successfully")
        logger.info(f"Webhook server listening on {webhook_host}:{webhook_port}")
    else:
        logger.warning(
            "Webhook certificates not found. Conversion webhooks will not work."
        )
        if not os.path.exists(webhook_cert_path):
            logger.error(f"Certificate file not found: {webhook_cert_path}")
        if not os.path.exists(webhook_key_path):
            logger.error(f"Key file not found: {webhook_key_path}")


@kopf.on.probe(id="conversions")
def served_conversions(memo: kopf.Memo, **kwargs):
    """Report the kinds and versions this webhook converts."""
    converters = getattr(memo, "converters", None) or {}
    return {
        kind: [str(v) for v in converter.schema.versions]
        for kind, converter in sorted(converters.items())
    }
