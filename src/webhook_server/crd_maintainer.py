"""
Keeps the ``spec.conversion`` of served CRDs pointed at this webhook.

Once the webhook server knows its client configuration (service reference
and CA bundle), every CRD it serves is patched to use the ``Webhook``
conversion strategy with the ``/convert/<kind>`` path of that resource.
"""

import copy
import logging

import kopf
from kubernetes import client
from kubernetes.client.rest import ApiException

from versioning.schema import ResourceSchema

logger = logging.getLogger(__name__)

CONVERSION_REVIEW_VERSIONS = ["v1"]


def conversion_path(kind: str, prefix: str = "") -> str:
    return f"{prefix.rstrip('/')}/convert/{kind}"


def conversion_patch(schema: ResourceSchema, client_config: dict) -> dict:
    """Build the CRD patch for the given webhook client configuration."""
    webhook_config = {}
    if "service" in client_config:
        service = copy.deepcopy(client_config["service"])
        service["path"] = conversion_path(schema.kind, service.get("path") or "")
        webhook_config["service"] = service
    elif "url" in client_config:
        webhook_config["url"] = conversion_path(schema.kind, client_config["url"])
    else:
        raise ValueError("webhook client config has neither a service nor a url")
    if client_config.get("caBundle"):
        webhook_config["caBundle"] = client_config["caBundle"]

    return {
        "spec": {
            "conversion": {
                "strategy": "Webhook",
                "webhook": {
                    "conversionReviewVersions": CONVERSION_REVIEW_VERSIONS,
                    "clientConfig": webhook_config,
                },
            }
        }
    }


def _classify_and_raise_api_exception(e: ApiException):
    """Map K8s ApiException to kopf Permanent/Temporary errors.

    - Permanent: 400, 403, 404, 422 and other 4xx (missing CRD, forbidden patch).
    - Temporary: 409, 429, 5xx (conflicts, rate limits, server issues).
    """
    body = getattr(e, "body", "") or ""
    status = getattr(e, "status", None)
    reason = getattr(e, "reason", "")
    msg = f"{status} {reason} {body}".strip()

    if status in (409, 429) or (status is not None and 500 <= status < 600):
        raise kopf.TemporaryError(f"Temporary API error: {msg}", delay=30)

    if status is not None and 400 <= status < 500:
        raise kopf.PermanentError(f"Permanent API error: {msg}")

    raise e


def patch_crd_conversion(schema: ResourceSchema, client_config: dict):
    body = conversion_patch(schema, client_config)
    try:
        client.ApiextensionsV1Api().patch_custom_resource_definition(
            name=schema.crd_name,
            body=body,
        )
    except ApiException as e:
        _classify_and_raise_api_exception(e)
    logger.info(f"Patched conversion webhook of CRD {schema.crd_name}")


def maintain_crds(schemas, client_config: dict):
    """Patch every served CRD; temporary failures are logged, not raised."""
    for schema in schemas:
        try:
            patch_crd_conversion(schema, client_config)
        except kopf.TemporaryError as e:
            logger.warning(f"Could not patch CRD {schema.crd_name}, skipping: {e}")
