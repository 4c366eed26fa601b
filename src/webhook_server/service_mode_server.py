"""
Conversion webhook server that uses service mode for Kubernetes webhook configurations.

This server extends Kopf's WebhookServer but yields a service configuration
instead of a URL configuration, making it more suitable for in-cluster deployments.
It serves CRD conversion requests at ``/convert/<kind>``, one route per
resource kind it has a converter for.
"""

import logging
import kopf
import aiohttp.web
import asyncio
import base64
from conversion import review_response
from conversion.review import request_uid
from .crd_maintainer import conversion_path, maintain_crds

logger = logging.getLogger(__name__)


class ServiceModeWebhookServer(kopf.WebhookServer):
    """
    A conversion webhook server that uses service mode for Kubernetes webhook configurations.

    The service namespace and name are configurable via parameters:
    - service_namespace: The namespace where the service is deployed
    - service_name: The name of the service
    - converters: The ResourceConverter of every served kind, keyed by kind.
      They are built once before the server starts and only read afterwards.
    - maintain_crds: Whether the served CRDs are patched to use this webhook.

    Note: The 'addr' and 'host' parameters from the parent WebhookServer are ignored
    in service mode, as the service name and namespace are used instead for routing.
    The server will still bind to the specified port, but the hostname/address
    is not used in the webhook configuration.
    """

    def __init__(
        self,
        *,
        service_name,
        service_namespace,
        converters,
        maintain_crds=True,
        addr=None,
        port=None,
        path=None,
        host=None,
        cadata=None,
        cafile=None,
        cadump=None,
        context=None,
        insecure=False,
        certfile=None,
        pkeyfile=None,
        password=None,
        extra_sans=(),
        verify_mode=None,
        verify_cafile=None,
        verify_capath=None,
        verify_cadata=None,
    ):
        super().__init__(
            addr=addr,
            port=port,
            path=path,
            host=host,
            cadata=cadata,
            cafile=cafile,
            cadump=cadump,
            context=context,
            insecure=insecure,
            certfile=certfile,
            pkeyfile=pkeyfile,
            password=password,
            extra_sans=extra_sans,
            verify_mode=verify_mode,
            verify_cafile=verify_cafile,
            verify_capath=verify_capath,
            verify_cadata=verify_cadata,
        )
        self.service_name = service_name
        self.service_namespace = service_namespace
        self.converters = dict(converters)
        self.maintain_crds = maintain_crds

    async def __call__(self, fn):
        """
        Start the webhook server and yield a service configuration.

        Unlike the parent WebhookServer, this method ignores the 'addr' and 'host'
        parameters and uses the service_name and service_namespace instead for the
        webhook configuration. Once listening, the served CRDs are patched to send
        their conversion requests here.

        Args:
            fn: The admission webhook function handed over by Kopf. Only
                conversion requests are served, so it is not routed.

        Yields:
            dict: A service configuration for Kubernetes webhook configurations.
        """
        cadata, context = self._build_ssl()
        path = self.path.rstrip("/") if self.path else ""

        app = self._setup_app(path)
        runner = self._setup_runner(app)
        await runner.setup()

        try:
            addr = self.addr or None
            port = self.port or self._allocate_free_port()
            site = self._setup_site(runner, addr, port, context)
            await site.start()

            schema = "http" if context is None else "https"
            listen_url = self._build_url(schema, addr or "*", port, self.path or "")
            logger.debug(f"Listening for conversion reviews at {listen_url}")

            client_config = {
                "service": {
                    "namespace": self.service_namespace,
                    "name": self.service_name,
                    "path": path,
                    "port": port,
                }
            }

            if cadata is not None:
                client_config["caBundle"] = base64.b64encode(cadata).decode("ascii")

            logger.info(
                f"Using service mode for webhook configuration: {self.service_name}.{self.service_namespace}"
            )
            if self.maintain_crds:
                maintain_crds(
                    [converter.schema for converter in self.converters.values()],
                    client_config,
                )
            else:
                logger.info("CRD maintenance is disabled, not patching conversion webhooks")
            yield client_config
            await asyncio.Event().wait()
        finally:
            await runner.cleanup()

    def _setup_app(self, path):
        """Set up the web application with the conversion endpoint."""

        async def _conversion_fn(request):
            return await self._handle_conversion(request)

        app = aiohttp.web.Application()
        app.add_routes([
            aiohttp.web.post(conversion_path("{kind}", path), _conversion_fn),
        ])
        for kind in sorted(self.converters):
            logger.info(f"Serving conversions of {kind} at {conversion_path(kind, path)}")
        return app

    async def _handle_conversion(self, request) -> aiohttp.web.Response:
        """Handle CRD conversion webhook requests.

        Every outcome is answered with a ConversionReview; failures are
        reported in its result, never through the HTTP status.
        """
        kind = request.match_info.get("kind", "")
        try:
            review = await request.json()
        except ValueError as e:
            logger.warning(f"Conversion request for {kind} is not valid JSON: {e}")
            return aiohttp.web.json_response(
                review_response(None, "", failure=f"request body is not valid JSON: {e}")
            )

        converter = self.converters.get(kind)
        if converter is None:
            logger.warning(f"Conversion requested for unknown kind {kind}")
            return aiohttp.web.json_response(
                review_response(
                    review,
                    request_uid(review),
                    failure=f'no conversion is registered for kind "{kind}"',
                )
            )
        return aiohttp.web.json_response(converter.convert_review(review))

    def _setup_runner(self, app):
        """Set up the application runner for the webhook server."""
        return aiohttp.web.AppRunner(app, handle_signals=False)

    def _setup_site(self, runner, addr, port, context):
        """Set up the TCP site for the webhook server."""
        return aiohttp.web.TCPSite(
            runner, addr, port, ssl_context=context, reuse_port=True
        )
