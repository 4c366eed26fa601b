from .service_mode_server import ServiceModeWebhookServer
