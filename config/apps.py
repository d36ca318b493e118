import logging

from django.apps import AppConfig
from observability import init_tracing, RelayService


logger = logging.getLogger(__name__)

class TracingInitialization(AppConfig):
    name = "config"          # the dotted-path of the package
    verbose_name = "Tracing Initialization"

    def ready(self):
        logger.info("Starting OpenTelemetry initialization...")
        service = RelayService.WEB
        init_tracing(service)
        logger.info(f"OpenTelemetry initialization finished for service: {service.value}")
