import logging

from django.conf import settings
from django.core.management.commands.runserver import Command as RunserverCommand

from conversion_events.providers import credential_status

logger = logging.getLogger(__name__)


class Command(RunserverCommand):
    help = "Start the development server on settings.PORT and report which destinations are configured."

    @property
    def default_port(self):
        return str(getattr(settings, "PORT", 3001))

    def inner_run(self, *args, **options):
        for destination, configured in credential_status().items():
            if configured:
                self.stdout.write(self.style.SUCCESS(f"{destination}: configured"))
            else:
                msg = f"{destination}: missing credentials, events will be skipped"
                self.stdout.write(self.style.WARNING(msg))
                logger.info(msg)
        return super().inner_run(*args, **options)
