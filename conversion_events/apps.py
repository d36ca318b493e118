from django.apps import AppConfig


class ConversionEventsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "conversion_events"
    verbose_name = "Conversion Events"
