from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core"
    verbose_name = "Core"

    def ready(self):
        # Registers the setting_changed receiver that resets the event bus.
        from core.domain import realtime  # noqa: F401
