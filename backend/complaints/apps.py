from django.apps import AppConfig


class ComplaintsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "complaints"
    verbose_name = "Complaints"

    def ready(self):
        # Registers the setting_changed receiver that resets the dispatcher.
        from complaints import dispatch  # noqa: F401
