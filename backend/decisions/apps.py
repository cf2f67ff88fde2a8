from django.apps import AppConfig


class DecisionsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "decisions"

    def ready(self):
        # Connects the terminal-status receiver
        from . import tracker  # noqa: F401
