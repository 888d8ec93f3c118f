from django.apps import AppConfig


class TelebirrAppConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "telebirr"
    verbose_name = "Telebirr payments"

    def ready(self):
        # Abort startup on missing merchant credentials.
        from .config import load_config
        load_config()
