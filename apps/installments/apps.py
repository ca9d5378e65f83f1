from django.apps import AppConfig


class InstallmentsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.installments'
    label = 'installments'

    def ready(self):
        from . import signals  # noqa: F401
