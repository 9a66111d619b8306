from django.apps import AppConfig


class NetworkingConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'networking'

    def ready(self):
        from . import signals  # noqa: F401
