from django.apps import AppConfig


class ChatConfig(AppConfig):
    name = "chat"

    def ready(self):
        # registers the setting_changed receiver that drops the cached RelayConfig
        from . import config  # noqa: F401
