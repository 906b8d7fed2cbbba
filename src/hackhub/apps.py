from django.apps import AppConfig
from health_check.plugins import plugin_dir


class HackhubConfig(AppConfig):
    name = "hackhub"

    def ready(self):
        from hackhub.health_check import ChainHealthBackend

        plugin_dir.register(ChainHealthBackend)
