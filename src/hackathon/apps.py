from django.apps import AppConfig


class HackathonConfig(AppConfig):
    name = "hackathon"
