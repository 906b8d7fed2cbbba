from django.apps import AppConfig


class PrizePoolConfig(AppConfig):
    name = "prize_pool"
