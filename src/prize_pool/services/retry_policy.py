from datetime import timedelta

from django.conf import settings
from django.utils import timezone

# A replacement transaction must outbid the one it replaces by at least 10%
REPLACEMENT_GAS_PRICE_BUMP_PERCENT = 12


def backoff_seconds(attempt: int, base_delay: int | None = None) -> int:
    """Delay before the attempt following `attempt`: base, 2x base, 4x base..."""
    if base_delay is None:
        base_delay = settings.DISTRIBUTION_RETRY_BASE_DELAY_SECONDS
    return base_delay * 2 ** max(attempt - 1, 0)


def next_attempt_time(attempt: int, base_delay: int | None = None):
    return timezone.now() + timedelta(seconds=backoff_seconds(attempt, base_delay))


def replacement_gas_price(previous_gas_price) -> int:
    return int(previous_gas_price) * (100 + REPLACEMENT_GAS_PRICE_BUMP_PERCENT) // 100
