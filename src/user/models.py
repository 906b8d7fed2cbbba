from django.contrib.auth.models import AbstractUser
from django.db import models
from web3 import Web3


class User(AbstractUser):
    """
    Platform account. Admin operations on prize distributions are
    attributed to `wallet_address`.
    """

    wallet_address = models.CharField(
        max_length=42, blank=True, default="", db_index=True
    )

    def save(self, *args, **kwargs):
        if self.wallet_address:
            self.wallet_address = Web3.to_checksum_address(self.wallet_address)
        super().save(*args, **kwargs)

    @property
    def is_distribution_admin(self):
        return bool(self.is_staff and self.wallet_address)

    def __str__(self):
        return f"{self.username} ({self.wallet_address or 'no wallet'})"
