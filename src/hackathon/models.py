from django.db import models, transaction
from django.utils import timezone
from web3 import Web3

from hackathon.exceptions import (
    HackathonNotCompleted,
    InvalidStatusTransition,
    WinnersAlreadyFinalized,
)
from utils.models import DefaultModel

UINT256_DIGITS = 78


class Hackathon(DefaultModel):
    """
    Off-chain mirror of a hackathon registered on chain. Only the fields the
    prize distribution needs are kept here.
    """

    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        REGISTRATION_OPEN = "REGISTRATION_OPEN", "Registration open"
        REGISTRATION_CLOSED = "REGISTRATION_CLOSED", "Registration closed"
        SUBMISSION_OPEN = "SUBMISSION_OPEN", "Submission open"
        SUBMISSION_CLOSED = "SUBMISSION_CLOSED", "Submission closed"
        VOTING_OPEN = "VOTING_OPEN", "Voting open"
        VOTING_CLOSED = "VOTING_CLOSED", "Voting closed"
        COMPLETED = "COMPLETED", "Completed"
        CANCELLED = "CANCELLED", "Cancelled"

    TERMINAL_STATUSES = (Status.COMPLETED, Status.CANCELLED)

    VALID_TRANSITIONS = {
        Status.DRAFT: (Status.REGISTRATION_OPEN,),
        Status.REGISTRATION_OPEN: (
            Status.REGISTRATION_CLOSED,
            Status.SUBMISSION_OPEN,
        ),
        Status.REGISTRATION_CLOSED: (Status.SUBMISSION_OPEN,),
        Status.SUBMISSION_OPEN: (Status.SUBMISSION_CLOSED,),
        Status.SUBMISSION_CLOSED: (Status.VOTING_OPEN,),
        Status.VOTING_OPEN: (Status.VOTING_CLOSED,),
        Status.VOTING_CLOSED: (Status.COMPLETED,),
        Status.COMPLETED: (),
        Status.CANCELLED: (),
    }

    title = models.CharField(max_length=255)
    organizer_address = models.CharField(max_length=42, blank=True, default="")
    contract_id = models.DecimalField(
        max_digits=UINT256_DIGITS,
        decimal_places=0,
        unique=True,
        help_text="Hackathon id in the on-chain registry",
    )
    status = models.CharField(
        max_length=32,
        choices=Status.choices,
        default=Status.DRAFT,
    )
    prize_amount = models.DecimalField(
        max_digits=UINT256_DIGITS,
        decimal_places=0,
        default=0,
        help_text="Prize pool in the token's smallest unit",
    )

    # Prize pool mirror
    is_deposited = models.BooleanField(default=False)
    is_distributed = models.BooleanField(default=False)
    distribution_tx_hash = models.CharField(max_length=66, blank=True, default="")
    refund_required = models.BooleanField(
        default=False,
        help_text="Set when an admin cancelled the payout and asked for a refund",
    )

    winners_finalized_date = models.DateTimeField(null=True, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["status"], name="hackathon_status_idx"),
        ]

    def __str__(self):
        return f"Hackathon({self.id}, {self.title}, {self.status})"

    @property
    def has_finalized_winners(self):
        return self.winners_finalized_date is not None

    def can_transition_to(self, to_status):
        if to_status == self.Status.CANCELLED:
            return self.status not in self.TERMINAL_STATUSES
        return to_status in self.VALID_TRANSITIONS.get(self.status, ())

    def transition_to(self, to_status, bypass_validation=False):
        """Moves the hackathon to `to_status` and returns the previous one."""
        if not bypass_validation and not self.can_transition_to(to_status):
            raise InvalidStatusTransition(self.status, to_status)

        from_status = self.status
        self.status = to_status
        self.save(update_fields=["status", "updated_date"])
        return from_status

    def finalize_winners(self, winners):
        """Records the final ranking once. Repeating the same ranking is a
        no-op, a different ranking raises `WinnersAlreadyFinalized`.

        Args:
            winners (list) -- dicts with `rank`, `wallet_address` and
                `prize_amount`
        """
        if self.status != self.Status.COMPLETED:
            raise HackathonNotCompleted(self.id, self.status)

        normalized = sorted(
            (
                int(winner["rank"]),
                Web3.to_checksum_address(winner["wallet_address"]),
                int(winner["prize_amount"]),
            )
            for winner in winners
        )

        with transaction.atomic():
            hackathon = Hackathon.objects.select_for_update().get(pk=self.pk)
            if hackathon.has_finalized_winners:
                existing = [
                    (w.rank, w.wallet_address, int(w.prize_amount))
                    for w in hackathon.winners.order_by("rank")
                ]
                if existing != normalized:
                    raise WinnersAlreadyFinalized(self.id)
                self.winners_finalized_date = hackathon.winners_finalized_date
                return list(hackathon.winners.order_by("rank"))

            created = HackathonWinner.objects.bulk_create(
                [
                    HackathonWinner(
                        hackathon=hackathon,
                        rank=rank,
                        wallet_address=wallet_address,
                        prize_amount=prize_amount,
                    )
                    for rank, wallet_address, prize_amount in normalized
                ]
            )
            hackathon.winners_finalized_date = timezone.now()
            hackathon.save(update_fields=["winners_finalized_date", "updated_date"])
            self.winners_finalized_date = hackathon.winners_finalized_date
            return created


class HackathonWinner(DefaultModel):
    hackathon = models.ForeignKey(
        Hackathon,
        on_delete=models.CASCADE,
        related_name="winners",
    )
    rank = models.PositiveIntegerField()
    wallet_address = models.CharField(max_length=42)
    prize_amount = models.DecimalField(
        max_digits=UINT256_DIGITS,
        decimal_places=0,
    )

    class Meta:
        ordering = ["rank"]
        constraints = [
            models.UniqueConstraint(
                fields=["hackathon", "rank"],
                name="unique_hackathon_winner_rank",
            ),
        ]

    def __str__(self):
        return f"HackathonWinner({self.hackathon_id}, #{self.rank}, {self.wallet_address})"
