from datetime import timedelta

from django.utils import timezone
from web3 import Web3

from ethereum.exceptions import (
    ChainReadError,
    ChainWriteError,
    WalletNotConfiguredError,
)
from ethereum.lib import (
    PrizePoolInfo,
    ReceiptStatus,
    SignedDistribution,
    SubmissionResult,
    TransactionReceipt,
    fallback_gas_limit,
)
from prize_pool.models import DistributionSubmission
from prize_pool.services.distribution_scheduler_service import DistributionScheduler
from prize_pool.services.ledger_service import DistributionLedger
from prize_pool.services.transaction_monitor_service import TransactionMonitor

GAS_PRICE = Web3.to_wei(10, "gwei")
CONFIRMATION_BLOCKS = 12


class FakeChainGateway:
    """
    In-memory stand-in for `ChainGateway` with an account nonce.

    Signing hands out the account's pending nonce. Each entry of
    `broadcast_errors` fails one broadcast after signing, leaving the node
    without the transaction unless the test confirms it anyway. A broadcast
    whose nonce was already mined is refused. Accepted broadcasts stay
    pending until the test confirms or reverts them.
    """

    def __init__(self, read_only=False):
        self.is_read_only = read_only
        self.submissions = []
        self.receipts = {}
        self.errors = []
        self.broadcast_errors = []
        self.receipt_errors = set()
        self.winners = []
        self.prize_pool = PrizePoolInfo(
            total_amount=100,
            is_distributed=False,
            first_place=50,
            second_place=30,
            third_place=20,
        )
        self.pending_nonce = 0
        self.mined_nonce = 0
        self._signed = {}
        self._nonces = {}
        self._mined = set()

    def read_prize_pool(self, contract_id):
        return self.prize_pool

    def read_winners(self, contract_id):
        return list(self.winners)

    def get_mined_nonce(self):
        return self.mined_nonce

    def estimate_gas(self, recipients, amounts, contract_id=0):
        return fallback_gas_limit(len(recipients))

    def estimate_gas_price(self):
        return GAS_PRICE

    def sign_distribution(self, contract_id, recipients, amounts, overrides=None):
        overrides = overrides or {}
        if self.is_read_only:
            raise WalletNotConfiguredError()
        if self.errors:
            raise self.errors.pop(0)

        nonce = overrides.get("nonce")
        if nonce is None:
            nonce = max(self.pending_nonce, self.mined_nonce)
        signed = SignedDistribution(
            tx_hash="0x%064x" % (len(self._signed) + 1),
            nonce=nonce,
            gas_price=overrides.get("gas_price", GAS_PRICE),
            gas_limit=overrides.get("gas_limit", fallback_gas_limit(len(recipients))),
            raw_transaction=b"signed",
        )
        self._signed[signed.tx_hash] = (contract_id, recipients, amounts, overrides)
        self._nonces[signed.tx_hash] = nonce
        return signed

    def broadcast(self, signed):
        if self.broadcast_errors:
            raise ChainWriteError(
                self.broadcast_errors.pop(0),
                "broadcast",
                tx_hash=signed.tx_hash,
                nonce=signed.nonce,
            )
        if signed.nonce < self.mined_nonce:
            raise ChainWriteError(
                ValueError("nonce too low"),
                "broadcast",
                tx_hash=signed.tx_hash,
                nonce=signed.nonce,
            )

        contract_id, recipients, amounts, overrides = self._signed[signed.tx_hash]
        result = SubmissionResult(
            tx_hash=signed.tx_hash,
            nonce=signed.nonce,
            gas_price=signed.gas_price,
            gas_limit=signed.gas_limit,
        )
        self.submissions.append((contract_id, recipients, amounts, overrides, result))
        self.pending_nonce = max(self.pending_nonce, signed.nonce + 1)
        return result

    def get_transaction_receipt(self, tx_hash):
        if tx_hash in self.receipt_errors:
            raise ChainReadError(None, f"RPC unavailable for {tx_hash}")
        return self.receipts.get(
            tx_hash, TransactionReceipt(status=ReceiptStatus.PENDING)
        )

    def confirm(self, tx_hash, confirmations=CONFIRMATION_BLOCKS):
        self._mine(tx_hash)
        self.receipts[tx_hash] = TransactionReceipt(
            status=ReceiptStatus.CONFIRMED,
            block_number=1000,
            confirmations=confirmations,
            gas_used=120_000,
        )

    def revert(self, tx_hash):
        self._mine(tx_hash)
        self.receipts[tx_hash] = TransactionReceipt(
            status=ReceiptStatus.REVERTED,
            block_number=1000,
            confirmations=1,
            gas_used=90_000,
        )

    def recipients_paid(self):
        return [recipients[0] for _, recipients, _, _, _ in self.submissions]

    def nonces_sent_to(self, recipient):
        return [
            result.nonce
            for _, recipients, _, _, result in self.submissions
            if recipients[0] == recipient
        ]

    def _mine(self, tx_hash):
        if tx_hash not in self._nonces:
            return
        self._mined.add(self._nonces[tx_hash])
        while self.mined_nonce in self._mined:
            self.mined_nonce += 1
        self.pending_nonce = max(self.pending_nonce, self.mined_nonce)


def build_services(gateway=None, max_retry_attempts=3):
    """Returns `(gateway, ledger, scheduler, monitor)` sharing one fake."""
    gateway = gateway or FakeChainGateway()
    ledger = DistributionLedger()
    scheduler = DistributionScheduler(
        gateway=gateway,
        ledger=ledger,
        max_retry_attempts=max_retry_attempts,
        retry_base_delay=0,
    )
    monitor = TransactionMonitor(
        gateway=gateway,
        ledger=ledger,
        confirmation_blocks=CONFIRMATION_BLOCKS,
        timeout_seconds=1800,
    )
    return gateway, ledger, scheduler, monitor


def latest_hash(record):
    return record.latest_submission().tx_hash


def age_open_submissions(seconds=3600):
    """Pushes every open submission past the stuck timeout."""
    DistributionSubmission.objects.filter(
        status__in=DistributionSubmission.OPEN_STATUSES
    ).update(submitted_at=timezone.now() - timedelta(seconds=seconds))
