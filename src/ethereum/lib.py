import logging
from dataclasses import dataclass

from django.conf import settings
from web3 import Web3
from web3.exceptions import TransactionNotFound

from ethereum.contracts import hackathon_registry_contract, prize_pool_contract
from ethereum.exceptions import (
    ChainReadError,
    ChainWriteError,
    GasEstimationFailure,
    InvalidArgument,
    WalletNotConfiguredError,
)
from utils.web3_utils import web3_provider

logger = logging.getLogger(__name__)

GAS_BASE_COST = 100_000
GAS_PER_RECIPIENT = 50_000
FALLBACK_GAS_PRICE = Web3.to_wei(20, "gwei")

NULL_ADDRESS = "0x0000000000000000000000000000000000000000"


class ReceiptStatus:
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    REVERTED = "REVERTED"


@dataclass
class PrizePoolInfo:
    total_amount: int
    is_distributed: bool
    first_place: int
    second_place: int
    third_place: int


@dataclass
class SubmissionResult:
    tx_hash: str
    nonce: int
    gas_price: int
    gas_limit: int


@dataclass
class SignedDistribution(SubmissionResult):
    """A signed `distributePrizes` transaction that has not been broadcast."""

    raw_transaction: bytes = b""


@dataclass
class TransactionReceipt:
    status: str
    block_number: int | None = None
    confirmations: int = 0
    gas_used: int | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == ReceiptStatus.PENDING


def fallback_gas_limit(recipient_count: int) -> int:
    return GAS_BASE_COST + GAS_PER_RECIPIENT * recipient_count


class ChainGateway:
    """
    Typed access to the prize pool and hackathon registry contracts.

    Reads go through the configured RPC node. Writes are signed locally with
    `WEB3_PRIVATE_KEY` and broadcast as raw transactions. Without a key the
    gateway is read-only and every write raises `WalletNotConfiguredError`.

    !!! NOTE: `broadcast` sends funds.
    """

    def __init__(
        self,
        w3=None,
        private_key: str | None = None,
        prize_pool_address: str | None = None,
        registry_address: str | None = None,
        chain_id: int | None = None,
        gas_limit_multiplier: float | None = None,
        gas_price_buffer_percent: int | None = None,
    ):
        self.w3 = w3 if w3 is not None else web3_provider.chain
        self.private_key = (
            private_key if private_key is not None else settings.WEB3_PRIVATE_KEY
        )
        self.prize_pool_address = (
            prize_pool_address or settings.WEB3_PRIZE_POOL_ADDRESS
        )
        self.registry_address = (
            registry_address or settings.WEB3_HACKATHON_REGISTRY_ADDRESS
        )
        self.chain_id = chain_id or settings.WEB3_CHAIN_ID
        self.gas_limit_multiplier = (
            gas_limit_multiplier or settings.DISTRIBUTION_GAS_LIMIT_MULTIPLIER
        )
        self.gas_price_buffer_percent = (
            gas_price_buffer_percent
            if gas_price_buffer_percent is not None
            else settings.DISTRIBUTION_GAS_PRICE_BUFFER_PERCENT
        )
        self._prize_pool = None
        self._registry = None
        self._address = None

        if self.is_read_only:
            logger.warning(
                "No signing key configured, chain gateway running read-only"
            )

    @property
    def is_read_only(self) -> bool:
        return not self.private_key

    @property
    def address(self) -> str:
        if self.is_read_only:
            raise WalletNotConfiguredError()
        if self._address is None:
            account = self.w3.eth.account.from_key(self.private_key)
            self._address = Web3.to_checksum_address(account.address)
        return self._address

    @property
    def prize_pool(self):
        if self._prize_pool is None:
            if not self.prize_pool_address:
                raise ChainReadError(None, "Prize pool address not configured")
            self._prize_pool = prize_pool_contract(self.w3, self.prize_pool_address)
        return self._prize_pool

    @property
    def registry(self):
        if self._registry is None:
            if not self.registry_address:
                raise ChainReadError(None, "Hackathon registry address not configured")
            self._registry = hackathon_registry_contract(
                self.w3, self.registry_address
            )
        return self._registry

    # Reads

    def read_prize_pool(self, contract_id: int) -> PrizePoolInfo:
        try:
            (
                _,
                total_amount,
                is_distributed,
                first_place,
                second_place,
                third_place,
            ) = self.prize_pool.functions.prizePools(int(contract_id)).call()
        except ChainReadError:
            raise
        except Exception as e:
            raise ChainReadError(
                e, f"Failed to read prize pool for hackathon {contract_id}"
            ) from e

        return PrizePoolInfo(
            total_amount=total_amount,
            is_distributed=is_distributed,
            first_place=first_place,
            second_place=second_place,
            third_place=third_place,
        )

    def read_winners(self, contract_id: int) -> list[str]:
        """Returns the podium addresses in rank order, empty places dropped."""
        try:
            places = self.registry.functions.getWinners(int(contract_id)).call()
        except ChainReadError:
            raise
        except Exception as e:
            raise ChainReadError(
                e, f"Failed to read winners for hackathon {contract_id}"
            ) from e

        return [address for address in places if address and address != NULL_ADDRESS]

    def get_mined_nonce(self) -> int:
        """Number of the signing account's transactions already mined. A
        transaction whose nonce is below this can no longer land.
        """
        try:
            return self.w3.eth.get_transaction_count(self.address, "latest")
        except WalletNotConfiguredError:
            raise
        except Exception as e:
            raise ChainReadError(e, "Failed to read the account nonce") from e

    def get_transaction_receipt(self, tx_hash: str) -> TransactionReceipt:
        try:
            receipt = self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return TransactionReceipt(status=ReceiptStatus.PENDING)
        except Exception as e:
            raise ChainReadError(e, f"Failed to get receipt for {tx_hash}") from e

        if receipt is None or receipt.get("blockNumber") is None:
            return TransactionReceipt(status=ReceiptStatus.PENDING)

        try:
            latest_block = self.w3.eth.block_number
        except Exception as e:
            raise ChainReadError(e, "Failed to read latest block number") from e

        block_number = receipt["blockNumber"]
        status = (
            ReceiptStatus.CONFIRMED
            if receipt["status"] == 1
            else ReceiptStatus.REVERTED
        )
        return TransactionReceipt(
            status=status,
            block_number=block_number,
            confirmations=max(latest_block - block_number + 1, 0),
            gas_used=receipt.get("gasUsed"),
        )

    # Gas

    def estimate_gas(self, recipients, amounts, contract_id: int = 0) -> int:
        """Returns a padded gas estimate for `distributePrizes`, or the static
        per-recipient formula when the node cannot estimate.
        """
        try:
            method_call = self._distribute_call(contract_id, recipients, amounts)
            estimate = method_call.estimate_gas({"from": self.address})
            return int(estimate * self.gas_limit_multiplier)
        except Exception as e:
            failure = GasEstimationFailure(e, "Gas estimation failed, using fallback")
            logger.warning("%s: %s", failure.message, e)
            return fallback_gas_limit(len(recipients))

    def estimate_gas_price(self) -> int:
        try:
            gas_price = self.w3.eth.gas_price
            return gas_price * (100 + self.gas_price_buffer_percent) // 100
        except Exception as e:
            failure = GasEstimationFailure(e, "Gas price lookup failed, using fallback")
            logger.warning("%s: %s", failure.message, e)
            return FALLBACK_GAS_PRICE

    # Writes

    def sign_distribution(
        self, contract_id: int, recipients, amounts, gas_overrides=None
    ) -> SignedDistribution:
        """Builds and signs `distributePrizes` without sending it.

        Args:
            gas_overrides (dict) -- optional `gas_price`, `gas_limit` and
                `nonce`. Reusing the nonce of a pending transaction replaces it.
        """
        if self.is_read_only:
            raise WalletNotConfiguredError()
        if not recipients:
            raise InvalidArgument("At least one recipient is required")
        if len(recipients) != len(amounts):
            raise InvalidArgument(
                "Recipients and amounts arrays must have the same length"
            )
        if any(int(amount) < 0 for amount in amounts):
            raise InvalidArgument("Amounts must not be negative")
        try:
            checksum_recipients = [
                Web3.to_checksum_address(recipient) for recipient in recipients
            ]
        except ValueError as e:
            raise InvalidArgument(f"Invalid recipient address: {e}") from e

        overrides = gas_overrides or {}
        nonce = overrides.get("nonce")
        try:
            sender = self.address
            if nonce is None:
                nonce = self.w3.eth.get_transaction_count(sender, "pending")
            gas_price = overrides.get("gas_price") or self.estimate_gas_price()
            gas_limit = overrides.get("gas_limit") or self.estimate_gas(
                checksum_recipients, amounts, contract_id
            )

            tx = self._distribute_call(
                contract_id, checksum_recipients, amounts
            ).build_transaction(
                {
                    "from": sender,
                    "nonce": nonce,
                    "gas": int(gas_limit),
                    "gasPrice": int(gas_price),
                    "chainId": self.chain_id,
                }
            )
            signed = self.w3.eth.account.sign_transaction(tx, self.private_key)
        except Exception as e:
            raise ChainWriteError(
                e,
                f"Failed to sign prize distribution for hackathon {contract_id}",
                nonce=nonce,
            ) from e

        return SignedDistribution(
            tx_hash=Web3.to_hex(signed.hash),
            nonce=nonce,
            gas_price=int(gas_price),
            gas_limit=int(gas_limit),
            raw_transaction=signed.rawTransaction,
        )

    def broadcast(self, signed: SignedDistribution) -> SubmissionResult:
        """Sends a signed distribution. Any failure is ambiguous: the node may
        have received the transaction before the error.

        !!! NOTE: this sends funds.
        """
        try:
            self.w3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as e:
            raise ChainWriteError(
                e,
                f"Failed to broadcast prize distribution {signed.tx_hash}",
                tx_hash=signed.tx_hash,
                nonce=signed.nonce,
            ) from e

        logger.info(
            "Prize distribution transaction submitted: %s (nonce %s)",
            signed.tx_hash,
            signed.nonce,
        )
        return SubmissionResult(
            tx_hash=signed.tx_hash,
            nonce=signed.nonce,
            gas_price=signed.gas_price,
            gas_limit=signed.gas_limit,
        )

    def _distribute_call(self, contract_id, recipients, amounts):
        return self.prize_pool.functions.distributePrizes(
            int(contract_id), list(recipients), [int(amount) for amount in amounts]
        )
