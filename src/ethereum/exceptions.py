class Error(Exception):
    """Base class for exceptions in this module."""

    pass


class ChainGatewayError(Error):
    """Raised for errors talking to the chain.

    Attributes:
        trigger -- error that triggered this one
        message -- explanation of this error
    """

    def __init__(self, trigger, message):
        super().__init__(message)
        self.trigger = trigger
        self.message = message


class ChainReadError(ChainGatewayError):
    """Raised when a contract read or receipt lookup fails."""

    pass


class ChainWriteError(ChainGatewayError):
    """Raised when a prize distribution could not be broadcast.

    Attributes:
        tx_hash -- hash of the signed transaction, or None when the failure
            happened before signing. A non-null hash means the transfer may
            still land on chain.
        nonce -- nonce the transaction was built with, if known
    """

    def __init__(self, trigger, message, tx_hash=None, nonce=None):
        super().__init__(trigger, message)
        self.tx_hash = tx_hash
        self.nonce = nonce

    @property
    def is_ambiguous(self):
        return self.tx_hash is not None


class InvalidArgument(ChainGatewayError):
    def __init__(self, message):
        super().__init__(None, message)


class WalletNotConfiguredError(ChainGatewayError):
    """Raised on writes while the gateway runs without a signing key."""

    def __init__(self, message="No signing key configured, gateway is read-only"):
        super().__init__(None, message)


class GasEstimationFailure(ChainGatewayError):
    """Logged when gas estimation falls back to the static formula."""

    pass
