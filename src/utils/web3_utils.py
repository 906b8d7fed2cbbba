import logging

from django.conf import settings
from web3 import Web3

from utils.sentry import log_error

logger = logging.getLogger(__name__)


class Web3Provider:
    """
    Process-wide web3 connection to the chain hosting the hackathon
    registry and prize pool contracts.
    """

    _instance = None
    _w3 = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(Web3Provider, cls).__new__(cls)
            cls._initialize_provider()
        return cls._instance

    @classmethod
    def _initialize_provider(cls):
        try:
            cls._w3 = Web3(
                Web3.HTTPProvider(
                    settings.WEB3_PROVIDER_URL or None,
                    request_kwargs={"timeout": settings.WEB3_REQUEST_TIMEOUT},
                )
            )
        except Exception as e:
            log_error(e, message="Failed to initialize web3 provider")
            cls._w3 = None

    @classmethod
    def reset(cls):
        cls._instance = None
        cls._w3 = None

    @property
    def chain(self):
        return self._w3


web3_provider = Web3Provider()
