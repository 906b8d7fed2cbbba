from django.conf import settings
from health_check.backends import BaseHealthCheckBackend
from health_check.exceptions import ServiceUnavailable

from utils.web3_utils import web3_provider


class ChainHealthBackend(BaseHealthCheckBackend):
    """
    Reports whether the configured RPC node answers. The service keeps
    serving reads while the node is down, so this check is not critical.
    """

    critical_service = False

    def check_status(self):
        w3 = web3_provider.chain
        if w3 is None:
            self.add_error(ServiceUnavailable("web3 provider not initialized"))
            return
        try:
            if not w3.is_connected():
                self.add_error(ServiceUnavailable("RPC node unreachable"))
        except Exception as e:
            self.add_error(ServiceUnavailable("RPC node unreachable"), e)

    def identifier(self):
        mode = "read-only" if not settings.WEB3_PRIVATE_KEY else "signing"
        return f"Chain {settings.WEB3_CHAIN_ID} ({mode})"
