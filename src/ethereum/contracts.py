import json
import os
from functools import lru_cache

from web3 import Web3

ABI_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "abi")

PRIZE_POOL_ABI_FILENAME = "PrizePool.json"
HACKATHON_REGISTRY_ABI_FILENAME = "HackathonRegistry.json"


@lru_cache(maxsize=None)
def load_abi(abi_filename):
    path = os.path.join(ABI_DIR, abi_filename)
    with open(path, "r") as file:
        data = json.load(file)
    return data["abi"]


class ContractComposer:
    def __init__(self, w3, address, abi_filename):
        self.w3 = w3
        self.address = address
        self.abi_filename = abi_filename
        self.set_abi()
        self.set_contract()

    def set_abi(self):
        self.abi = load_abi(self.abi_filename)

    def set_contract(self):
        self.contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(self.address), abi=self.abi
        )


def prize_pool_contract(w3, address):
    return ContractComposer(w3, address, PRIZE_POOL_ABI_FILENAME).contract


def hackathon_registry_contract(w3, address):
    return ContractComposer(w3, address, HACKATHON_REGISTRY_ABI_FILENAME).contract
