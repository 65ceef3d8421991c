from __future__ import annotations

import logging
from typing import Any

from web3 import Web3

from .clients import NetworkClients

LOGGER = logging.getLogger(__name__)

TOKEN_REGISTRY_ABI = [
    {
        'inputs': [{'internalType': 'uint256', 'name': '_listId', 'type': 'uint256'}],
        'name': 'getTokens',
        'outputs': [{'internalType': 'address[]', 'name': '', 'type': 'address[]'}],
        'stateMutability': 'view',
        'type': 'function'
    }
]


class Web3TcrApi:
    """Curated token registry read through its ``getTokens(listId)`` view.

    Networks without a configured registry yield an empty set, which the
    reconciler treats as "no curated list".
    """

    def __init__(self, clients: NetworkClients, registry_addresses: dict[int, str], list_id: int = 0) -> None:
        self.clients = clients
        self.registry_addresses = dict(registry_addresses)
        self.list_id = list_id
        self._contracts: dict[int, Any] = {}

    async def get_tokens(self, network_id: int) -> set[str]:
        contract = self._contract(network_id)
        if contract is None:
            return set()

        addresses = await contract.functions.getTokens(self.list_id).call()
        LOGGER.debug('fetched tcr list network_id=%s list_id=%s count=%s', network_id, self.list_id, len(addresses))
        return {Web3.to_checksum_address(address) for address in addresses}

    def _contract(self, network_id: int) -> Any | None:
        if network_id in self._contracts:
            return self._contracts[network_id]

        address = self.registry_addresses.get(network_id)
        if not address:
            return None

        web3 = self.clients.get(network_id)
        contract = web3.eth.contract(address=Web3.to_checksum_address(address), abi=TOKEN_REGISTRY_ABI)
        self._contracts[network_id] = contract
        return contract
